"""
Configuration constants for the Keynest engine.
"""

import string

# Application Metadata
APP_NAME = "Keynest"  # Use: Name of the application, used in toasts and log messages. Type: str. Range: Any valid string.
VAULT_SCHEMA_VERSION = 1  # Use: Schema tag written into every VaultData document. Type: int. Range: 1 (only supported version).

# Session Settings
IDLE_LOCK_TIMEOUT_MINUTES = 3  # Use: Inactivity window before an unlocked vault is locked automatically. Type: int. Range: Positive integer.
IDLE_LOCK_TIMEOUT = IDLE_LOCK_TIMEOUT_MINUTES * 60 * 1000  # Use: Idle lock timeout in milliseconds. Derived from IDLE_LOCK_TIMEOUT_MINUTES. Type: int. Range: Derived value.
ACTIVITY_EVENTS = ("pointer-move", "pointer-down", "key-press", "touch-start", "scroll")  # Use: User-activity signals that reset the idle timer. Type: tuple[str]. Range: Fixed set.
SAVE_DEBOUNCE_MS = 400  # Use: Quiet period after the last vault mutation before a save is issued. Type: int. Range: Positive integer (ms).
SAVED_DISPLAY_MS = 1200  # Use: How long the "saved" state is shown before reverting to "idle". Type: int. Range: Positive integer (ms).
SAVE_WORKER_JOIN_TIMEOUT_MS = 10000  # Use: Maximum time lock() waits for an in-flight save to finish before locking the backend. Type: int. Range: Positive integer (ms).
HISTORY_LIMIT = 10  # Use: Number of prior versions kept per entry (most recent first). Type: int. Range: Positive integer.

# Clipboard Settings
CLIPBOARD_CLEAR_TIMEOUT_SECONDS = 25  # Use: Seconds after a copy before the clipboard is cleared (if unchanged). Type: int. Range: Positive integer.
CLIPBOARD_CLEAR_TIMEOUT = CLIPBOARD_CLEAR_TIMEOUT_SECONDS * 1000  # Use: Clipboard clear timeout in milliseconds. Derived from CLIPBOARD_CLEAR_TIMEOUT_SECONDS. Type: int. Range: Derived value.
TOAST_DISPLAY_MS = 1200  # Use: How long a copy toast stays visible. Type: int. Range: Positive integer (ms).
TOAST_COPIED = "Copied {label} to clipboard"  # Use: Toast shown after a successful copy. Type: str (format string). Range: Must contain {label}.
TOAST_COPY_FAILED = "Failed to copy"  # Use: Toast shown when writing to the clipboard fails. Type: str. Range: Any string.

# TOTP Settings
TOTP_PERIOD = 30  # Use: TOTP time step in seconds. Type: int. Range: Fixed at 30.
TOTP_DIGITS = 6  # Use: Number of digits in a generated code. Type: int. Range: Fixed at 6.
TOTP_ALGORITHM = "SHA1"  # Use: HMAC hash used for code derivation. Type: str. Range: Fixed at "SHA1".
TOTP_SECRET_BYTES = 20  # Use: Size of newly generated shared secrets (160 bits). Type: int. Range: At least 20, a multiple of 5.
TOTP_TICK_MS = 1000  # Use: Interval of the display ticker that recomputes the current code. Type: int. Range: Positive integer (ms).

# Password Generator Settings
PASSWORD_GENERATOR_DEFAULT_LENGTH = 16  # Use: Default length for generated passwords. Type: int. Range: Positive integer.
PASSWORD_GENERATOR_MAX_LENGTH = 128  # Use: Largest length offered to the user by generator UIs. Type: int. Range: Positive integer.
PASSWORD_GENERATOR_AMBIGUOUS_CHARS = "0O1lI"  # Use: Characters removed when exclude_ambiguous is set. Type: str. Range: Any string of characters.
CHARSET_LOWER = string.ascii_lowercase  # Use: Lowercase character class. Type: str. Range: Fixed.
CHARSET_UPPER = string.ascii_uppercase  # Use: Uppercase character class. Type: str. Range: Fixed.
CHARSET_NUMBERS = string.digits  # Use: Digit character class. Type: str. Range: Fixed.
CHARSET_SYMBOLS = "!@#$%^&*()-_=+[]{}|;:,.<>?"  # Use: Symbol character class. Type: str. Range: Printable ASCII punctuation.

# Vault Health Settings
MAX_PASSWORD_AGE_DAYS = 180  # Use: Passwords not updated for longer than this are reported as old. Type: int. Range: Positive integer.
WEAK_SCORE_THRESHOLD = 3  # Use: Strength scores strictly below this are reported as weak. Type: int. Range: 0 to 4.
HEALTH_DATE_FORMAT = "%Y-%m-%d"  # Use: strftime format of the last-updated date in "old" issue details. Type: str. Range: Valid strftime format.

# Reference Backend Settings
PASSWORD_MIN_LENGTH = 12  # Use: Minimum master password length accepted by the in-memory backend. Type: int. Range: Typically 8 to 16.
