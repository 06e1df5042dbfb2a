"""
Exception types raised by the Keynest engine.

Input errors are returned to the caller that supplied the bad value, backend
errors to the screen that started the action. Clipboard hygiene failures never
become exceptions.
"""


class KeynestError(Exception):
    """Base class for all engine errors."""


class InputError(KeynestError, ValueError):
    """A caller supplied a value the engine cannot work with."""


class NoCharacterClassesError(InputError):
    """Password generation was requested with every character class disabled."""

    def __init__(self):
        super().__init__("No character classes enabled")


class TotpError(InputError):
    """Base class for OTP input problems."""


class InvalidSecretError(TotpError):
    """The shared secret is empty or not valid Base32."""


class NotTotpUriError(TotpError):
    """The URI is not an otpauth://totp/ URI."""


class BackendError(KeynestError):
    """The storage backend reported a failure."""


class AuthenticationError(BackendError):
    """The master password was rejected."""


class VaultExistsError(BackendError):
    """A vault already exists where a new one was to be created."""


class NoVaultError(BackendError):
    """No vault exists to unlock."""


class PasswordPolicyError(BackendError):
    """The backend refused the master password for policy reasons."""


class VaultLockedError(KeynestError, RuntimeError):
    """An operation needed the unlocked vault but the session is locked."""

    def __init__(self, message: str = "Vault is locked"):
        super().__init__(message)


class EntryNotFoundError(KeynestError, KeyError):
    """No entry with the given id exists in the vault."""
