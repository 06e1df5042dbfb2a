"""
Session and exposure guard.

VaultSession owns everything tied to user presence: the locked/unlocked state
machine, the idle auto-lock timer, debounced persistence of vault mutations
and the secure clipboard. Every timer lives on this object (or a child it
owns) and teardown() stops all of them.

LEGAL NOTICE:
This module holds decrypted vault data in memory while unlocked. It must only
be used for legitimate personal password management on devices you own or
administer.
"""

import copy
import logging
import time
from enum import Enum
from typing import Callable, List, Optional, Set, Tuple

from PyQt5.QtCore import QObject, QTimer, pyqtSignal

from . import config
from .backend import StorageBackend
from .clipboard import Clipboard, SecureClipboard
from .errors import BackendError, VaultLockedError
from .health import VaultHealthReport, analyse_vault
from .models import VaultData, VaultEntry, new_entry, now_ms
from .ticker import TotpTicker
from .totp import generate_totp
from .workers import SaveWorker

logger = logging.getLogger(__name__)

# Save workers that outlived their session, held until their thread ends
_detached_workers: Set[SaveWorker] = set()


def _release_worker(worker: SaveWorker) -> None:
    _detached_workers.discard(worker)


class SessionState(str, Enum):
    LOCKED = "locked"
    UNLOCKED = "unlocked"


class LockReason(str, Enum):
    MANUAL = "manual"
    TIMEOUT = "timeout"


class SaveState(str, Enum):
    IDLE = "idle"
    SAVING = "saving"
    SAVED = "saved"
    ERROR = "error"


class VaultSession(QObject):
    """The unlocked vault and the timers that guard it."""

    state_changed = pyqtSignal(str)
    unlocked = pyqtSignal()
    locked = pyqtSignal(str)
    save_state_changed = pyqtSignal(str)
    vault_changed = pyqtSignal()

    def __init__(self, backend: StorageBackend, clipboard: Optional[Clipboard] = None,
                 idle_timeout_ms: int = config.IDLE_LOCK_TIMEOUT,
                 save_debounce_ms: int = config.SAVE_DEBOUNCE_MS,
                 saved_display_ms: int = config.SAVED_DISPLAY_MS,
                 clipboard_clear_ms: int = config.CLIPBOARD_CLEAR_TIMEOUT,
                 toast_ms: int = config.TOAST_DISPLAY_MS,
                 clock: Callable[[], float] = time.time, parent=None):
        super().__init__(parent)
        self.backend = backend
        self.clock = clock
        self.idle_timeout_ms = idle_timeout_ms
        self.save_debounce_ms = save_debounce_ms
        self.saved_display_ms = saved_display_ms

        self.state = SessionState.LOCKED
        self.save_state = SaveState.IDLE
        self._vault: Optional[VaultData] = None

        self.clipboard = SecureClipboard(clipboard, clipboard_clear_ms, toast_ms, parent=self)

        self._idle_timer = QTimer(self)
        self._idle_timer.setSingleShot(True)
        self._idle_timer.timeout.connect(self._on_idle_timeout)

        self._save_timer = QTimer(self)
        self._save_timer.setSingleShot(True)
        self._save_timer.timeout.connect(self._on_save_due)

        self._saved_timer = QTimer(self)
        self._saved_timer.setSingleShot(True)
        self._saved_timer.timeout.connect(self._on_saved_display_elapsed)

        self._save_generation = 0
        self._save_worker: Optional[SaveWorker] = None
        self._pending_save: Optional[Tuple[int, VaultData]] = None
        self._tickers: List[TotpTicker] = []

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    @property
    def is_unlocked(self) -> bool:
        return self.state is SessionState.UNLOCKED

    @property
    def vault(self) -> VaultData:
        """The in-memory vault. Raises VaultLockedError while locked."""
        if self._vault is None:
            raise VaultLockedError()
        return self._vault

    @property
    def entries(self) -> List[VaultEntry]:
        return list(self.vault.entries)

    def vault_exists(self) -> bool:
        return self.backend.vault_exists()

    def create_vault(self, master_password: str) -> None:
        """
        Create a new vault and open it.

        Raises:
            VaultExistsError: If a vault already exists
            PasswordPolicyError: If the backend rejects the master password
        """
        try:
            self.backend.init_vault(master_password)
        except BackendError as e:
            logger.warning(f"Vault creation failed: {type(e).__name__}")
            raise
        self.unlock(master_password)

    def unlock(self, master_password: str) -> None:
        """
        Unlock the vault with the master password.

        Raises:
            AuthenticationError: If the backend rejects the master password
        """
        if self.is_unlocked:
            return
        try:
            data = self.backend.unlock_vault(master_password)
        except BackendError as e:
            logger.warning(f"Unlock failed: {type(e).__name__}")
            raise
        self._enter_unlocked(data)

    def open_legacy(self) -> bool:
        """Open an unencrypted vault through the backend's legacy load path."""
        if self.is_unlocked:
            return True
        data = self.backend.load_vault()
        if data is None:
            return False
        self._enter_unlocked(data)
        return True

    def _enter_unlocked(self, data: VaultData) -> None:
        self._vault = data
        self.state = SessionState.UNLOCKED
        self._set_save_state(SaveState.IDLE)
        self._restart_idle_timer()
        logger.info(f"Vault unlocked ({len(data.entries)} entries)")
        self.state_changed.emit(self.state.value)
        self.unlocked.emit()
        self.vault_changed.emit()

    def lock(self, reason: LockReason = LockReason.MANUAL) -> bool:
        """
        Lock the vault and clear it from memory.

        Any debounced save that has not run yet is written before the backend
        is locked. The in-memory vault is cleared even if the backend fails.

        Returns:
            False if the backend reported a failure while saving or locking
        """
        if not self.is_unlocked:
            return True

        self._idle_timer.stop()
        ok = True
        try:
            try:
                self._flush_pending_save()
            except Exception as e:
                ok = False
                logger.error(f"Final save before lock failed: {type(e).__name__}", exc_info=True)
            self.backend.lock_vault()
        except Exception as e:
            ok = False
            logger.warning(f"Backend lock failed: {type(e).__name__}")
        finally:
            self._vault = None
            self.state = SessionState.LOCKED
            self.clipboard.flush()
            self.teardown()
            if self.save_state is not SaveState.ERROR:
                self._set_save_state(SaveState.IDLE)
            logger.info(f"Vault locked ({LockReason(reason).value})")
            self.state_changed.emit(self.state.value)
            self.locked.emit(LockReason(reason).value)
        return ok

    def teardown(self) -> None:
        """
        Cancel every outstanding timer. Performs no I/O.

        A save already running on a worker thread is left to finish, but its
        result is no longer reported here and the worker no longer belongs to
        this session, so the session can be destroyed right away.
        """
        self._idle_timer.stop()
        self._save_timer.stop()
        self._saved_timer.stop()
        self._pending_save = None
        self._detach_save_worker()
        self.clipboard.cancel()
        for ticker in self._tickers:
            ticker.stop()
        self._tickers = []

    # ------------------------------------------------------------------
    # Idle auto-lock
    # ------------------------------------------------------------------

    def record_activity(self, kind: str = "key-press") -> bool:
        """Restart the idle countdown. Only qualifying events while unlocked count."""
        if not self.is_unlocked or kind not in config.ACTIVITY_EVENTS:
            return False
        self._restart_idle_timer()
        return True

    def idle_lock_pending(self) -> bool:
        return self._idle_timer.isActive()

    def _restart_idle_timer(self) -> None:
        self._idle_timer.stop()
        self._idle_timer.start(self.idle_timeout_ms)

    def _on_idle_timeout(self) -> None:
        logger.info("Locking vault after inactivity")
        self.lock(LockReason.TIMEOUT)

    # ------------------------------------------------------------------
    # Debounced persistence
    # ------------------------------------------------------------------

    def schedule_save(self) -> None:
        """Save the vault once no further mutation arrives within the debounce window."""
        if not self.is_unlocked:
            raise VaultLockedError()
        self._save_generation += 1
        self._saved_timer.stop()
        self._set_save_state(SaveState.SAVING)
        self._save_timer.stop()
        self._save_timer.start(self.save_debounce_ms)

    def _on_save_due(self) -> None:
        if not self.is_unlocked:
            return
        job = (self._save_generation, copy.deepcopy(self._vault))
        if self._save_worker is not None:
            # One save at a time; only the newest waiting snapshot is kept
            self._pending_save = job
            return
        self._start_save(*job)

    def _start_save(self, generation: int, data: VaultData) -> None:
        worker = SaveWorker(self.backend, data, generation, parent=self)
        worker.saved.connect(self._on_save_succeeded)
        worker.error.connect(self._on_save_failed)
        worker.finished.connect(worker.deleteLater)
        self._save_worker = worker
        worker.start()

    def _on_save_succeeded(self, generation: int) -> None:
        self._on_worker_done(generation)
        if generation != self._save_generation or not self.is_unlocked:
            return
        if self._save_timer.isActive() or self._pending_save is not None:
            return
        logger.info("Vault saved")
        self._set_save_state(SaveState.SAVED)
        self._saved_timer.start(self.saved_display_ms)

    def _on_save_failed(self, generation: int, message: str) -> None:
        self._on_worker_done(generation)
        if generation != self._save_generation or not self.is_unlocked:
            return
        self._set_save_state(SaveState.ERROR)

    def _on_worker_done(self, generation: int) -> None:
        if self._save_worker is None or self._save_worker.generation != generation:
            return
        self._save_worker = None
        if self._pending_save is not None and self.is_unlocked:
            job, self._pending_save = self._pending_save, None
            self._start_save(*job)

    def _on_saved_display_elapsed(self) -> None:
        if self.save_state is SaveState.SAVED:
            self._set_save_state(SaveState.IDLE)

    def _wait_for_save_worker(self) -> None:
        worker = self._save_worker
        if worker is not None and not worker.wait(config.SAVE_WORKER_JOIN_TIMEOUT_MS):
            logger.warning("In-flight save did not finish before lock")
        self._detach_save_worker()

    def _detach_save_worker(self) -> None:
        worker, self._save_worker = self._save_worker, None
        if worker is None:
            return
        worker.saved.disconnect(self._on_save_succeeded)
        worker.error.disconnect(self._on_save_failed)
        # finished -> deleteLater stays connected and frees the thread object
        worker.setParent(None)
        _detached_workers.add(worker)
        worker.finished.connect(lambda: _release_worker(worker))
        if worker.isFinished():
            _release_worker(worker)

    def _flush_pending_save(self) -> None:
        due = self._save_timer.isActive() or self._pending_save is not None
        self._save_timer.stop()
        self._pending_save = None
        self._wait_for_save_worker()
        if due:
            self.backend.save_vault(copy.deepcopy(self._vault))
            logger.info("Vault saved before lock")

    def _set_save_state(self, state: SaveState) -> None:
        if state is self.save_state:
            return
        self.save_state = state
        self.save_state_changed.emit(state.value)

    # ------------------------------------------------------------------
    # Vault mutations
    # ------------------------------------------------------------------

    def _changed(self) -> None:
        self.vault_changed.emit()
        self.schedule_save()

    def add_entry(self, **fields) -> VaultEntry:
        """Create an entry at the top of the vault."""
        entry = new_entry(now_ms(self.clock), **fields)
        self.vault.entries.insert(0, entry)
        self._changed()
        return entry

    def update_entry(self, entry_id: str, **changes) -> bool:
        """Edit an entry. Returns False if nothing actually changed."""
        entry = self.vault.find(entry_id)
        if not entry.apply_changes(changes, now_ms(self.clock)):
            return False
        self._changed()
        return True

    def restore_history(self, entry_id: str, index: int) -> VaultEntry:
        """Make history item ``index`` (0 = most recent) the current version."""
        entry = self.vault.find(entry_id)
        entry.restore(index, now_ms(self.clock))
        self._changed()
        return entry

    def delete_entry(self, entry_id: str) -> None:
        entry = self.vault.find(entry_id)
        self.vault.entries.remove(entry)
        self._changed()

    # ------------------------------------------------------------------
    # Exposure
    # ------------------------------------------------------------------

    def copy_password(self, entry_id: str) -> bool:
        return self.clipboard.copy(self.vault.find(entry_id).password, "password")

    def copy_username(self, entry_id: str) -> bool:
        return self.clipboard.copy(self.vault.find(entry_id).username, "username")

    def copy_totp(self, entry_id: str) -> bool:
        """
        Copy the entry's current one-time code.

        Raises:
            InvalidSecretError: If the entry has no valid TOTP secret
        """
        entry = self.vault.find(entry_id)
        code = generate_totp(entry.totp_secret or "", entry.totp_issuer, entry.totp_account,
                             now=self.clock())
        return self.clipboard.copy(code.code, "otp")

    def copy_text(self, text: str, label: str) -> bool:
        """Copy an arbitrary sensitive value, such as a freshly generated password."""
        return self.clipboard.copy(text, label)

    def totp_ticker(self, secret: str, issuer: Optional[str] = None,
                    account: Optional[str] = None) -> TotpTicker:
        """A running per-second code ticker that stops when the session tears down."""
        if not self.is_unlocked:
            raise VaultLockedError()
        ticker = TotpTicker(secret, issuer, account, clock=self.clock, parent=self)
        self._tickers.append(ticker)
        ticker.start()
        return ticker

    def analyse(self) -> VaultHealthReport:
        return analyse_vault(self.vault.entries, now=now_ms(self.clock))
