"""
Clipboard exposure of sensitive values.

SecureClipboard writes a value, then clears it again after a fixed delay, but
only if the clipboard still holds exactly what it wrote. Anything the user
copied in the meantime is left alone.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from PyQt5.QtCore import QObject, QTimer, pyqtSignal
from PyQt5.QtWidgets import QApplication

from . import config

logger = logging.getLogger(__name__)


class Clipboard(ABC):
    """System clipboard collaborator. Both operations may raise."""

    @abstractmethod
    def write(self, text: str) -> None:
        pass

    @abstractmethod
    def read(self) -> str:
        pass


class QtClipboard(Clipboard):
    """The application's QClipboard."""

    def write(self, text: str) -> None:
        clipboard = QApplication.clipboard()
        if clipboard is None:
            raise RuntimeError("No clipboard available")
        clipboard.setText(text)

    def read(self) -> str:
        clipboard = QApplication.clipboard()
        if clipboard is None:
            raise RuntimeError("No clipboard available")
        return clipboard.text()


class SecureClipboard(QObject):
    """Copy with auto-clear and a transient toast."""

    toast_changed = pyqtSignal(str)  # empty string when the toast is dismissed
    cleared = pyqtSignal()

    def __init__(self, clipboard: Optional[Clipboard] = None,
                 clear_after_ms: int = config.CLIPBOARD_CLEAR_TIMEOUT,
                 toast_ms: int = config.TOAST_DISPLAY_MS, parent=None):
        super().__init__(parent)
        self._clipboard = clipboard if clipboard is not None else QtClipboard()
        self.clear_after_ms = clear_after_ms
        self.toast_ms = toast_ms
        self.toast: Optional[str] = None

        self._last_written: Optional[str] = None
        self._generation = 0
        self._armed_generation: Optional[int] = None

        self._clear_timer = QTimer(self)
        self._clear_timer.setSingleShot(True)
        self._clear_timer.timeout.connect(self._on_clear_timeout)

        self._toast_timer = QTimer(self)
        self._toast_timer.setSingleShot(True)
        self._toast_timer.timeout.connect(self.dismiss_toast)

    def copy(self, text: str, label: str) -> bool:
        """
        Copy ``text`` and schedule the clipboard to be cleared.

        A new copy replaces any pending clear. Returns False if the write
        failed, in which case a "Failed to copy" toast is shown instead.
        """
        try:
            self._clipboard.write(text)
        except Exception as e:
            logger.warning(f"Copying {label} to clipboard failed: {type(e).__name__}")
            self._show_toast(config.TOAST_COPY_FAILED)
            return False

        self._generation += 1
        self._armed_generation = self._generation
        self._last_written = text

        self._clear_timer.stop()
        self._clear_timer.start(self.clear_after_ms)
        self._show_toast(config.TOAST_COPIED.format(label=label))
        return True

    def is_clear_pending(self) -> bool:
        return self._clear_timer.isActive()

    def flush(self) -> bool:
        """Run the pending compare-and-clear now. Used when the vault locks."""
        self._clear_timer.stop()
        return self._clear_if_unchanged()

    def cancel(self) -> None:
        """Stop all timers without touching the clipboard."""
        self._clear_timer.stop()
        self._armed_generation = None
        self._last_written = None
        if self.toast is not None:
            self.dismiss_toast()
        self._toast_timer.stop()

    def dismiss_toast(self) -> None:
        self._toast_timer.stop()
        self.toast = None
        self.toast_changed.emit("")

    def _show_toast(self, message: str) -> None:
        self.toast = message
        self.toast_changed.emit(message)
        self._toast_timer.stop()
        self._toast_timer.start(self.toast_ms)

    def _on_clear_timeout(self) -> None:
        self._clear_if_unchanged()

    def _clear_if_unchanged(self) -> bool:
        generation, expected = self._armed_generation, self._last_written
        self._armed_generation = None
        self._last_written = None

        # A newer copy owns the clipboard now
        if generation is None or generation != self._generation or expected is None:
            return False

        try:
            if self._clipboard.read() != expected:
                return False
            self._clipboard.write("")
        except Exception as e:
            logger.debug(f"Clipboard clear skipped: {type(e).__name__}")
            return False

        self.cleared.emit()
        return True
