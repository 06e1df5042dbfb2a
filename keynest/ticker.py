"""
Per-second TOTP display ticker.
"""

import logging
import time
from typing import Callable, Optional

from PyQt5.QtCore import QObject, QTimer, pyqtSignal

from . import config
from .errors import InvalidSecretError
from .totp import TotpCode, generate_totp

logger = logging.getLogger(__name__)


class TotpTicker(QObject):
    """Recomputes the current code once per tick and publishes it."""

    code_changed = pyqtSignal(object)  # TotpCode
    invalid = pyqtSignal(str)

    def __init__(self, secret: str, issuer: Optional[str] = None, account: Optional[str] = None,
                 interval_ms: int = config.TOTP_TICK_MS, clock: Callable[[], float] = time.time,
                 parent=None):
        super().__init__(parent)
        self.secret = secret
        self.issuer = issuer
        self.account = account
        self.clock = clock
        self.current: Optional[TotpCode] = None
        self._timer = QTimer(self)
        self._timer.setInterval(interval_ms)
        self._timer.timeout.connect(self.refresh)

    def start(self) -> None:
        self.refresh()
        self._timer.start()

    def stop(self) -> None:
        self._timer.stop()

    def is_running(self) -> bool:
        return self._timer.isActive()

    def set_secret(self, secret: str, issuer: Optional[str] = None, account: Optional[str] = None) -> None:
        self.secret = secret
        self.issuer = issuer
        self.account = account
        self.refresh()

    def refresh(self) -> Optional[TotpCode]:
        """Compute the code for now. Emits ``invalid`` instead for a bad secret."""
        try:
            code = generate_totp(self.secret, self.issuer, self.account, now=self.clock())
        except InvalidSecretError as e:
            if self.current is not None:
                logger.debug("TOTP secret became invalid")
            self.current = None
            self.invalid.emit(str(e))
            return None
        self.current = code
        self.code_changed.emit(code)
        return code
