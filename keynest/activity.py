"""
Translates Qt input events into idle-timer resets.
"""

from PyQt5.QtCore import QEvent, QObject
from PyQt5.QtWidgets import QApplication

# Qt event type -> activity signal name in config.ACTIVITY_EVENTS
ACTIVITY_EVENT_TYPES = {
    QEvent.MouseMove: "pointer-move",
    QEvent.MouseButtonPress: "pointer-down",
    QEvent.KeyPress: "key-press",
    QEvent.TouchBegin: "touch-start",
    QEvent.Wheel: "scroll",
}


class ActivityFilter(QObject):
    """Event filter that reports user activity to a VaultSession."""

    def __init__(self, session, parent=None):
        super().__init__(parent)
        self.session = session

    def install(self, target=None) -> None:
        """Watch ``target``, or every event of the running application."""
        (target or QApplication.instance()).installEventFilter(self)

    def uninstall(self, target=None) -> None:
        (target or QApplication.instance()).removeEventFilter(self)

    def eventFilter(self, obj, event):
        """Reset the idle timer on user activity; never consumes the event."""
        kind = ACTIVITY_EVENT_TYPES.get(event.type())
        if kind is not None:
            self.session.record_activity(kind)
        return super().eventFilter(obj, event)
