"""
Background workers for backend calls that must not block the UI thread.
"""

import logging

from PyQt5.QtCore import QThread, pyqtSignal

from .backend import StorageBackend
from .models import VaultData

logger = logging.getLogger(__name__)


class SaveWorker(QThread):
    """Worker thread for one vault save."""

    saved = pyqtSignal(int)
    error = pyqtSignal(int, str)

    def __init__(self, backend: StorageBackend, data: VaultData, generation: int, parent=None):
        super().__init__(parent)
        self.backend = backend
        self.data = data
        self.generation = generation

    def run(self):
        """Run the save."""
        try:
            self.backend.save_vault(self.data)
            self.saved.emit(self.generation)
        except Exception as e:
            logger.error(f"Saving vault (generation {self.generation}) failed: {type(e).__name__}", exc_info=True)
            self.error.emit(self.generation, str(e))
