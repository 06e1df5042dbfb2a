"""
Shared fixtures: a recording backend, a fake clipboard and a session with
shortened timers.
"""

import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import threading
import time

import pytest

from keynest.backend import MemoryBackend
from keynest.clipboard import Clipboard
from keynest.errors import BackendError
from keynest.models import VaultData, new_entry
from keynest.session import VaultSession

MASTER = "correct horse battery staple"

# Shortened timings for event-loop driven tests (ms)
IDLE_MS = 300
DEBOUNCE_MS = 100
SAVED_DISPLAY_MS = 150
CLEAR_MS = 200
TOAST_MS = 100


class FakeClipboard(Clipboard):
    """In-memory clipboard that can be told to fail."""

    def __init__(self):
        self.text = ""
        self.writes = []
        self.fail_write = False
        self.fail_read = False

    def write(self, text: str) -> None:
        if self.fail_write:
            raise OSError("clipboard unavailable")
        self.text = text
        self.writes.append(text)

    def read(self) -> str:
        if self.fail_read:
            raise OSError("clipboard unavailable")
        return self.text


class RecordingBackend(MemoryBackend):
    """MemoryBackend that records saves and can be slowed down or broken."""

    def __init__(self, initial=None):
        super().__init__(initial)
        self.saves = []
        self.save_delays = []
        self.fail_saves = False
        self.fail_lock = False
        self.lock_calls = 0
        self._record_lock = threading.Lock()

    def save_vault(self, data: VaultData) -> None:
        with self._record_lock:
            self.saves.append(data)
            delay = self.save_delays.pop(0) if self.save_delays else 0
        if delay:
            time.sleep(delay)
        if self.fail_saves:
            raise BackendError("disk full")
        super().save_vault(data)

    def lock_vault(self) -> None:
        self.lock_calls += 1
        if self.fail_lock:
            raise BackendError("backend unreachable")
        super().lock_vault()


@pytest.fixture
def clipboard():
    return FakeClipboard()


@pytest.fixture
def backend():
    b = RecordingBackend()
    b.init_vault(MASTER)
    return b


@pytest.fixture
def session(qtbot, backend, clipboard):
    s = VaultSession(
        backend,
        clipboard=clipboard,
        idle_timeout_ms=IDLE_MS,
        save_debounce_ms=DEBOUNCE_MS,
        saved_display_ms=SAVED_DISPLAY_MS,
        clipboard_clear_ms=CLEAR_MS,
        toast_ms=TOAST_MS,
    )
    yield s
    backend.fail_lock = False
    backend.fail_saves = False
    s.lock()
    s.teardown()


@pytest.fixture
def unlocked(session):
    session.unlock(MASTER)
    return session


def make_entry(password="", updated_at=None, totp_secret=None, **fields):
    if updated_at is None:
        updated_at = int(time.time() * 1000)
    return new_entry(updated_at, password=password, totp_secret=totp_secret, **fields)
