"""Tests for VaultSession: lock state machine, idle lock, debounced saves and exposure."""

import base64

import pytest
from PyQt5 import sip
from PyQt5.QtCore import QCoreApplication, QEvent, QObject
from conftest import DEBOUNCE_MS, IDLE_MS, MASTER, SAVED_DISPLAY_MS

from keynest.activity import ActivityFilter
from keynest.backend import MemoryBackend
from keynest.errors import (
    AuthenticationError, EntryNotFoundError, InvalidSecretError, PasswordPolicyError,
    VaultExistsError, VaultLockedError,
)
from keynest.health import IssueType
from keynest.models import VaultData, new_entry
from keynest.session import SaveState, SessionState, VaultSession
from keynest.ticker import TotpTicker

RFC_SECRET = base64.b32encode(b"12345678901234567890").decode("ascii")


# ---------------------------------------------------------------------------
# Lock state machine
# ---------------------------------------------------------------------------


class TestUnlockLock:

    def test_starts_locked(self, session):
        assert session.state is SessionState.LOCKED
        with pytest.raises(VaultLockedError):
            session.vault

    def test_unlock(self, session):
        states = []
        session.state_changed.connect(states.append)
        session.unlock(MASTER)
        assert session.is_unlocked
        assert session.entries == []
        assert states == ["unlocked"]
        assert session.idle_lock_pending()

    def test_wrong_password(self, session):
        with pytest.raises(AuthenticationError):
            session.unlock("wrong password!!")
        assert session.state is SessionState.LOCKED
        assert not session.idle_lock_pending()

    def test_create_vault(self, qtbot, clipboard):
        session = VaultSession(MemoryBackend(), clipboard=clipboard)
        assert not session.vault_exists()
        session.create_vault(MASTER)
        assert session.is_unlocked
        assert session.vault_exists()
        session.lock()
        with pytest.raises(VaultExistsError):
            session.create_vault(MASTER)

    def test_create_vault_policy_rejection(self, qtbot, clipboard):
        session = VaultSession(MemoryBackend(), clipboard=clipboard)
        with pytest.raises(PasswordPolicyError):
            session.create_vault("short")
        assert session.state is SessionState.LOCKED

    def test_manual_lock_clears_vault(self, unlocked, backend):
        reasons = []
        unlocked.locked.connect(reasons.append)
        unlocked.add_entry(title="Mail", password="pw")
        assert unlocked.lock() is True
        assert reasons == ["manual"]
        assert not backend.is_unlocked()
        with pytest.raises(VaultLockedError):
            unlocked.vault

    def test_lock_is_idempotent(self, unlocked, backend):
        assert unlocked.lock()
        assert unlocked.lock()
        assert backend.lock_calls == 1

    def test_lock_clears_memory_even_if_backend_fails(self, unlocked, backend):
        backend.fail_lock = True
        assert unlocked.lock() is False
        assert unlocked.state is SessionState.LOCKED
        with pytest.raises(VaultLockedError):
            unlocked.vault

    def test_relock_and_unlock_restores_saved_entries(self, qtbot, unlocked):
        unlocked.add_entry(title="Mail", password="pw")
        unlocked.lock()
        unlocked.unlock(MASTER)
        assert [e.title for e in unlocked.entries] == ["Mail"]

    def test_open_legacy(self, qtbot, clipboard):
        legacy = VaultData(entries=[new_entry(1, title="Old")])
        session = VaultSession(MemoryBackend(legacy), clipboard=clipboard)
        assert session.open_legacy()
        assert [e.title for e in session.entries] == ["Old"]
        session.lock()

    def test_open_legacy_without_data(self, session):
        assert session.open_legacy() is False
        assert session.state is SessionState.LOCKED


# ---------------------------------------------------------------------------
# Idle auto-lock
# ---------------------------------------------------------------------------


class TestIdleLock:

    def test_locks_after_inactivity(self, qtbot, unlocked):
        with qtbot.waitSignal(unlocked.locked, timeout=IDLE_MS * 5) as blocker:
            pass
        assert blocker.args == ["timeout"]
        assert unlocked.state is SessionState.LOCKED

    def test_activity_restarts_countdown(self, qtbot, unlocked):
        qtbot.wait(IDLE_MS * 2 // 3)
        assert unlocked.record_activity("pointer-move")
        qtbot.wait(IDLE_MS * 2 // 3)
        assert unlocked.is_unlocked
        qtbot.waitUntil(lambda: not unlocked.is_unlocked, timeout=IDLE_MS * 5)

    def test_unknown_activity_is_ignored(self, unlocked):
        assert unlocked.record_activity("window-resize") is False

    def test_no_timer_while_locked(self, session):
        assert session.record_activity("key-press") is False
        assert not session.idle_lock_pending()

    def test_idle_lock_survives_backend_failure(self, qtbot, unlocked, backend):
        backend.fail_lock = True
        qtbot.waitUntil(lambda: not unlocked.is_unlocked, timeout=IDLE_MS * 5)
        with pytest.raises(VaultLockedError):
            unlocked.vault

    def test_activity_filter_reports_qt_events(self, qtbot):
        class Recorder:
            def __init__(self):
                self.kinds = []

            def record_activity(self, kind):
                self.kinds.append(kind)

        recorder = Recorder()
        target = QObject()
        activity = ActivityFilter(recorder)
        activity.install(target)
        for event_type in (QEvent.KeyPress, QEvent.Wheel, QEvent.Resize, QEvent.MouseButtonPress):
            QCoreApplication.sendEvent(target, QEvent(event_type))
        activity.uninstall(target)
        QCoreApplication.sendEvent(target, QEvent(QEvent.KeyPress))
        assert recorder.kinds == ["key-press", "scroll", "pointer-down"]


# ---------------------------------------------------------------------------
# Debounced persistence
# ---------------------------------------------------------------------------


class TestDebouncedSave:

    def test_burst_produces_single_save_of_final_state(self, qtbot, unlocked, backend):
        entry = unlocked.add_entry(title="one")
        qtbot.wait(DEBOUNCE_MS // 3)
        unlocked.update_entry(entry.id, title="two")
        qtbot.wait(DEBOUNCE_MS // 3)
        unlocked.update_entry(entry.id, title="three")
        qtbot.waitUntil(lambda: unlocked.save_state is SaveState.SAVED, timeout=2000)
        assert len(backend.saves) == 1
        assert backend.stored().entries[0].title == "three"

    def test_state_transitions(self, qtbot, unlocked):
        states = []
        unlocked.save_state_changed.connect(states.append)
        unlocked.add_entry(title="x")
        assert unlocked.save_state is SaveState.SAVING
        qtbot.waitUntil(lambda: unlocked.save_state is SaveState.IDLE, timeout=2000)
        assert states == ["saving", "saved", "idle"]

    def test_error_is_sticky_until_next_success(self, qtbot, unlocked, backend):
        backend.fail_saves = True
        entry = unlocked.add_entry(title="x")
        qtbot.waitUntil(lambda: unlocked.save_state is SaveState.ERROR, timeout=2000)
        qtbot.wait(SAVED_DISPLAY_MS * 2)
        assert unlocked.save_state is SaveState.ERROR

        backend.fail_saves = False
        unlocked.update_entry(entry.id, title="y")
        qtbot.waitUntil(lambda: unlocked.save_state is SaveState.SAVED, timeout=2000)

    def test_newest_save_wins_over_slow_one(self, qtbot, unlocked, backend):
        states = []
        unlocked.save_state_changed.connect(states.append)
        backend.save_delays = [0.3]
        entry = unlocked.add_entry(title="first")
        qtbot.waitUntil(lambda: len(backend.saves) == 1, timeout=2000)
        unlocked.update_entry(entry.id, title="second")
        qtbot.waitUntil(lambda: len(backend.saves) == 2, timeout=3000)
        qtbot.waitUntil(lambda: unlocked.save_state is SaveState.SAVED, timeout=3000)
        assert backend.stored().entries[0].title == "second"
        assert states.count("saved") == 1

    def test_lock_writes_pending_changes_before_locking(self, unlocked, backend):
        unlocked.add_entry(title="unsaved")
        unlocked.lock()
        assert len(backend.saves) == 1
        assert backend.stored().entries[0].title == "unsaved"

    def test_no_save_after_teardown(self, qtbot, unlocked, backend):
        unlocked.add_entry(title="x")
        unlocked.teardown()
        qtbot.wait(DEBOUNCE_MS * 3)
        assert backend.saves == []

    def test_session_can_be_destroyed_during_slow_save(self, qtbot, backend, clipboard):
        session = VaultSession(backend, clipboard=clipboard, save_debounce_ms=DEBOUNCE_MS)
        session.unlock(MASTER)
        backend.save_delays = [0.3]
        session.add_entry(title="slow")
        qtbot.waitUntil(lambda: len(backend.saves) == 1, timeout=2000)
        worker = session._save_worker
        assert worker is not None and worker.isRunning()

        session.teardown()
        assert worker.parent() is None
        sip.delete(session)

        assert worker.wait(2000)
        qtbot.wait(50)
        assert backend.stored().entries[0].title == "slow"

    def test_detached_save_result_is_not_reported(self, qtbot, unlocked, backend):
        states = []
        unlocked.save_state_changed.connect(states.append)
        backend.save_delays = [0.2]
        unlocked.add_entry(title="x")
        qtbot.waitUntil(lambda: len(backend.saves) == 1, timeout=2000)
        unlocked.teardown()
        qtbot.wait(400)
        assert states == ["saving"]

    def test_mutations_require_unlocked_vault(self, session):
        with pytest.raises(VaultLockedError):
            session.add_entry(title="x")
        with pytest.raises(VaultLockedError):
            session.schedule_save()


# ---------------------------------------------------------------------------
# Vault mutations
# ---------------------------------------------------------------------------


class TestMutations:

    def test_new_entries_are_prepended(self, unlocked):
        first = unlocked.add_entry(title="first")
        second = unlocked.add_entry(title="second")
        assert [e.id for e in unlocked.entries] == [second.id, first.id]

    def test_update_and_restore(self, unlocked):
        entry = unlocked.add_entry(title="Mail", password="one")
        assert unlocked.update_entry(entry.id, password="two")
        assert unlocked.update_entry(entry.id, password="two") is False
        unlocked.restore_history(entry.id, 0)
        assert unlocked.vault.find(entry.id).password == "one"

    def test_delete(self, unlocked):
        entry = unlocked.add_entry(title="gone")
        unlocked.delete_entry(entry.id)
        assert unlocked.entries == []
        with pytest.raises(EntryNotFoundError):
            unlocked.delete_entry(entry.id)

    def test_analyse_current_entries(self, unlocked):
        unlocked.add_entry(title="a", password="x")
        unlocked.add_entry(title="b", password="x")
        unlocked.add_entry(title="c", password="y")
        report = unlocked.analyse()
        assert report.count(IssueType.REUSED) == 2
        assert report.count(IssueType.NO_2FA) == 3


# ---------------------------------------------------------------------------
# Exposure
# ---------------------------------------------------------------------------


class TestExposure:

    def test_copy_fields(self, unlocked, clipboard):
        entry = unlocked.add_entry(title="Mail", username="kevin", password="hunter2")
        assert unlocked.copy_password(entry.id)
        assert clipboard.text == "hunter2"
        assert unlocked.copy_username(entry.id)
        assert clipboard.text == "kevin"
        assert unlocked.clipboard.toast == "Copied username to clipboard"

    def test_copy_totp(self, qtbot, backend, clipboard):
        session = VaultSession(backend, clipboard=clipboard, clock=lambda: 59.0)
        session.unlock(MASTER)
        entry = session.add_entry(title="2fa", totp_secret=RFC_SECRET)
        assert session.copy_totp(entry.id)
        assert clipboard.text == "287082"
        assert session.clipboard.toast == "Copied otp to clipboard"
        session.lock()

    def test_copy_totp_without_secret(self, unlocked):
        entry = unlocked.add_entry(title="no 2fa")
        with pytest.raises(InvalidSecretError):
            unlocked.copy_totp(entry.id)

    def test_lock_clears_copied_password(self, unlocked, clipboard):
        entry = unlocked.add_entry(title="Mail", password="hunter2")
        unlocked.copy_password(entry.id)
        unlocked.lock()
        assert clipboard.text == ""
        assert not unlocked.clipboard.is_clear_pending()

    def test_lock_keeps_user_clipboard(self, unlocked, clipboard):
        entry = unlocked.add_entry(title="Mail", password="hunter2")
        unlocked.copy_password(entry.id)
        clipboard.text = "user text"
        unlocked.lock()
        assert clipboard.text == "user text"

    def test_totp_ticker_stops_on_lock(self, qtbot, backend, clipboard):
        session = VaultSession(backend, clipboard=clipboard, clock=lambda: 1234567890.0)
        session.unlock(MASTER)
        ticker = session.totp_ticker(RFC_SECRET, "ACME", "alice")
        assert ticker.current.code == "005924"
        assert ticker.is_running()
        session.lock()
        assert not ticker.is_running()


def test_ticker_reports_invalid_secret(qtbot):
    ticker = TotpTicker("not base32!")
    with qtbot.waitSignal(ticker.invalid, timeout=500):
        ticker.start()
    assert ticker.current is None
    ticker.stop()
