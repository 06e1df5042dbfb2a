"""Tests for the in-memory reference backend and the strength estimator."""

import pytest

from keynest import strength
from keynest.backend import MemoryBackend
from keynest.errors import (
    AuthenticationError, BackendError, NoVaultError, PasswordPolicyError, VaultExistsError,
)
from keynest.models import VaultData, new_entry

MASTER = "correct horse battery staple"


class TestMemoryBackend:

    def test_lifecycle(self):
        backend = MemoryBackend()
        assert not backend.vault_exists()
        with pytest.raises(NoVaultError):
            backend.unlock_vault(MASTER)
        backend.init_vault(MASTER)
        assert backend.vault_exists()
        data = backend.unlock_vault(MASTER)
        assert data.entries == []

        data.entries.append(new_entry(1, title="Mail"))
        backend.save_vault(data)
        backend.lock_vault()
        assert [e.title for e in backend.unlock_vault(MASTER).entries] == ["Mail"]

    def test_returned_vault_is_a_copy(self):
        backend = MemoryBackend()
        backend.init_vault(MASTER)
        backend.unlock_vault(MASTER).entries.append(new_entry(1))
        assert backend.unlock_vault(MASTER).entries == []

    def test_init_twice(self):
        backend = MemoryBackend()
        backend.init_vault(MASTER)
        with pytest.raises(VaultExistsError):
            backend.init_vault(MASTER)

    def test_short_master_password_rejected(self):
        with pytest.raises(PasswordPolicyError):
            MemoryBackend().init_vault("short")

    def test_wrong_password(self):
        backend = MemoryBackend()
        backend.init_vault(MASTER)
        with pytest.raises(AuthenticationError):
            backend.unlock_vault(MASTER + "!")

    def test_save_while_locked(self):
        backend = MemoryBackend()
        backend.init_vault(MASTER)
        with pytest.raises(BackendError):
            backend.save_vault(VaultData())

    def test_legacy_load(self):
        assert MemoryBackend().load_vault() is None
        legacy = MemoryBackend(VaultData(entries=[new_entry(1, title="Old")]))
        assert [e.title for e in legacy.load_vault().entries] == ["Old"]
        legacy.init_vault(MASTER)
        assert legacy.load_vault() is None


class TestStrength:

    def test_empty_password_scores_zero(self):
        assert strength.score("") == 0
        assert strength.feedback("").score == 0

    def test_common_password_is_weak(self):
        assert strength.score("password") < 3

    def test_long_random_password_is_strong(self):
        assert strength.score("vT7#qL2!mZ9@xR4$wK8^") == 4

    def test_feedback_shape(self):
        result = strength.feedback("password")
        assert result.score == strength.score("password")
        assert isinstance(result.warning, str)
        assert result.crack_time
