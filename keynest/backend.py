"""
Storage backend interface.

The engine never touches disk, ciphertext or key derivation. It talks to a
backend that opens, closes, reads and writes the vault document for it.
MemoryBackend is a reference implementation that keeps the document in
process memory; it is used for demo vaults and tests.
"""

import copy
import logging
import os
import secrets
import threading
from abc import ABC, abstractmethod
from typing import Optional

from cryptography.hazmat.primitives import hashes

from . import config
from .errors import (
    AuthenticationError, BackendError, NoVaultError, PasswordPolicyError, VaultExistsError,
)
from .models import VaultData

logger = logging.getLogger(__name__)


class StorageBackend(ABC):
    """Collaborator that persists the vault document, keyed by a master secret."""

    @abstractmethod
    def vault_exists(self) -> bool:
        """Whether a vault has been created."""

    @abstractmethod
    def init_vault(self, master_password: str) -> None:
        """
        Create a new, empty vault.

        Raises:
            VaultExistsError: If a vault already exists
            PasswordPolicyError: If the master password is rejected
        """

    @abstractmethod
    def unlock_vault(self, master_password: str) -> VaultData:
        """
        Open the vault and return its decrypted contents.

        Raises:
            AuthenticationError: If the master password is wrong
        """

    @abstractmethod
    def lock_vault(self) -> None:
        """Close the vault and forget the master key."""

    @abstractmethod
    def save_vault(self, data: VaultData) -> None:
        """Persist the full vault document."""

    def load_vault(self) -> Optional[VaultData]:
        """Legacy unencrypted load path. Backends without one return None."""
        return None


def _digest(salt: bytes, master_password: str) -> bytes:
    h = hashes.Hash(hashes.SHA256())
    h.update(salt)
    h.update(master_password.encode('utf-8'))
    return h.finalize()


class MemoryBackend(StorageBackend):
    """Keeps the vault document in memory. Nothing survives the process."""

    def __init__(self, initial: Optional[VaultData] = None):
        self._lock = threading.Lock()
        self._salt = os.urandom(16)
        self._verifier: Optional[bytes] = None
        self._document: Optional[dict] = initial.to_dict() if initial is not None else None
        self._unlocked = False

    def vault_exists(self) -> bool:
        with self._lock:
            return self._verifier is not None

    def init_vault(self, master_password: str) -> None:
        with self._lock:
            if self._verifier is not None:
                raise VaultExistsError("A vault already exists")
            if len(master_password) < config.PASSWORD_MIN_LENGTH:
                raise PasswordPolicyError(
                    f"Master password must be at least {config.PASSWORD_MIN_LENGTH} characters long"
                )
            self._verifier = _digest(self._salt, master_password)
            if self._document is None:
                self._document = VaultData().to_dict()
            logger.info("Created new in-memory vault")

    def unlock_vault(self, master_password: str) -> VaultData:
        with self._lock:
            if self._verifier is None:
                raise NoVaultError("No vault exists")
            if not secrets.compare_digest(self._verifier, _digest(self._salt, master_password)):
                raise AuthenticationError("Wrong master password")
            self._unlocked = True
            return VaultData.from_dict(copy.deepcopy(self._document))

    def lock_vault(self) -> None:
        with self._lock:
            self._unlocked = False

    def is_unlocked(self) -> bool:
        with self._lock:
            return self._unlocked

    def save_vault(self, data: VaultData) -> None:
        with self._lock:
            if not self._unlocked:
                raise BackendError("Vault is locked")
            self._document = data.to_dict()

    def load_vault(self) -> Optional[VaultData]:
        with self._lock:
            if self._document is None or self._verifier is not None:
                return None
            self._unlocked = True
            return VaultData.from_dict(copy.deepcopy(self._document))

    def stored(self) -> Optional[VaultData]:
        """Copy of the last persisted document, regardless of lock state."""
        with self._lock:
            if self._document is None:
                return None
            return VaultData.from_dict(copy.deepcopy(self._document))
