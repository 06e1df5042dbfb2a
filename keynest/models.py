"""
Vault data model.

Entries are plain dataclasses that round-trip through the dict form the
storage backend persists. Field names follow Python conventions in memory and
the backend's camelCase keys on the wire.
"""

import time
import uuid
from dataclasses import dataclass, field, fields
from typing import Any, Callable, Dict, List, Optional

from . import config
from .errors import EntryNotFoundError
from .tags import normalise_tags

# In-memory attribute -> wire key, for every key that differs
_WIRE_KEYS = {
    "totp_secret": "totpSecret",
    "totp_issuer": "totpIssuer",
    "totp_account": "totpAccount",
    "updated_at": "updatedAt",
}

# Fields a user may edit. id and updated_at are managed by the engine.
EDITABLE_FIELDS = (
    "title", "username", "password", "notes", "tags",
    "totp_secret", "totp_issuer", "totp_account",
)

# Fields captured in a history snapshot
SNAPSHOT_FIELDS = ("title", "username", "password", "notes", "tags", "totp_secret")


def now_ms(clock: Callable[[], float] = time.time) -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(clock() * 1000)


def next_timestamp(previous: int, now: int) -> int:
    """Timestamp for a save that must sort strictly after ``previous``."""
    return max(now, previous + 1)


def _to_wire(obj) -> Dict[str, Any]:
    data = {}
    for f in fields(obj):
        value = getattr(obj, f.name)
        if value is None:
            continue
        data[_WIRE_KEYS.get(f.name, f.name)] = value
    return data


def _from_wire(cls, data: Dict[str, Any]) -> Dict[str, Any]:
    kwargs = {}
    for f in fields(cls):
        key = _WIRE_KEYS.get(f.name, f.name)
        if key in data:
            kwargs[f.name] = data[key]
    return kwargs


@dataclass
class HistoryItem:
    """A snapshot of an entry's content before it was changed."""
    title: str
    username: str
    password: str
    updated_at: int
    notes: Optional[str] = None
    tags: Optional[List[str]] = None
    totp_secret: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = _to_wire(self)
        if self.tags is not None:
            data["tags"] = list(self.tags)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'HistoryItem':
        return cls(**_from_wire(cls, data))


@dataclass
class VaultEntry:
    """Represents a single credential record."""
    id: str
    title: str
    username: str
    password: str
    updated_at: int
    notes: Optional[str] = None
    tags: Optional[List[str]] = None
    totp_secret: Optional[str] = None
    totp_issuer: Optional[str] = None
    totp_account: Optional[str] = None
    history: List[HistoryItem] = field(default_factory=list)

    @property
    def has_totp(self) -> bool:
        return bool(self.totp_secret)

    def snapshot(self) -> HistoryItem:
        """Capture the current content as a history item."""
        return HistoryItem(
            title=self.title,
            username=self.username,
            password=self.password,
            updated_at=self.updated_at,
            notes=self.notes,
            tags=list(self.tags) if self.tags is not None else None,
            totp_secret=self.totp_secret,
        )

    def apply_changes(self, changes: Dict[str, Any], now: int) -> bool:
        """
        Apply user edits, recording the previous version in history.

        Args:
            changes: Mapping of EDITABLE_FIELDS names to new values
            now: Current time in epoch milliseconds

        Returns:
            True if anything changed, False for a no-op edit
        """
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot edit fields: {', '.join(sorted(unknown))}")

        if "tags" in changes and changes["tags"] is not None:
            changes = dict(changes, tags=normalise_tags(changes["tags"]))

        if all(getattr(self, name) == value for name, value in changes.items()):
            return False

        if any(getattr(self, name) != changes[name] for name in SNAPSHOT_FIELDS if name in changes):
            self._push_history(self.snapshot())

        for name, value in changes.items():
            setattr(self, name, value)
        self.updated_at = next_timestamp(self.updated_at, now)
        return True

    def restore(self, index: int, now: int) -> None:
        """
        Make history item ``index`` (0 = most recent) the current version.

        The content being replaced is pushed onto history first, so a restore
        can itself be undone.
        """
        if not 0 <= index < len(self.history):
            raise IndexError(f"No history item {index} for entry {self.id}")
        item = self.history.pop(index)
        self._push_history(self.snapshot())
        for name in SNAPSHOT_FIELDS:
            setattr(self, name, getattr(item, name))
        self.tags = list(item.tags) if item.tags is not None else None
        self.updated_at = next_timestamp(self.updated_at, now)

    def _push_history(self, item: HistoryItem) -> None:
        self.history.insert(0, item)
        del self.history[config.HISTORY_LIMIT:]

    def matches(self, query: str) -> bool:
        """Case-insensitive substring match over the searchable fields."""
        needle = query.strip().lower()
        if not needle:
            return True
        haystack = [self.title, self.username, self.notes or ""] + list(self.tags or [])
        return any(needle in value.lower() for value in haystack)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the backend's wire form."""
        data = _to_wire(self)
        if self.tags is not None:
            data["tags"] = list(self.tags)
        if self.history:
            data["history"] = [item.to_dict() for item in self.history]
        else:
            data.pop("history", None)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'VaultEntry':
        """Create from the backend's wire form."""
        kwargs = _from_wire(cls, data)
        kwargs["history"] = [HistoryItem.from_dict(h) for h in data.get("history") or []]
        return cls(**kwargs)


def new_entry(now: int, title: str = "New entry", username: str = "", password: str = "",
              **fields_) -> VaultEntry:
    """Create an entry with a fresh, never-reused id."""
    if "tags" in fields_ and fields_["tags"] is not None:
        fields_["tags"] = normalise_tags(fields_["tags"])
    return VaultEntry(
        id=str(uuid.uuid4()),
        title=title,
        username=username,
        password=password,
        updated_at=now,
        **fields_,
    )


@dataclass
class VaultData:
    """The full decrypted vault document."""
    version: int = config.VAULT_SCHEMA_VERSION
    entries: List[VaultEntry] = field(default_factory=list)

    def find(self, entry_id: str) -> VaultEntry:
        for entry in self.entries:
            if entry.id == entry_id:
                return entry
        raise EntryNotFoundError(entry_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "entries": [e.to_dict() for e in self.entries],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'VaultData':
        version = data.get("version")
        if version != config.VAULT_SCHEMA_VERSION:
            raise ValueError(f"Unsupported vault version: {version}")
        return cls(
            version=version,
            entries=[VaultEntry.from_dict(e) for e in data.get("entries", [])],
        )


def filter_entries(entries: List[VaultEntry], query: str) -> List[VaultEntry]:
    """Entries whose title, username, notes or tags contain ``query``."""
    return [e for e in entries if e.matches(query)]
