"""
In-memory registry of file-backed entries keyed by sanitized name.

A registry only grows or refreshes: entries are inserted or replaced as a unit,
never removed. Staleness is decided by comparing file modification times.
"""

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterator, Mapping


class NotFoundError(KeyError):
    """Raised when a name is not present in a registry."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "not found"


@dataclass(frozen=True)
class Entry:
    """
    One registered file.

    `extra` carries per-registry metadata (kind, title, ...) as a read-only
    mapping; `handler` is the invokable delivered to the host, if any, and is
    never serialized. Entries compare by value but are not hashable.
    """

    name: str
    source_path: Path
    modified_at: float
    extra: Mapping[str, Any] = field(default_factory=dict)
    handler: Any = field(default=None, compare=False, repr=False)

    __hash__ = None  # type: ignore[assignment]

    def __post_init__(self):
        object.__setattr__(self, "extra", MappingProxyType(dict(self.extra)))

    def get(self, key: str, default: Any = None) -> Any:
        return self.extra.get(key, default)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "file": str(self.source_path), **self.extra}


@dataclass(frozen=True)
class UpsertResult:
    is_new: bool
    changed: bool
    entry: Entry


class Registry:
    """Name -> Entry mapping that remembers insertion order."""

    def __init__(self, label: str = "entry"):
        self.label = label
        self._entries: dict[str, Entry] = {}

    def upsert_if_changed(
        self,
        name: str,
        source_path: Path,
        modified_at: float,
        handler: Any = None,
        **extra: Any,
    ) -> UpsertResult:
        """
        Insert or refresh `name` unless the stored entry is at least as recent.

        is_new is True only when no entry existed before; a refreshed entry
        reports is_new=False, changed=True. An unchanged file reports both False
        and leaves the registry untouched.
        """
        current = self._entries.get(name)
        if current is not None and current.modified_at >= modified_at:
            return UpsertResult(is_new=False, changed=False, entry=current)
        entry = Entry(name, source_path, modified_at, dict(extra), handler)
        self._entries[name] = entry
        return UpsertResult(is_new=current is None, changed=True, entry=entry)

    def is_stale(self, name: str, modified_at: float) -> bool:
        """True if `name` is unknown or stored with an older modification time."""
        current = self._entries.get(name)
        return current is None or current.modified_at < modified_at

    def put(self, entry: Entry) -> None:
        """Store entry as-is, without a staleness check."""
        self._entries[entry.name] = entry

    def get(self, name: str) -> Entry:
        try:
            return self._entries[name]
        except KeyError:
            raise NotFoundError(f"Unknown {self.label} '{name}'.") from None

    def has(self, name: str) -> bool:
        return name in self._entries

    def names(self) -> list[str]:
        return list(self._entries)

    def list(self) -> list[Entry]:
        return [*self._entries.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Entry]:
        return iter(self.list())
