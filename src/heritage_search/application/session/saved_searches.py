"""
Saved Searches - per-source bookmarks of query parameters.

Entries live in a key-value storage under ``heritage:saved-searches:<source>``
as a JSON array, newest first, at most 50 per source. Saving a query whose
parameters equal an existing entry moves it to the top instead of adding a
duplicate. Reads are tolerant: corrupt payloads and malformed entries are
skipped. Storage failures are logged and never raised to the caller.

Example:
    store = SavedSearchStore(JsonFileStorage(data_dir / "saved.json"))
    store.save("harvard", {"q": "prints", "century": "19th"}, label="  Prints ")
    [entry.label for entry in store.list("harvard")]   # ["Prints"]
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from collections.abc import Mapping

    from heritage_search.application.search.codec import QueryCodec
    from heritage_search.models import QueryState

logger = logging.getLogger(__name__)

STORAGE_PREFIX = "heritage:saved-searches:"
MAX_ENTRIES_PER_SOURCE = 50


# =============================================================================
# Storage backends
# =============================================================================


class KeyValueStorage(Protocol):
    """String key-value storage (localStorage-like)."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryStorage:
    """Process-local storage, mainly for tests and ephemeral sessions."""

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def __len__(self) -> int:
        return len(self._data)


class JsonFileStorage:
    """
    Storage persisted as a single JSON object on disk.

    The file is read lazily and rewritten on every change. A missing file
    is an empty storage; an unreadable one is treated the same way and
    overwritten on the next write.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._data: dict[str, str] | None = None

    def _load(self) -> dict[str, str]:
        if self._data is not None:
            return self._data
        data: dict[str, str] = {}
        if self.path.exists():
            try:
                raw = json.loads(self.path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                logger.warning(f"Ignoring unreadable storage file {self.path}: {e}")
            else:
                if isinstance(raw, dict):
                    data = {k: v for k, v in raw.items() if isinstance(k, str) and isinstance(v, str)}
        self._data = data
        return data

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self._load(), ensure_ascii=False, indent=2), encoding="utf-8")

    def get_item(self, key: str) -> str | None:
        return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        self._load()[key] = value
        self._flush()

    def remove_item(self, key: str) -> None:
        if self._load().pop(key, None) is not None:
            self._flush()


# =============================================================================
# Saved searches
# =============================================================================


@dataclass(frozen=True)
class SavedSearch:
    id: str
    created_at: int
    query: dict[str, str] = field(default_factory=dict)
    label: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "createdAt": self.created_at, "query": dict(self.query)}
        if self.label is not None:
            data["label"] = self.label
        return data

    @classmethod
    def from_dict(cls, data: Any) -> SavedSearch | None:
        """Parse one stored entry; None when it is malformed."""
        if not isinstance(data, dict):
            return None
        entry_id = data.get("id")
        created_at = data.get("createdAt")
        query = data.get("query")
        if not isinstance(entry_id, str):
            return None
        if isinstance(created_at, bool) or not isinstance(created_at, int | float):
            return None
        if not isinstance(query, dict):
            return None
        return cls(
            id=entry_id,
            created_at=int(created_at),
            query={k: v for k, v in query.items() if isinstance(k, str) and isinstance(v, str)},
            label=_clean_label(data.get("label")),
        )

    def to_query_state(self, codec: QueryCodec) -> QueryState:
        return codec.parse(self.query)


def _clean_label(label: Any) -> str | None:
    if not isinstance(label, str):
        return None
    return label.strip() or None


def sanitize_query(query: Mapping[str, Any]) -> dict[str, str]:
    """Drop blank keys and blank or non-string values; trim the rest."""
    normalized: dict[str, str] = {}
    for key, value in query.items():
        if not isinstance(key, str) or not key.strip():
            continue
        trimmed = value.strip() if isinstance(value, str) else ""
        if trimmed:
            normalized[key] = trimmed
    return normalized


def _new_id() -> str:
    return f"{time.time_ns() // 1_000_000:x}-{uuid.uuid4().hex[:8]}"


class SavedSearchStore:
    """
    Saved searches grouped by source key.

    Args:
        storage: Key-value backend
        prefix: Storage key prefix
        max_entries: Entries kept per source
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        prefix: str = STORAGE_PREFIX,
        max_entries: int = MAX_ENTRIES_PER_SOURCE,
    ) -> None:
        self._storage = storage
        self._prefix = prefix
        self._max_entries = max_entries

    def storage_key(self, source: str) -> str:
        return f"{self._prefix}{source}"

    def list(self, source: str) -> list[SavedSearch]:
        """Entries for ``source``, newest first."""
        try:
            raw = self._storage.get_item(self.storage_key(source))
        except Exception as e:
            logger.warning(f"Could not read saved searches for {source}: {e}")
            return []
        if not raw:
            return []
        try:
            parsed = json.loads(raw)
        except ValueError:
            logger.warning(f"Discarding corrupt saved searches for {source}")
            return []
        if not isinstance(parsed, list):
            return []

        entries = [entry for entry in map(SavedSearch.from_dict, parsed) if entry is not None]
        entries.sort(key=lambda e: e.created_at, reverse=True)
        return entries

    def save(self, source: str, query: Mapping[str, Any], label: str | None = None) -> SavedSearch:
        """Save ``query`` at the top of the list, replacing an identical entry."""
        normalized = sanitize_query(query)
        entries = [e for e in self.list(source) if e.query != normalized]
        saved = SavedSearch(
            id=_new_id(),
            created_at=time.time_ns() // 1_000_000,
            query=normalized,
            label=_clean_label(label),
        )
        self._write(source, [saved, *entries])
        return saved

    def save_state(self, source: str, state: QueryState, codec: QueryCodec, label: str | None = None) -> SavedSearch:
        """Save a QueryState through its canonical parameters; facet values are comma-joined per key."""
        joined: dict[str, list[str]] = {}
        for key, value in codec.serialize(state):
            joined.setdefault(key, []).append(value)
        return self.save(source, {key: ",".join(values) for key, values in joined.items()}, label)

    def delete(self, source: str, entry_id: str) -> bool:
        entries = self.list(source)
        remaining = [e for e in entries if e.id != entry_id]
        if len(remaining) == len(entries):
            return False
        self._write(source, remaining)
        return True

    def _write(self, source: str, entries: list[SavedSearch]) -> None:
        payload = json.dumps([e.to_dict() for e in entries[: self._max_entries]], ensure_ascii=False)
        try:
            self._storage.set_item(self.storage_key(source), payload)
        except Exception as e:
            logger.warning(f"Could not write saved searches for {source}: {e}")
