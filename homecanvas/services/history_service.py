"""
Undo/redo history over generated scene images.

A HistoryStore is a list of entries with a cursor. Pushing after an undo
drops everything past the cursor, so there is no redo into an abandoned
branch. Persistence goes through any injected MutableMapping[str, str]
(a dict, a Redis-backed mapping, ...): state is read once on construction
and written after each change.
"""
import json
import logging
import threading
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, List, MutableMapping, Optional, Tuple, Union

from homecanvas.core.config import settings

logger = logging.getLogger(__name__)


def _new_entry_id() -> str:
    return f"item_{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class HistoryEntry:
    """One generated (or uploaded) scene state"""

    artifact: str  # Opaque image reference: data URL or URL
    entry_id: str = field(default_factory=_new_entry_id)
    created_at: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {"artifact": self.artifact, "entry_id": self.entry_id, "created_at": self.created_at}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryEntry":
        if not isinstance(data, dict) or not isinstance(data.get("artifact"), str):
            raise ValueError(f"History entry must be an object with a string artifact, got {data!r:.80}")
        try:
            entry_id = str(data.get("entry_id") or _new_entry_id())
            created_at = float(data.get("created_at") or time.time())
        except (TypeError, ValueError) as e:
            raise ValueError(f"History entry has an invalid entry_id or created_at: {e}") from e
        return cls(artifact=data["artifact"], entry_id=entry_id, created_at=created_at)


@dataclass(frozen=True)
class HistoryState:
    """Snapshot of a history store"""

    entries: Tuple[HistoryEntry, ...]
    cursor: int

    @property
    def can_undo(self) -> bool:
        return self.cursor > 0

    @property
    def can_redo(self) -> bool:
        return self.cursor < len(self.entries) - 1

    @property
    def current(self) -> Optional[HistoryEntry]:
        return self.entries[self.cursor] if self.entries else None


class HistoryStore:
    """Linear undo/redo history; every operation holds the store's lock"""

    def __init__(self, storage: Optional[MutableMapping[str, str]] = None, storage_key: str = "history"):
        self._lock = threading.RLock()
        self._entries: List[HistoryEntry] = []
        self._cursor = -1
        self.storage = storage
        self.storage_key = storage_key

        if storage is not None:
            self._load()

    def push(self, entry: Union[str, HistoryEntry]) -> HistoryEntry:
        """Append a new state at the cursor, discarding any redo branch"""
        if isinstance(entry, str):
            entry = HistoryEntry(artifact=entry)

        with self._lock:
            discarded = len(self._entries) - (self._cursor + 1)
            del self._entries[self._cursor + 1:]
            self._entries.append(entry)
            self._cursor = len(self._entries) - 1
            if discarded:
                logger.info(f"History {self.storage_key}: pruned {discarded} redo entries")
            self._persist()
            return entry

    def undo(self) -> Optional[HistoryEntry]:
        with self._lock:
            if self._cursor <= 0:
                return None
            self._cursor -= 1
            self._persist()
            return self._entries[self._cursor]

    def redo(self) -> Optional[HistoryEntry]:
        with self._lock:
            if self._cursor >= len(self._entries) - 1:
                return None
            self._cursor += 1
            self._persist()
            return self._entries[self._cursor]

    def current(self) -> Optional[HistoryEntry]:
        with self._lock:
            if self._cursor < 0:
                return None
            return self._entries[self._cursor]

    def reset(self) -> None:
        with self._lock:
            self._entries = []
            self._cursor = -1
            self._persist()

    def state(self) -> HistoryState:
        with self._lock:
            return HistoryState(entries=tuple(self._entries), cursor=self._cursor)

    @property
    def can_undo(self) -> bool:
        return self.state().can_undo

    @property
    def can_redo(self) -> bool:
        return self.state().can_redo

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def serialize(self) -> Dict[str, Any]:
        """Plain-data form for an external key-value store"""
        with self._lock:
            return {"entries": [entry.to_dict() for entry in self._entries], "cursor": self._cursor}

    @classmethod
    def deserialize(
        cls, data: Dict[str, Any], storage: Optional[MutableMapping[str, str]] = None, storage_key: str = "history"
    ) -> "HistoryStore":
        store = cls(storage=None, storage_key=storage_key)
        store.restore(data)
        store.storage = storage
        store._persist()
        return store

    def restore(self, data: Dict[str, Any]) -> None:
        """
        Replace the whole history with serialized data.

        Raises:
            ValueError: malformed data or a cursor outside the entries
        """
        if not isinstance(data, dict):
            raise ValueError("Serialized history must be an object")
        raw_entries = data.get("entries", [])
        if not isinstance(raw_entries, list):
            raise ValueError("Serialized history 'entries' must be a list")
        entries = [HistoryEntry.from_dict(item) for item in raw_entries]

        cursor = data.get("cursor", len(entries) - 1)
        if isinstance(cursor, bool) or not isinstance(cursor, int):
            raise ValueError(f"Serialized history cursor must be an integer, got {cursor!r}")
        if entries and not 0 <= cursor < len(entries):
            raise ValueError(f"Cursor {cursor} out of range for {len(entries)} entries")
        if not entries and cursor != -1:
            raise ValueError("Cursor must be -1 for an empty history")

        with self._lock:
            self._entries = entries
            self._cursor = cursor
            self._persist()

    def _load(self) -> None:
        raw = self.storage.get(self.storage_key)
        if not raw:
            return
        try:
            self.restore(json.loads(raw))
            logger.info(f"History {self.storage_key}: loaded {len(self._entries)} entries")
        except ValueError as e:
            logger.warning(f"History {self.storage_key}: ignoring unreadable stored state: {e}")

    def _persist(self) -> None:
        if self.storage is None:
            return
        self.storage[self.storage_key] = json.dumps(self.serialize())


class HistoryRegistry:
    """
    Per-session history stores sharing one storage backend.

    At most ``max_sessions`` stores stay in memory; the least recently used
    one is evicted past that. With an injected storage the evicted session
    is reloaded from it on next use. With the default in-memory storage the
    registry owns the data, so eviction drops the stored state as well.
    """

    def __init__(self, storage: Optional[MutableMapping[str, str]] = None, max_sessions: Optional[int] = None):
        self._owns_storage = storage is None
        self.storage = storage if storage is not None else {}
        self.max_sessions = max_sessions or settings.history_max_sessions
        self._stores: "OrderedDict[str, HistoryStore]" = OrderedDict()
        self._lock = threading.Lock()

    def _storage_key(self, session_id: str) -> str:
        return f"history:{session_id}"

    def get(self, session_id: str) -> HistoryStore:
        """Store for ``session_id``, created if the session is new"""
        with self._lock:
            store = self._stores.get(session_id)
            if store is None:
                store = HistoryStore(storage=self.storage, storage_key=self._storage_key(session_id))
                self._stores[session_id] = store
                self._evict()
            else:
                self._stores.move_to_end(session_id)
            return store

    def find(self, session_id: str) -> Optional[HistoryStore]:
        """Store for ``session_id`` if it has any history, without creating one"""
        with self._lock:
            store = self._stores.get(session_id)
            if store is not None:
                self._stores.move_to_end(session_id)
                return store
            if self._storage_key(session_id) not in self.storage:
                return None
        return self.get(session_id)

    def discard(self, session_id: str) -> None:
        """Forget a session entirely, in memory and in storage"""
        with self._lock:
            self._stores.pop(session_id, None)
            self.storage.pop(self._storage_key(session_id), None)
        logger.info(f"History {self._storage_key(session_id)}: discarded")

    def __len__(self) -> int:
        with self._lock:
            return len(self._stores)

    def _evict(self) -> None:
        while len(self._stores) > self.max_sessions:
            session_id, _ = self._stores.popitem(last=False)
            if self._owns_storage:
                self.storage.pop(self._storage_key(session_id), None)
            logger.info(f"History {self._storage_key(session_id)}: evicted least recently used session")


# Global registry, in-memory unless the app injects another storage
history_registry = HistoryRegistry()
