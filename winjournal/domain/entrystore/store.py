"""Entry store owning the active session's newest-first collection."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from pathlib import Path
from threading import RLock
from typing import Callable, Iterable, List, Optional, Sequence

from sqlalchemy.engine import Engine

from ...config import Settings
from ...infra.db import get_engine
from ...infra.events import EventEmitter, JournalTopic, get_event_emitter
from ...infra.logging import get_logger
from ...infra.metrics import MetricsClient
from ..errors import DuplicateEntryError, EmptyTitleError, NoActiveSessionError
from .categories import CategorySet
from .gateway import (
    CollectionBackend,
    FileCollectionCache,
    LocalCache,
    SqlCollectionStore,
    Unsubscribe,
)
from .models import Entry, utcnow
from .sync import CollectionSync, LoadResult, SyncOutcome, SyncStatus

__all__ = ["EntryStore", "build_entry_store"]

logger = get_logger(__name__)

LOGOUT_FLUSH_TIMEOUT_SECONDS = 5.0


class EntryStore:
    """In-memory collection for one session, persisted through `CollectionSync`.

    Mutations finish their in-memory and local-cache effects before returning;
    remote writes are handed to the sync worker and never awaited here.
    """

    def __init__(
        self,
        *,
        local: LocalCache,
        remote: Optional[CollectionBackend] = None,
        categories: CategorySet,
        background_sync: bool = True,
        clock: Callable[[], datetime] = utcnow,
        event_emitter: EventEmitter | None = None,
        metrics: MetricsClient | None = None,
    ) -> None:
        self._categories = categories
        self._clock = clock
        self._event_emitter = event_emitter or get_event_emitter()
        self._sync = CollectionSync(
            local=local,
            remote=remote,
            background=background_sync,
            event_emitter=self._event_emitter,
            metrics=metrics,
        )
        self._lock = RLock()
        self._entries: List[Entry] = []
        self._session_id: Optional[str] = None
        self._unsubscribe: Optional[Unsubscribe] = None
        self._last_outcome: Optional[SyncOutcome] = None

    # ------------------------------------------------------------------
    # Session binding
    # ------------------------------------------------------------------
    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    @property
    def categories(self) -> CategorySet:
        return self._categories

    @property
    def sync_status(self) -> SyncStatus:
        return self._sync.status

    @property
    def last_outcome(self) -> Optional[SyncOutcome]:
        return self._last_outcome

    def consume_sync_notice(self) -> Optional[str]:
        return self._sync.consume_notice()

    def load(self, session_id: str) -> LoadResult:
        """Replace the in-memory collection with the stored copy for ``session_id``."""

        if self._session_id is not None and self._session_id != session_id:
            self._detach()
        elif self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        result = self._sync.load(session_id)
        with self._lock:
            self._session_id = session_id
            self._entries = list(result.entries)
        self._unsubscribe = self._sync.subscribe(
            session_id, self._remote_listener(session_id)
        )
        return result

    def close(
        self, *, flush_timeout: Optional[float] = LOGOUT_FLUSH_TIMEOUT_SECONDS
    ) -> None:
        """Tear down the session: drop listeners, queued writes and entries.

        Queued remote writes get ``flush_timeout`` seconds to land first; the
        local cache already holds the latest state either way.
        """

        if self._session_id is not None and not self._sync.flush(flush_timeout):
            logger.warning(
                "remote_sync_flush_timeout",
                extra={"session_id": self._session_id, "timeout": flush_timeout},
            )
        self._detach()

    def shutdown(self) -> None:
        """Close the session and stop the sync worker for good."""

        self.close()
        self._sync.shutdown()

    def _detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._sync.reset()
        with self._lock:
            previous = self._session_id
            self._session_id = None
            self._entries = []
        if previous is not None:
            logger.info("entry_store_detached", extra={"session_id": previous})

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def add(
        self,
        title: str,
        description: Optional[str] = "",
        category: Optional[str] = None,
    ) -> Entry:
        session_id = self._require_session()
        if not (title or "").strip():
            raise EmptyTitleError("Title is required")
        resolved_category = self._categories.resolve(category)
        entry = Entry.new(
            title=title,
            description=description,
            category=resolved_category,
            timestamp=self._clock(),
        )
        with self._lock:
            self._entries.insert(0, entry)
            self._persist(session_id, list(self._entries))
        logger.info(
            "win_added",
            extra={
                "session_id": session_id,
                "entry_id": entry.entry_id,
                "category": entry.category,
            },
        )
        self._event_emitter.emit(
            JournalTopic.WIN_ADDED,
            {"session_id": session_id, "entry_id": entry.entry_id},
        )
        return entry

    def remove(self, entry_id: str) -> bool:
        session_id = self._require_session()
        with self._lock:
            remaining = [entry for entry in self._entries if entry.entry_id != entry_id]
            if len(remaining) == len(self._entries):
                return False
            self._entries = remaining
            self._persist(session_id, list(remaining))
        logger.info(
            "win_removed", extra={"session_id": session_id, "entry_id": entry_id}
        )
        self._event_emitter.emit(
            JournalTopic.WIN_REMOVED, {"session_id": session_id, "entry_id": entry_id}
        )
        return True

    def clear(self) -> None:
        session_id = self._require_session()
        with self._lock:
            cleared = len(self._entries)
            self._entries = []
            self._persist(session_id, [])
        logger.info("wins_cleared", extra={"session_id": session_id, "count": cleared})
        self._event_emitter.emit(
            JournalTopic.WINS_CLEARED, {"session_id": session_id, "count": cleared}
        )

    def replace_all(self, entries: Iterable[Entry]) -> int:
        """Swap in a whole collection (backup restore); order is kept as given."""

        session_id = self._require_session()
        incoming: List[Entry] = []
        seen: set[str] = set()
        for entry in entries:
            if not entry.title.strip():
                raise EmptyTitleError(
                    "Title is required", details={"entry_id": entry.entry_id}
                )
            if entry.entry_id in seen:
                raise DuplicateEntryError(
                    f"Duplicate entry id {entry.entry_id}",
                    details={"entry_id": entry.entry_id},
                )
            seen.add(entry.entry_id)
            category = self._categories.resolve(entry.category)
            if category != entry.category:
                entry = replace(entry, category=category)
            incoming.append(entry)
        with self._lock:
            self._entries = incoming
            self._persist(session_id, list(incoming))
        logger.info(
            "wins_replaced", extra={"session_id": session_id, "count": len(incoming)}
        )
        self._event_emitter.emit(
            JournalTopic.WINS_REPLACED,
            {"session_id": session_id, "count": len(incoming)},
        )
        return len(incoming)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def list(self, category: Optional[str] = "all") -> List[Entry]:
        wanted = self._categories.resolve_filter(category)
        with self._lock:
            entries = list(self._entries)
        if wanted is None:
            return entries
        return [entry for entry in entries if entry.category == wanted]

    @property
    def entries(self) -> List[Entry]:
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait for queued remote writes (shutdown hooks and tests)."""

        return self._sync.flush(timeout)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _require_session(self) -> str:
        if self._session_id is None:
            raise NoActiveSessionError("No active session; log in first")
        return self._session_id

    def _persist(self, session_id: str, snapshot: Sequence[Entry]) -> None:
        # Called with self._lock held so snapshots are saved in mutation order.
        self._last_outcome = self._sync.save(session_id, snapshot)

    def _remote_listener(self, session_id: str) -> Callable[[List[Entry]], None]:
        def _on_change(entries: List[Entry]) -> None:
            with self._lock:
                if self._session_id != session_id:
                    return
                # Local writes still queued are newer than anything pushed back.
                if self._sync.has_pending_writes or entries == self._entries:
                    return
                self._entries = list(entries)
            self._sync.cache_remote_snapshot(session_id, entries)
            logger.info(
                "remote_collection_applied",
                extra={"session_id": session_id, "entries": len(entries)},
            )

        return _on_change


def build_entry_store(
    settings: Settings,
    *,
    engine: Engine | None = None,
    local: LocalCache | None = None,
    remote: CollectionBackend | None = None,
    event_emitter: EventEmitter | None = None,
    metrics: MetricsClient | None = None,
) -> EntryStore:
    """Factory wiring the configured backends into an `EntryStore`."""

    local_backend = local or FileCollectionCache(Path(settings.local_cache_path))
    remote_backend = remote
    if remote_backend is None and settings.storage.remote_enabled:
        remote_backend = SqlCollectionStore(
            engine or get_engine(settings.database_url)
        )
    return EntryStore(
        local=local_backend,
        remote=remote_backend,
        categories=CategorySet.from_config(settings.categories),
        background_sync=settings.storage.background_sync,
        event_emitter=event_emitter,
        metrics=metrics,
    )
