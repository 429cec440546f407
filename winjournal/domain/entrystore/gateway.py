"""Collection backends: local cache, in-memory store and SQL remote store."""

from __future__ import annotations

import hashlib
import json
import os
import tempfile
from pathlib import Path
from threading import RLock
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    MetaData,
    String,
    Table,
    select,
)
from sqlalchemy import exc as sa_exc
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine

from ...infra.logging import get_logger
from ..errors import RemoteConnectivityError, RemoteStoreError
from .models import Entry, utcnow

__all__ = [
    "CollectionBackend",
    "LocalCache",
    "SubscribableBackend",
    "ChangeListener",
    "Unsubscribe",
    "InMemoryCollectionStore",
    "FileCollectionCache",
    "SqlCollectionStore",
    "classify_remote_error",
    "build_collections_table",
    "entries_to_payload",
    "payload_to_entries",
]

logger = get_logger(__name__)

ChangeListener = Callable[[List[Entry]], None]
Unsubscribe = Callable[[], None]

COLLECTIONS_TABLE = "win_collections"
_CONNECTIVITY_ERRORS = (
    sa_exc.OperationalError,
    sa_exc.InterfaceError,
    sa_exc.DisconnectionError,
    sa_exc.TimeoutError,
)


class CollectionBackend(Protocol):  # pragma: no cover
    """Durable copy of one session's entry collection."""

    def read_collection(self, session_id: str) -> Optional[List[Entry]]:
        """Return the stored collection, or ``None`` when nothing is stored."""

    def write_collection(self, session_id: str, entries: Sequence[Entry]) -> None:
        """Replace the stored collection.

        Remote implementations raise :class:`RemoteConnectivityError` when
        unreachable and :class:`RemoteStoreError` on any other refusal.
        """


class LocalCache(CollectionBackend, Protocol):  # pragma: no cover
    """Local tier that also remembers whether the remote copy is behind."""

    def mark_pending_sync(self, session_id: str, pending: bool) -> None: ...

    def has_pending_sync(self, session_id: str) -> bool: ...


class SubscribableBackend(CollectionBackend, Protocol):  # pragma: no cover
    """Backend that can push collection changes to a listener."""

    def subscribe(self, session_id: str, on_change: ChangeListener) -> Unsubscribe: ...


def entries_to_payload(entries: Sequence[Entry]) -> List[Dict[str, Any]]:
    return [entry.to_dict() for entry in entries]


def payload_to_entries(payload: Sequence[Dict[str, Any]]) -> List[Entry]:
    return [Entry.from_dict(item) for item in payload]


class InMemoryCollectionStore(SubscribableBackend, LocalCache):
    """Dict-backed store used for local development and tests."""

    def __init__(self) -> None:
        self._lock = RLock()
        self._collections: Dict[str, List[Entry]] = {}
        self._listeners: Dict[str, List[ChangeListener]] = {}
        self._pending_sync: set[str] = set()

    def read_collection(self, session_id: str) -> Optional[List[Entry]]:
        with self._lock:
            stored = self._collections.get(session_id)
            return list(stored) if stored is not None else None

    def write_collection(self, session_id: str, entries: Sequence[Entry]) -> None:
        snapshot = list(entries)
        with self._lock:
            self._collections[session_id] = snapshot
            listeners = list(self._listeners.get(session_id, ()))
        for listener in listeners:
            listener(list(snapshot))

    def subscribe(self, session_id: str, on_change: ChangeListener) -> Unsubscribe:
        with self._lock:
            self._listeners.setdefault(session_id, []).append(on_change)

        def _unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(session_id, [])
                if on_change in listeners:
                    listeners.remove(on_change)

        return _unsubscribe

    def mark_pending_sync(self, session_id: str, pending: bool) -> None:
        with self._lock:
            if pending:
                self._pending_sync.add(session_id)
            else:
                self._pending_sync.discard(session_id)

    def has_pending_sync(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._pending_sync

    def listener_count(self, session_id: str) -> int:
        with self._lock:
            return len(self._listeners.get(session_id, ()))


class FileCollectionCache(LocalCache):
    """Local cache keeping one JSON file per session under ``root``."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).expanduser()

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, session_id: str) -> Path:
        digest = hashlib.sha256(session_id.encode("utf-8")).hexdigest()
        return self._root / f"{digest}.json"

    def mark_pending_sync(self, session_id: str, pending: bool) -> None:
        marker = self.path_for(session_id).with_suffix(".pending")
        if pending:
            marker.parent.mkdir(parents=True, exist_ok=True)
            marker.touch(exist_ok=True)
        else:
            marker.unlink(missing_ok=True)

    def has_pending_sync(self, session_id: str) -> bool:
        return self.path_for(session_id).with_suffix(".pending").exists()

    def read_collection(self, session_id: str) -> Optional[List[Entry]]:
        path = self.path_for(session_id)
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as handle:
                document = json.load(handle)
            return payload_to_entries(document.get("wins") or [])
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.warning(
                "local_cache_corrupt",
                extra={"path": str(path), "error": str(exc)},
            )
            return None

    def write_collection(self, session_id: str, entries: Sequence[Entry]) -> None:
        path = self.path_for(session_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        document = {"user": session_id, "wins": entries_to_payload(entries)}
        fd, tmp_name = tempfile.mkstemp(
            dir=str(path.parent), prefix=".wins-", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(document, handle, ensure_ascii=False, indent=2)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


def build_collections_table(metadata: MetaData | None = None) -> Table:
    """Table definition matching the `win_collections` migration."""

    return Table(
        COLLECTIONS_TABLE,
        metadata or MetaData(),
        Column("session_id", String(length=320), primary_key=True),
        Column("wins", JSON(), nullable=False),
        Column("updated_at", DateTime(timezone=True), nullable=False),
    )


def classify_remote_error(exc: BaseException) -> RemoteStoreError:
    """Map a driver/SQLAlchemy failure onto the sync error taxonomy."""

    if isinstance(exc, RemoteStoreError):
        return exc
    connection_invalidated = bool(getattr(exc, "connection_invalidated", False))
    if (
        isinstance(exc, _CONNECTIVITY_ERRORS)
        or connection_invalidated
        or isinstance(exc, (OSError, TimeoutError))
    ):
        return RemoteConnectivityError(
            "Remote store unreachable",
            details={"cause": type(exc).__name__},
        )
    return RemoteStoreError(
        "Remote store rejected the request",
        details={"cause": type(exc).__name__},
    )


class SqlCollectionStore(CollectionBackend):
    """SQLAlchemy-backed remote store holding each collection as a JSON row."""

    def __init__(
        self,
        engine: Engine,
        *,
        table: Optional[Table] = None,
    ) -> None:
        self._engine = engine
        self._table = table if table is not None else build_collections_table()

    @property
    def table(self) -> Table:
        return self._table

    def read_collection(self, session_id: str) -> Optional[List[Entry]]:
        stmt = select(self._table.c.wins).where(
            self._table.c.session_id == session_id
        )
        try:
            with self._engine.begin() as conn:
                row = conn.execute(stmt).mappings().first()
        except (sa_exc.SQLAlchemyError, OSError) as exc:
            raise classify_remote_error(exc) from exc
        if row is None:
            return None
        try:
            return payload_to_entries(row["wins"] or [])
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            raise RemoteStoreError(
                "Remote collection is malformed",
                details={"cause": type(exc).__name__, "session_id": session_id},
            ) from exc

    def write_collection(self, session_id: str, entries: Sequence[Entry]) -> None:
        values = {
            "session_id": session_id,
            "wins": entries_to_payload(entries),
            "updated_at": utcnow(),
        }
        insert_fn = (
            pg_insert if self._engine.dialect.name == "postgresql" else sqlite_insert
        )
        stmt = insert_fn(self._table).values(values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[self._table.c.session_id],
            set_={
                "wins": stmt.excluded.wins,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        try:
            with self._engine.begin() as conn:
                conn.execute(stmt)
        except (sa_exc.SQLAlchemyError, OSError) as exc:
            raise classify_remote_error(exc) from exc
