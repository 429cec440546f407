"""Single active session bound to the entry store."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from threading import RLock
from typing import Callable, Optional

from sqlalchemy.engine import Engine

from ...config import Settings
from ...infra.db import get_engine
from ...infra.logging import get_logger
from ..entrystore.models import utcnow
from ..entrystore.store import EntryStore
from ..entrystore.sync import LoadResult
from ..errors import NoActiveSessionError
from .auth import (
    AuthService,
    CachedCredentialRepository,
    CredentialRepository,
    FileCredentialCache,
    InMemoryCredentialRepository,
    SqlCredentialRepository,
)

CREDENTIAL_CACHE_DIRNAME = "credentials"

logger = get_logger(__name__)


@dataclass(frozen=True)
class Session:
    session_id: str
    established_at: datetime


class SessionManager:
    """Establishes, exposes and tears down the one active session.

    Establishing a session loads its collection into the entry store; logging
    out closes the store so no remote update can reach a stale collection.
    """

    def __init__(
        self,
        *,
        auth: AuthService,
        store: EntryStore,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._auth = auth
        self._store = store
        self._clock = clock
        self._lock = RLock()
        self._current: Optional[Session] = None
        self._last_load: Optional[LoadResult] = None

    @property
    def current(self) -> Optional[Session]:
        with self._lock:
            return self._current

    @property
    def last_load(self) -> Optional[LoadResult]:
        return self._last_load

    @property
    def store(self) -> EntryStore:
        return self._store

    def require(self) -> Session:
        session = self.current
        if session is None:
            raise NoActiveSessionError("No active session; log in first")
        return session

    def signup(self, email: str, password: str) -> Session:
        session_id = self._auth.register(email, password)
        return self._establish(session_id, reason="signup")

    def login(self, email: str, password: str) -> Session:
        session_id = self._auth.authenticate(email, password)
        return self._establish(session_id, reason="login")

    def logout(self) -> bool:
        with self._lock:
            session = self._current
            if session is None:
                return False
            self._store.close()
            self._current = None
            self._last_load = None
        logger.info("session_closed", extra={"session_id": session.session_id})
        return True

    def _establish(self, session_id: str, *, reason: str) -> Session:
        with self._lock:
            if self._current is not None and self._current.session_id != session_id:
                self._store.close()
            self._last_load = self._store.load(session_id)
            self._current = Session(
                session_id=session_id, established_at=self._clock()
            )
        logger.info(
            "session_established",
            extra={
                "session_id": session_id,
                "reason": reason,
                "source": self._last_load.source,
                "entries": len(self._last_load.entries),
            },
        )
        return self._current


def build_credential_repository(
    settings: Settings, *, engine: Engine | None = None
) -> CredentialRepository:
    if settings.storage.remote_enabled:
        return CachedCredentialRepository(
            SqlCredentialRepository(engine or get_engine(settings.database_url)),
            FileCredentialCache(settings.local_cache_path / CREDENTIAL_CACHE_DIRNAME),
        )
    logger.warning(
        "credential_store_ephemeral",
        extra={"reason": "remote storage disabled; accounts live in memory"},
    )
    return InMemoryCredentialRepository()
