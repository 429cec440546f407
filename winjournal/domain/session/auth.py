"""Credential storage and verification for journal sessions."""

from __future__ import annotations

import hashlib
import json
import os
import re
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from threading import RLock
from typing import Dict, Optional, Protocol

import bcrypt
from sqlalchemy import Column, DateTime, MetaData, String, Table, insert, select
from sqlalchemy import exc as sa_exc
from sqlalchemy.engine import Engine

from ...infra.logging import get_logger
from ..entrystore.gateway import classify_remote_error
from ..entrystore.models import utcnow
from ..errors import (
    DuplicateUserError,
    InvalidCredentialsError,
    InvalidIdentityError,
    RemoteConnectivityError,
)

logger = get_logger(__name__)

USERS_TABLE = "users"
MIN_PASSWORD_LENGTH = 6
# bcrypt only looks at the first 72 bytes and newer releases refuse longer input.
MAX_PASSWORD_BYTES = 72
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass(frozen=True)
class UserCredential:
    email: str
    password_hash: str
    created_at: datetime

    def to_dict(self) -> Dict[str, str]:
        return {
            "email": self.email,
            "passwordHash": self.password_hash,
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, str]) -> "UserCredential":
        return cls(
            email=payload["email"],
            password_hash=payload["passwordHash"],
            created_at=datetime.fromisoformat(payload["createdAt"]),
        )


class CredentialRepository(Protocol):  # pragma: no cover - interface only
    """Persistence abstraction consumed by :class:`AuthService`."""

    def get(self, email: str) -> Optional[UserCredential]: ...

    def add(self, credential: UserCredential) -> None:
        """Store a new credential; raises :class:`DuplicateUserError` if taken."""


class CredentialCache(Protocol):  # pragma: no cover - interface only
    """Device-local copy of credentials that last verified against the remote."""

    def get(self, email: str) -> Optional[UserCredential]: ...

    def put(self, credential: UserCredential) -> None: ...


class InMemoryCredentialRepository(CredentialRepository, CredentialCache):
    def __init__(self) -> None:
        self._lock = RLock()
        self._users: Dict[str, UserCredential] = {}

    def get(self, email: str) -> Optional[UserCredential]:
        with self._lock:
            return self._users.get(email)

    def add(self, credential: UserCredential) -> None:
        with self._lock:
            if credential.email in self._users:
                raise DuplicateUserError(
                    "An account with this email already exists",
                    details={"email": credential.email},
                )
            self._users[credential.email] = credential

    def put(self, credential: UserCredential) -> None:
        with self._lock:
            self._users[credential.email] = credential


class FileCredentialCache(CredentialCache):
    """One JSON file per account under ``root``, named by email digest."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).expanduser()

    def path_for(self, email: str) -> Path:
        digest = hashlib.sha256(email.encode("utf-8")).hexdigest()
        return self._root / f"{digest}.json"

    def get(self, email: str) -> Optional[UserCredential]:
        path = self.path_for(email)
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as handle:
                return UserCredential.from_dict(json.load(handle))
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.warning(
                "credential_cache_corrupt",
                extra={"path": str(path), "error": str(exc)},
            )
            return None

    def put(self, credential: UserCredential) -> None:
        path = self.path_for(credential.email)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=str(path.parent), prefix=".cred-", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(credential.to_dict(), handle)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


def build_users_table(metadata: MetaData | None = None) -> Table:
    """Table definition matching the `users` migration."""

    return Table(
        USERS_TABLE,
        metadata or MetaData(),
        Column("email", String(length=320), primary_key=True),
        Column("password_hash", String(length=128), nullable=False),
        Column("created_at", DateTime(timezone=True), nullable=False),
    )


class SqlCredentialRepository(CredentialRepository):
    def __init__(self, engine: Engine, *, table: Optional[Table] = None) -> None:
        self._engine = engine
        self._table = table if table is not None else build_users_table()

    @property
    def table(self) -> Table:
        return self._table

    def get(self, email: str) -> Optional[UserCredential]:
        stmt = select(self._table).where(self._table.c.email == email)
        try:
            with self._engine.begin() as conn:
                row = conn.execute(stmt).mappings().first()
        except (sa_exc.SQLAlchemyError, OSError) as exc:
            raise classify_remote_error(exc) from exc
        if row is None:
            return None
        return UserCredential(
            email=row["email"],
            password_hash=row["password_hash"],
            created_at=row["created_at"],
        )

    def add(self, credential: UserCredential) -> None:
        stmt = insert(self._table).values(
            email=credential.email,
            password_hash=credential.password_hash,
            created_at=credential.created_at,
        )
        try:
            with self._engine.begin() as conn:
                conn.execute(stmt)
        except sa_exc.IntegrityError as exc:
            raise DuplicateUserError(
                "An account with this email already exists",
                details={"email": credential.email},
            ) from exc
        except (sa_exc.SQLAlchemyError, OSError) as exc:
            raise classify_remote_error(exc) from exc


class CachedCredentialRepository(CredentialRepository):
    """Remote account table with a local copy for logging in while offline.

    Every credential read from or written to the remote is copied into the
    cache. Lookups fall back to the cache only on connectivity failures, so
    an account the remote never confirmed cannot log in offline.
    """

    def __init__(self, remote: CredentialRepository, cache: CredentialCache) -> None:
        self._remote = remote
        self._cache = cache

    def get(self, email: str) -> Optional[UserCredential]:
        try:
            credential = self._remote.get(email)
        except RemoteConnectivityError as exc:
            cached = self._cache.get(email)
            if cached is None:
                raise
            logger.warning(
                "credential_lookup_offline",
                extra={"email": email, "cause": exc.details.get("cause")},
            )
            return cached
        if credential is not None:
            self._remember(credential)
        return credential

    def add(self, credential: UserCredential) -> None:
        self._remote.add(credential)
        self._remember(credential)

    def _remember(self, credential: UserCredential) -> None:
        try:
            self._cache.put(credential)
        except OSError:
            logger.exception(
                "credential_cache_write_failed", extra={"email": credential.email}
            )


def normalize_email(email: Optional[str]) -> str:
    normalized = (email or "").strip().lower()
    if not _EMAIL_RE.match(normalized):
        raise InvalidIdentityError(
            "A valid email address is required", details={"field": "email"}
        )
    return normalized


class AuthService:
    """Registers and verifies accounts with bcrypt-hashed passwords."""

    def __init__(self, repository: CredentialRepository) -> None:
        self._repository = repository

    def register(self, email: str, password: str) -> str:
        normalized = normalize_email(email)
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise InvalidIdentityError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
                details={"field": "password"},
            )
        secret = password.encode()
        if len(secret) > MAX_PASSWORD_BYTES:
            raise InvalidIdentityError(
                f"Password must be at most {MAX_PASSWORD_BYTES} bytes",
                details={"field": "password"},
            )
        password_hash = bcrypt.hashpw(secret, bcrypt.gensalt()).decode()
        self._repository.add(
            UserCredential(
                email=normalized, password_hash=password_hash, created_at=utcnow()
            )
        )
        logger.info("user_registered", extra={"email": normalized})
        return normalized

    def authenticate(self, email: str, password: str) -> str:
        normalized = normalize_email(email)
        secret = (password or "").encode()
        credential = None
        if len(secret) <= MAX_PASSWORD_BYTES:
            credential = self._repository.get(normalized)
        if credential is None or not bcrypt.checkpw(
            secret, credential.password_hash.encode()
        ):
            logger.warning("login_rejected", extra={"email": normalized})
            raise InvalidCredentialsError("Invalid email or password")
        return normalized
