"""Session establishment and authentication."""

from .auth import (
    AuthService,
    CachedCredentialRepository,
    CredentialCache,
    CredentialRepository,
    FileCredentialCache,
    InMemoryCredentialRepository,
    SqlCredentialRepository,
    UserCredential,
    build_users_table,
    normalize_email,
)
from .manager import Session, SessionManager, build_credential_repository

__all__ = [
    "AuthService",
    "CachedCredentialRepository",
    "CredentialCache",
    "CredentialRepository",
    "FileCredentialCache",
    "InMemoryCredentialRepository",
    "Session",
    "SessionManager",
    "SqlCredentialRepository",
    "UserCredential",
    "build_credential_repository",
    "build_users_table",
    "normalize_email",
]
