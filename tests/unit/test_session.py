"""Authentication and single-session lifecycle."""

from __future__ import annotations

from http import HTTPStatus

import pytest
from sqlalchemy import MetaData, create_engine
from sqlalchemy.pool import StaticPool

from winjournal.domain.entrystore import InMemoryCollectionStore
from winjournal.domain.errors import (
    DuplicateUserError,
    InvalidCredentialsError,
    InvalidIdentityError,
    NoActiveSessionError,
    RemoteConnectivityError,
)
from winjournal.domain.session import (
    AuthService,
    CachedCredentialRepository,
    FileCredentialCache,
    InMemoryCredentialRepository,
    SessionManager,
    SqlCredentialRepository,
    build_users_table,
    normalize_email,
)
from tests.helpers.stores import FlakyCredentials, FlakyRemote, build_store, utc_day

pytestmark = [pytest.mark.session]


def _manager(remote: FlakyRemote | None = None) -> SessionManager:
    return SessionManager(
        auth=AuthService(InMemoryCredentialRepository()),
        store=build_store(local=InMemoryCollectionStore(), remote=remote),
        clock=lambda: utc_day(5),
    )


def test_signup_establishes_session_and_loads_empty_collection() -> None:
    manager = _manager()

    session = manager.signup("  Ada@Example.com ", "s3cret-pw")

    assert session.session_id == "ada@example.com"
    assert session.established_at == utc_day(5)
    assert manager.current == session
    assert manager.store.session_id == "ada@example.com"
    assert manager.last_load is not None
    assert manager.last_load.entries == []


def test_signup_rejects_duplicates_and_bad_identities() -> None:
    manager = _manager()
    manager.signup("ada@example.com", "s3cret-pw")

    with pytest.raises(DuplicateUserError) as exc:
        manager.signup("ADA@example.com", "another-pw")
    assert exc.value.status_code == HTTPStatus.CONFLICT

    with pytest.raises(InvalidIdentityError):
        manager.signup("not-an-email", "s3cret-pw")
    with pytest.raises(InvalidIdentityError):
        manager.signup("grace@example.com", "short")


def test_login_verifies_password() -> None:
    manager = _manager()
    manager.signup("ada@example.com", "s3cret-pw")
    manager.logout()

    with pytest.raises(InvalidCredentialsError):
        manager.login("ada@example.com", "wrong-pw")
    with pytest.raises(InvalidCredentialsError):
        manager.login("nobody@example.com", "s3cret-pw")
    assert manager.current is None

    session = manager.login("ada@example.com", "s3cret-pw")
    assert session.session_id == "ada@example.com"


def test_logout_closes_store_and_unsubscribes_remote() -> None:
    remote = FlakyRemote()
    manager = _manager(remote)
    manager.signup("ada@example.com", "s3cret-pw")
    manager.store.add("Before logout")
    assert remote.listener_count("ada@example.com") == 1

    assert manager.logout() is True
    assert manager.logout() is False

    assert remote.listener_count("ada@example.com") == 0
    assert manager.store.session_id is None
    with pytest.raises(NoActiveSessionError):
        manager.require()
    with pytest.raises(NoActiveSessionError):
        manager.store.add("After logout")


def test_switching_users_keeps_collections_separate() -> None:
    manager = _manager(FlakyRemote())
    manager.signup("ada@example.com", "s3cret-pw")
    manager.store.add("Ada's win")
    manager.signup("grace@example.com", "s3cret-pw")

    assert manager.store.entries == []
    manager.store.add("Grace's win")

    manager.login("ada@example.com", "s3cret-pw")
    assert [entry.title for entry in manager.store.entries] == ["Ada's win"]


def test_relogin_same_user_does_not_duplicate_listeners() -> None:
    remote = FlakyRemote()
    manager = _manager(remote)
    manager.signup("ada@example.com", "s3cret-pw")
    manager.login("ada@example.com", "s3cret-pw")

    assert remote.listener_count("ada@example.com") == 1


def test_sql_credential_repository_round_trip() -> None:
    engine = create_engine(
        "sqlite://",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    metadata = MetaData()
    table = build_users_table(metadata)
    metadata.create_all(engine)
    auth = AuthService(SqlCredentialRepository(engine, table=table))

    auth.register("ada@example.com", "s3cret-pw")

    assert auth.authenticate("ADA@example.com", "s3cret-pw") == "ada@example.com"
    with pytest.raises(DuplicateUserError):
        auth.register("ada@example.com", "s3cret-pw")
    with pytest.raises(InvalidCredentialsError):
        auth.authenticate("ada@example.com", "nope-nope")


def test_normalize_email() -> None:
    assert normalize_email(" Grace@Navy.MIL ") == "grace@navy.mil"
    for bad in (None, "", "grace", "grace@", "@navy.mil", "gr ace@navy.mil"):
        with pytest.raises(InvalidIdentityError):
            normalize_email(bad)


def test_passwords_longer_than_bcrypt_limit_are_rejected_cleanly() -> None:
    auth = AuthService(InMemoryCredentialRepository())

    with pytest.raises(InvalidIdentityError) as exc:
        auth.register("ada@example.com", "x" * 100)
    assert exc.value.details == {"field": "password"}

    auth.register("ada@example.com", "é" * 36)
    with pytest.raises(InvalidCredentialsError):
        auth.authenticate("ada@example.com", "x" * 100)
    assert auth.authenticate("ada@example.com", "é" * 36) == "ada@example.com"


def test_cached_credentials_allow_login_while_remote_is_offline(tmp_path) -> None:
    remote = FlakyCredentials()
    cache = FileCredentialCache(tmp_path)
    auth = AuthService(CachedCredentialRepository(remote, cache))
    auth.register("ada@example.com", "s3cret-pw")
    assert cache.get("ada@example.com") is not None

    remote.offline = True

    assert auth.authenticate("ada@example.com", "s3cret-pw") == "ada@example.com"
    with pytest.raises(InvalidCredentialsError):
        auth.authenticate("ada@example.com", "wrong-pw")
    with pytest.raises(RemoteConnectivityError):
        auth.authenticate("grace@example.com", "s3cret-pw")


def test_credential_cache_ignores_corrupt_files(tmp_path) -> None:
    cache = FileCredentialCache(tmp_path)
    cache.path_for("ada@example.com").write_text("[1, 2]", encoding="utf-8")

    assert cache.get("ada@example.com") is None
