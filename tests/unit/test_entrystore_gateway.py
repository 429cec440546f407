"""Tests for the collection backends and remote error classification."""

from __future__ import annotations

import json

import pytest
from sqlalchemy import MetaData, create_engine
from sqlalchemy import exc as sa_exc
from sqlalchemy.pool import StaticPool

from winjournal.domain.entrystore import (
    FileCollectionCache,
    InMemoryCollectionStore,
    SqlCollectionStore,
    build_collections_table,
    classify_remote_error,
)
from winjournal.domain.entrystore import gateway as gateway_module
from winjournal.domain.errors import RemoteConnectivityError, RemoteStoreError
from tests.helpers.logging import RecordingLogger, find_log
from tests.helpers.stores import make_entry, utc_day

pytestmark = [pytest.mark.entrystore]

SESSION = "ada@example.com"


def _sqlite_store() -> SqlCollectionStore:
    engine = create_engine(
        "sqlite://",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    metadata = MetaData()
    table = build_collections_table(metadata)
    metadata.create_all(engine)
    return SqlCollectionStore(engine, table=table)


def test_file_cache_round_trips_collection(tmp_path) -> None:
    cache = FileCollectionCache(tmp_path / "cache")
    entries = [
        make_entry("b", utc_day(2), category="work"),
        make_entry("a", utc_day(1)),
    ]

    assert cache.read_collection(SESSION) is None
    cache.write_collection(SESSION, entries)

    assert cache.read_collection(SESSION) == entries
    document = json.loads(cache.path_for(SESSION).read_text(encoding="utf-8"))
    assert document["user"] == SESSION
    assert [item["id"] for item in document["wins"]] == ["b", "a"]
    assert set(document["wins"][0]) == {
        "id",
        "title",
        "description",
        "category",
        "createdAt",
    }


def test_file_cache_keeps_sessions_apart_and_hides_identity(tmp_path) -> None:
    cache = FileCollectionCache(tmp_path)
    cache.write_collection(SESSION, [make_entry("a", utc_day(1))])
    cache.write_collection("grace@example.com", [])

    assert SESSION not in cache.path_for(SESSION).name
    assert cache.path_for(SESSION) != cache.path_for("grace@example.com")
    assert cache.read_collection("grace@example.com") == []
    assert not list(tmp_path.glob("*.tmp"))


def test_file_cache_treats_corrupt_file_as_missing(tmp_path, monkeypatch) -> None:
    log = RecordingLogger()
    monkeypatch.setattr(gateway_module, "logger", log)
    cache = FileCollectionCache(tmp_path)
    path = cache.path_for(SESSION)
    path.write_text("{not json", encoding="utf-8")

    assert cache.read_collection(SESSION) is None
    find_log(log.records, level="warning", message="local_cache_corrupt")


def test_file_cache_treats_non_object_document_as_missing(tmp_path) -> None:
    cache = FileCollectionCache(tmp_path)
    cache.path_for(SESSION).write_text(json.dumps([{"id": "a"}]), encoding="utf-8")

    assert cache.read_collection(SESSION) is None


def test_file_cache_pending_marker(tmp_path) -> None:
    cache = FileCollectionCache(tmp_path / "nested")

    assert cache.has_pending_sync(SESSION) is False
    cache.mark_pending_sync(SESSION, True)
    assert cache.has_pending_sync(SESSION) is True
    cache.mark_pending_sync(SESSION, False)
    cache.mark_pending_sync(SESSION, False)
    assert cache.has_pending_sync(SESSION) is False


def test_in_memory_store_notifies_and_unsubscribes() -> None:
    store = InMemoryCollectionStore()
    seen: list[list] = []
    unsubscribe = store.subscribe(SESSION, seen.append)

    store.write_collection(SESSION, [make_entry("a", utc_day(1))])
    store.write_collection("other@example.com", [])
    unsubscribe()
    unsubscribe()
    store.write_collection(SESSION, [])

    assert len(seen) == 1
    assert store.listener_count(SESSION) == 0


def test_sql_store_reads_none_then_upserts() -> None:
    store = _sqlite_store()
    first = [make_entry("a", utc_day(1), title="First")]
    second = [make_entry("b", utc_day(2)), *first]

    assert store.read_collection(SESSION) is None
    store.write_collection(SESSION, first)
    store.write_collection(SESSION, second)

    assert store.read_collection(SESSION) == second
    assert store.read_collection("other@example.com") is None


def test_sql_store_rejects_malformed_rows() -> None:
    engine = create_engine(
        "sqlite://",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    metadata = MetaData()
    table = build_collections_table(metadata)
    metadata.create_all(engine)
    store = SqlCollectionStore(engine, table=table)
    with engine.begin() as conn:
        conn.execute(
            table.insert().values(
                session_id=SESSION,
                wins=[{"title": "no id or timestamp"}],
                updated_at=utc_day(1),
            )
        )

    with pytest.raises(RemoteStoreError) as exc:
        store.read_collection(SESSION)
    assert not isinstance(exc.value, RemoteConnectivityError)
    assert exc.value.details["session_id"] == SESSION


def test_sql_store_wraps_driver_errors() -> None:
    engine = create_engine("sqlite://", future=True)
    store = SqlCollectionStore(engine)

    with pytest.raises(RemoteStoreError):
        store.read_collection(SESSION)


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (sa_exc.OperationalError("SELECT 1", {}, Exception("down")), RemoteConnectivityError),
        (sa_exc.InterfaceError("SELECT 1", {}, Exception("closed")), RemoteConnectivityError),
        (sa_exc.TimeoutError("pool exhausted"), RemoteConnectivityError),
        (ConnectionRefusedError("refused"), RemoteConnectivityError),
        (sa_exc.IntegrityError("INSERT", {}, Exception("dup")), RemoteStoreError),
        (sa_exc.ProgrammingError("INSERT", {}, Exception("denied")), RemoteStoreError),
    ],
)
def test_classify_remote_error(error, expected) -> None:
    classified = classify_remote_error(error)

    assert type(classified) is expected
    assert classified.details["cause"] == type(error).__name__


def test_classify_remote_error_honors_invalidated_connections() -> None:
    error = sa_exc.DBAPIError(
        "SELECT 1", {}, Exception("reset"), connection_invalidated=True
    )

    assert isinstance(classify_remote_error(error), RemoteConnectivityError)
