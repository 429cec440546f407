"""Builders and fakes shared by entry store, sync and API tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Optional, Sequence

from winjournal.domain.entrystore import (
    DEFAULT_CATEGORY_SET,
    Entry,
    EntryStore,
    InMemoryCollectionStore,
)
from winjournal.domain.errors import RemoteConnectivityError, RemoteStoreError
from winjournal.domain.session import InMemoryCredentialRepository, UserCredential
from winjournal.infra.events import EventEmitter
from winjournal.infra.metrics import MetricsClient


class StubEmitter(EventEmitter):
    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def emit(self, topic: str, payload: dict[str, Any]) -> None:
        self.calls.append((topic, payload))

    def topics(self) -> list[str]:
        return [topic for topic, _ in self.calls]


class StubMetrics(MetricsClient):
    def __init__(self) -> None:
        self.increments: list[tuple[str, int]] = []
        self.gauges: list[tuple[str, int]] = []

    def increment(self, metric: str, value: int = 1) -> None:
        self.increments.append((metric, value))

    def gauge(self, metric: str, value: int) -> None:
        self.gauges.append((metric, value))

    def count(self, metric: str) -> int:
        return sum(value for name, value in self.increments if name == metric)


class FlakyRemote(InMemoryCollectionStore):
    """In-memory remote whose reads/writes can be switched to fail."""

    def __init__(self) -> None:
        super().__init__()
        self.read_error: Optional[Exception] = None
        self.write_error: Optional[Exception] = None
        self.writes: List[List[Entry]] = []
        self.reads = 0

    def go_offline(self) -> None:
        self.read_error = RemoteConnectivityError(
            "Remote store unreachable", details={"cause": "OperationalError"}
        )
        self.write_error = self.read_error

    def go_online(self) -> None:
        self.read_error = None
        self.write_error = None

    def reject_writes(self) -> None:
        self.write_error = RemoteStoreError(
            "permission denied", details={"cause": "ProgrammingError"}
        )

    def read_collection(self, session_id: str) -> Optional[List[Entry]]:
        self.reads += 1
        if self.read_error is not None:
            raise self.read_error
        return super().read_collection(session_id)

    def write_collection(self, session_id: str, entries: Sequence[Entry]) -> None:
        if self.write_error is not None:
            raise self.write_error
        self.writes.append(list(entries))
        super().write_collection(session_id, entries)


class TickingClock:
    """Clock advancing one minute per call so timestamps never tie."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2024, 1, 3, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        value = self.current
        self.current = value + timedelta(minutes=1)
        return value


def build_store(
    *,
    local: InMemoryCollectionStore | None = None,
    remote: InMemoryCollectionStore | None = None,
    clock: Callable[[], datetime] | None = None,
    emitter: StubEmitter | None = None,
    metrics: MetricsClient | None = None,
    background: bool = False,
) -> EntryStore:
    return EntryStore(
        local=local if local is not None else InMemoryCollectionStore(),
        remote=remote,
        categories=DEFAULT_CATEGORY_SET,
        background_sync=background,
        clock=clock or TickingClock(),
        event_emitter=emitter or StubEmitter(),
        metrics=metrics or StubMetrics(),
    )


def make_entry(
    entry_id: str,
    created_at: datetime,
    *,
    title: str | None = None,
    category: str = "other",
) -> Entry:
    return Entry(
        entry_id=entry_id,
        title=title or f"win {entry_id}",
        description="",
        category=category,
        created_at=created_at,
    )


def utc_day(day: int, hour: int = 12, *, month: int = 1, year: int = 2024) -> datetime:
    return datetime(year, month, day, hour, 0, tzinfo=timezone.utc)


class FlakyCredentials(InMemoryCredentialRepository):
    """Account table that can be switched to raise connectivity errors."""

    def __init__(self) -> None:
        super().__init__()
        self.offline = False

    def _check(self) -> None:
        if self.offline:
            raise RemoteConnectivityError(
                "Remote store unreachable", details={"cause": "OperationalError"}
            )

    def get(self, email: str) -> Optional[UserCredential]:
        self._check()
        return super().get(email)

    def add(self, credential: UserCredential) -> None:
        self._check()
        super().add(credential)
