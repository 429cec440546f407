"""Dual-write policy between the local cache and the remote store.

Writes always land in the local cache first. The remote copy is updated on a
single background worker so that writes for a session never interleave; a
queued write that has been superseded by a newer snapshot is skipped. A
connectivity failure switches the session to local-only mode until a later
remote read succeeds.
"""

from __future__ import annotations

from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from threading import Lock
from typing import Any, Callable, Dict, List, Optional, Sequence

from ...infra.events import EventEmitter, JournalTopic, get_event_emitter
from ...infra.logging import get_logger
from ...infra.metrics import MetricsClient, get_metrics_client
from ..errors import RemoteConnectivityError, RemoteStoreError
from .gateway import ChangeListener, CollectionBackend, LocalCache, Unsubscribe
from .models import Entry, utcnow

__all__ = [
    "CollectionSync",
    "LoadResult",
    "RemoteSyncWorker",
    "SyncOutcome",
    "SyncStatus",
    "DEGRADED_NOTICE",
]

logger = get_logger(__name__)

DEGRADED_NOTICE = (
    "Cloud sync is unavailable. Your wins are saved on this device and will "
    "sync again once the connection is back."
)


class SyncOutcome(str, Enum):
    SYNCED = "synced"
    QUEUED = "queued"
    SUPERSEDED = "superseded"
    OFFLINE = "offline"
    LOCAL_ONLY = "local_only"
    REJECTED = "rejected"


@dataclass
class SyncStatus:
    """Snapshot of the remote sync state for the active session."""

    remote_configured: bool
    enabled: bool
    state: str = "idle"
    last_synced_at: Optional[datetime] = None
    last_error: Optional[Dict[str, Any]] = None
    notice: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "remote_configured": self.remote_configured,
            "enabled": self.enabled,
            "state": self.state,
            "last_synced_at": self.last_synced_at,
            "last_error": self.last_error,
            "notice": self.notice,
        }


@dataclass(frozen=True)
class LoadResult:
    entries: List[Entry]
    source: str
    warning: Optional[str] = None


class RemoteSyncWorker:
    """Runs remote jobs one at a time, skipping superseded ones.

    With ``background=False`` jobs run inline on the caller's thread, which
    keeps tests and scripts deterministic.
    """

    def __init__(self, *, background: bool = True) -> None:
        self._background = background
        self._executor: Optional[ThreadPoolExecutor] = (
            ThreadPoolExecutor(max_workers=1, thread_name_prefix="winjournal-sync")
            if background
            else None
        )
        self._lock = Lock()
        self._generation = 0
        self._pending = 0
        self._closed = False
        self._last_future: Optional[Future] = None

    @property
    def background(self) -> bool:
        return self._background

    @property
    def has_pending(self) -> bool:
        with self._lock:
            return self._pending > 0

    def submit(self, job: Callable[[], SyncOutcome]) -> Future:
        with self._lock:
            if self._closed:
                raise RuntimeError("sync worker is shut down")
            self._generation += 1
            generation = self._generation
            self._pending += 1

        def _run() -> SyncOutcome:
            try:
                with self._lock:
                    superseded = self._closed or generation != self._generation
                if superseded:
                    return SyncOutcome.SUPERSEDED
                return job()
            finally:
                with self._lock:
                    self._pending -= 1

        if self._executor is not None:
            future = self._executor.submit(_run)
        else:
            future = Future()
            try:
                future.set_result(_run())
            except Exception as exc:  # pragma: no cover - jobs handle their errors
                future.set_exception(exc)
        with self._lock:
            self._last_future = future
        return future

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait for the most recently submitted job; False on timeout."""

        with self._lock:
            future = self._last_future
        if future is None:
            return True
        try:
            future.result(timeout=timeout)
        except FutureTimeoutError:
            return False
        except CancelledError:
            return True
        return True

    def cancel_pending(self) -> None:
        """Invalidate every queued job that has not started yet."""

        with self._lock:
            self._generation += 1

    def shutdown(self) -> None:
        with self._lock:
            self._closed = True
            self._generation += 1
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)


class CollectionSync:
    """Applies the local-first, remote-best-effort persistence policy."""

    def __init__(
        self,
        *,
        local: LocalCache,
        remote: Optional[CollectionBackend] = None,
        background: bool = True,
        event_emitter: EventEmitter | None = None,
        metrics: MetricsClient | None = None,
    ) -> None:
        self._local = local
        self._remote = remote
        self._worker = RemoteSyncWorker(background=background)
        self._event_emitter = event_emitter or get_event_emitter()
        self._metrics = metrics or get_metrics_client()
        self._lock = Lock()
        self._status = self._initial_status()
        self._notice_emitted = False
        self._write_seq = 0

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------
    @property
    def worker(self) -> RemoteSyncWorker:
        return self._worker

    @property
    def status(self) -> SyncStatus:
        with self._lock:
            return replace(self._status)

    @property
    def enabled(self) -> bool:
        with self._lock:
            return self._status.enabled

    @property
    def has_pending_writes(self) -> bool:
        return self._worker.has_pending

    def consume_notice(self) -> Optional[str]:
        """Return the pending degraded-sync notice once, then clear it."""

        with self._lock:
            notice = self._status.notice
            self._status.notice = None
            return notice

    def reset(self) -> None:
        """Forget per-session state before another session is loaded."""

        self._worker.cancel_pending()
        with self._lock:
            self._status = self._initial_status()
            self._notice_emitted = False

    def _initial_status(self) -> SyncStatus:
        configured = self._remote is not None
        return SyncStatus(
            remote_configured=configured,
            enabled=configured,
            state="idle" if configured else "local_only",
        )

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------
    def save(self, session_id: str, entries: Sequence[Entry]) -> SyncOutcome:
        snapshot = list(entries)
        self._write_local(session_id, snapshot)
        self._metrics.gauge("entry_store_size", len(snapshot))
        if self._remote is None:
            return SyncOutcome.LOCAL_ONLY
        with self._lock:
            self._set_pending_marker(session_id, True)
            self._write_seq += 1
            seq = self._write_seq
            offline = not self._status.enabled
            if not offline:
                self._status.state = "pending"
        if offline:
            self._metrics.increment("remote_sync_skipped_offline_total")
            return SyncOutcome.OFFLINE
        future = self._worker.submit(
            lambda: self._push_remote(session_id, snapshot, seq)
        )
        if not self._worker.background:
            return future.result()
        return SyncOutcome.QUEUED

    def flush(self, timeout: Optional[float] = None) -> bool:
        return self._worker.flush(timeout)

    def _write_local(self, session_id: str, snapshot: List[Entry]) -> None:
        try:
            self._local.write_collection(session_id, snapshot)
        except OSError:
            # In-memory state stays authoritative; only durability is weakened.
            self._metrics.increment("local_cache_write_failures_total")
            logger.exception(
                "local_cache_write_failed",
                extra={"session_id": session_id, "entries": len(snapshot)},
            )

    def _set_pending_marker(self, session_id: str, pending: bool) -> None:
        try:
            self._local.mark_pending_sync(session_id, pending)
        except OSError:
            logger.exception(
                "local_cache_marker_failed",
                extra={"session_id": session_id, "pending": pending},
            )

    def _push_remote(
        self, session_id: str, snapshot: List[Entry], seq: int
    ) -> SyncOutcome:
        assert self._remote is not None
        if not self.enabled:
            return SyncOutcome.OFFLINE
        try:
            self._remote.write_collection(session_id, snapshot)
        except RemoteConnectivityError as exc:
            self._mark_offline(session_id, exc, operation="write")
            return SyncOutcome.OFFLINE
        except RemoteStoreError as exc:
            self._mark_rejected(session_id, exc, operation="write")
            return SyncOutcome.REJECTED
        with self._lock:
            self._status.state = "synced"
            self._status.last_synced_at = utcnow()
            self._status.last_error = None
            # A newer snapshot saved meanwhile keeps the marker set.
            if seq == self._write_seq:
                self._set_pending_marker(session_id, False)
        self._metrics.increment("remote_sync_success_total")
        logger.debug(
            "remote_sync_written",
            extra={"session_id": session_id, "entries": len(snapshot)},
        )
        return SyncOutcome.SYNCED

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------
    def load(self, session_id: str) -> LoadResult:
        warning: Optional[str] = None
        # Reads are attempted even while offline; success re-enables sync.
        if self._remote is not None:
            try:
                remote_entries = self._remote.read_collection(session_id)
            except RemoteConnectivityError as exc:
                self._mark_offline(session_id, exc, operation="read")
            except RemoteStoreError as exc:
                self._mark_rejected(session_id, exc, operation="read")
                warning = exc.message
            else:
                return self._reconcile(session_id, remote_entries)

        local_entries = self._read_local(session_id) or []
        logger.info(
            "collection_loaded",
            extra={
                "session_id": session_id,
                "source": "local",
                "entries": len(local_entries),
            },
        )
        return LoadResult(entries=local_entries, source="local", warning=warning)

    def _reconcile(
        self, session_id: str, remote_entries: Optional[List[Entry]]
    ) -> LoadResult:
        """Pick the authoritative copy after a successful remote read.

        The remote copy wins unless the local cache holds writes the remote
        never acknowledged (or the remote has no copy at all); in that case the
        local copy is kept and pushed.
        """

        with self._lock:
            self._status.enabled = True
            self._status.state = "synced"
            self._status.last_synced_at = utcnow()
            self._status.last_error = None
        local_entries = self._read_local(session_id)
        unsynced_local = local_entries is not None and (
            remote_entries is None or self._has_pending_marker(session_id)
        )
        if unsynced_local:
            assert local_entries is not None
            logger.info(
                "local_collection_republished",
                extra={"session_id": session_id, "entries": len(local_entries)},
            )
            self.save(session_id, local_entries)
            return LoadResult(entries=local_entries, source="local")

        entries = list(remote_entries or [])
        self._write_local(session_id, entries)
        logger.info(
            "collection_loaded",
            extra={
                "session_id": session_id,
                "source": "remote",
                "entries": len(entries),
            },
        )
        return LoadResult(entries=entries, source="remote")

    def _read_local(self, session_id: str) -> Optional[List[Entry]]:
        try:
            stored = self._local.read_collection(session_id)
        except OSError:
            logger.exception("local_cache_read_failed", extra={"session_id": session_id})
            return None
        return list(stored) if stored is not None else None

    def _has_pending_marker(self, session_id: str) -> bool:
        try:
            return self._local.has_pending_sync(session_id)
        except OSError:
            logger.exception(
                "local_cache_marker_failed", extra={"session_id": session_id}
            )
            return False

    # ------------------------------------------------------------------
    # Push subscription
    # ------------------------------------------------------------------
    def subscribe(
        self, session_id: str, on_change: ChangeListener
    ) -> Optional[Unsubscribe]:
        subscribe = getattr(self._remote, "subscribe", None)
        if subscribe is None or not self.enabled:
            return None
        return subscribe(session_id, on_change)

    def cache_remote_snapshot(self, session_id: str, entries: Sequence[Entry]) -> None:
        self._write_local(session_id, list(entries))

    def shutdown(self) -> None:
        self._worker.shutdown()

    # ------------------------------------------------------------------
    # Failure bookkeeping
    # ------------------------------------------------------------------
    def _mark_offline(
        self, session_id: str, exc: RemoteConnectivityError, *, operation: str
    ) -> None:
        with self._lock:
            self._status.enabled = False
            self._status.state = "offline"
            self._status.last_error = _error_payload(exc, operation)
            first_notice = not self._notice_emitted
            if first_notice:
                self._notice_emitted = True
                self._status.notice = DEGRADED_NOTICE
        self._metrics.increment("remote_sync_offline_total")
        logger.warning(
            "remote_sync_offline",
            extra={
                "session_id": session_id,
                "operation": operation,
                "cause": exc.details.get("cause"),
            },
        )
        if first_notice:
            self._event_emitter.emit(
                JournalTopic.SYNC_DEGRADED,
                {"session_id": session_id, "operation": operation},
            )

    def _mark_rejected(
        self, session_id: str, exc: RemoteStoreError, *, operation: str
    ) -> None:
        with self._lock:
            self._status.state = "error"
            self._status.last_error = _error_payload(exc, operation)
        self._metrics.increment("remote_sync_rejected_total")
        logger.error(
            "remote_sync_rejected",
            extra={
                "session_id": session_id,
                "operation": operation,
                "error_code": exc.error_code,
                "cause": exc.details.get("cause"),
            },
        )
        self._event_emitter.emit(
            JournalTopic.SYNC_REJECTED,
            {
                "session_id": session_id,
                "operation": operation,
                "error_code": exc.error_code,
            },
        )


def _error_payload(exc: RemoteStoreError, operation: str) -> Dict[str, Any]:
    return {
        "error_code": exc.error_code,
        "message": exc.message,
        "operation": operation,
        "details": dict(exc.details),
    }
