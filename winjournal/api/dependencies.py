"""Shared API dependencies."""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Dict

from fastapi import Depends, HTTPException

from ..config import Settings, load_settings
from ..domain.entrystore import EntryStore, build_entry_store
from ..domain.errors import WinJournalError
from ..domain.session import (
    AuthService,
    Session,
    SessionManager,
    build_credential_repository,
)
from ..domain.stats import StatsService
from ..infra.metrics import MetricsClient, get_metrics_client

__all__ = [
    "get_settings",
    "get_entry_store",
    "get_session_manager",
    "get_stats_service",
    "get_metrics",
    "get_active_session",
    "shutdown_dependencies",
    "to_http_exception",
    "sync_payload",
]


@lru_cache()
def get_settings() -> Settings:
    """Return the settings profile loaded once per process."""

    return load_settings()


@lru_cache()
def _entry_store_singleton() -> EntryStore:
    return build_entry_store(get_settings())


def get_entry_store() -> EntryStore:
    """Return the process-wide entry store."""

    return _entry_store_singleton()


@lru_cache()
def _session_manager_singleton() -> SessionManager:
    settings = get_settings()
    return SessionManager(
        auth=AuthService(build_credential_repository(settings)),
        store=get_entry_store(),
    )


def get_session_manager() -> SessionManager:
    """Return the session manager owning the single active session."""

    return _session_manager_singleton()


@lru_cache()
def _stats_service_singleton() -> StatsService:
    return StatsService(config=get_settings().stats)


def get_stats_service() -> StatsService:
    return _stats_service_singleton()


def get_metrics() -> MetricsClient:
    return get_metrics_client()


def get_active_session(
    manager: SessionManager = Depends(get_session_manager),
) -> Session:
    """Resolve the active session or answer 401."""

    try:
        return manager.require()
    except WinJournalError as exc:
        raise to_http_exception(exc) from exc


def shutdown_dependencies() -> None:
    """Flush and stop the entry store if this process ever built one."""

    if _entry_store_singleton.cache_info().currsize:
        _entry_store_singleton().shutdown()


def to_http_exception(exc: WinJournalError) -> HTTPException:
    return HTTPException(
        status_code=int(exc.status_code),
        detail={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details,
        },
    )


def sync_payload(store: EntryStore) -> Dict[str, Any]:
    """Current sync status with the one-time degraded notice, if any."""

    status = store.sync_status.as_dict()
    status["notice"] = store.consume_sync_notice()
    return status
