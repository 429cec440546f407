"""Liveness endpoint for local clients."""

from typing import Any, Dict

from fastapi import APIRouter, Depends

from ...config import Settings
from ...domain.entrystore import EntryStore
from ...infra.metrics import REMOTE_SYNC_PREFIX, MetricsClient
from ..dependencies import get_entry_store, get_metrics, get_settings

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/healthz")
def healthcheck(
    settings: Settings = Depends(get_settings),
    store: EntryStore = Depends(get_entry_store),
    metrics: MetricsClient = Depends(get_metrics),
) -> dict[str, Any]:
    """Return coarse readiness plus the remote sync state and counters."""

    feature_flags: Dict[str, Any] = settings.features or {}

    return {
        "status": "ok",
        "environment": settings.environment,
        "sessionActive": store.session_id is not None,
        "remoteSync": store.sync_status.state,
        "syncCounters": metrics.snapshot(REMOTE_SYNC_PREFIX),
        "featureFlags": feature_flags,
    }
