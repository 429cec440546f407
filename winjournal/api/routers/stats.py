"""Aggregate statistics for the active session."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ...domain.entrystore import EntryStore
from ...domain.session import Session
from ...domain.stats import StatsService
from ..dependencies import get_active_session, get_entry_store, get_stats_service

router = APIRouter(prefix="/api/stats", tags=["stats"])


class StatsResponse(BaseModel):
    total: int
    this_week: int
    streak_days: int
    longest_streak_days: int
    by_category: dict[str, int] = Field(default_factory=dict)
    generated_at: datetime
    timezone: str


@router.get("", response_model=StatsResponse, summary="Journal Statistics")
def get_stats(
    session: Session = Depends(get_active_session),
    store: EntryStore = Depends(get_entry_store),
    service: StatsService = Depends(get_stats_service),
) -> StatsResponse:
    summary = service.summarize(store.entries, labels=store.categories.labels)
    return StatsResponse(**summary, timezone=str(service.tz))
