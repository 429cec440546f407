"""Aggregations behind `/api/stats`: totals, trailing week and streaks."""

from __future__ import annotations

import time
from collections import Counter
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Any, Callable, Dict, Iterable, Optional, Sequence

from ...config import StatsConfig
from ...infra.logging import get_logger
from ...infra.metrics import MetricsClient, get_metrics_client
from ..entrystore.models import Entry, utcnow
from .calendar import entry_dates, local_date, resolve_tz

logger = get_logger(__name__)

WEEKLY_WINDOW_DAYS = 7

__all__ = [
    "StatsService",
    "build_summary",
    "category_counts",
    "longest_streak",
    "streak",
    "total_count",
    "weekly_count",
    "WEEKLY_WINDOW_DAYS",
]


def total_count(entries: Sequence[Entry]) -> int:
    return len(entries)


def weekly_count(
    entries: Iterable[Entry], now: datetime, *, tz: tzinfo = timezone.utc
) -> int:
    """Entries dated within ``[today - 7 days, today]``, compared by date."""

    today = local_date(now, tz)
    window_start = today - timedelta(days=WEEKLY_WINDOW_DAYS)
    return sum(
        1
        for entry in entries
        if window_start <= local_date(entry.created_at, tz) <= today
    )


def streak(
    entries: Iterable[Entry], now: datetime, *, tz: tzinfo = timezone.utc
) -> int:
    """Consecutive days with a win, ending today or, failing that, yesterday."""

    days = entry_dates(entries, tz)
    if not days:
        return 0
    today = local_date(now, tz)
    if today in days:
        cursor = today
    elif today - timedelta(days=1) in days:
        cursor = today - timedelta(days=1)
    else:
        return 0
    count = 0
    while cursor in days:
        count += 1
        cursor -= timedelta(days=1)
    return count


def longest_streak(entries: Iterable[Entry], *, tz: tzinfo = timezone.utc) -> int:
    best = 0
    run = 0
    previous: Optional[date] = None
    for day in sorted(entry_dates(entries, tz)):
        if previous is not None and day - previous == timedelta(days=1):
            run += 1
        else:
            run = 1
        best = max(best, run)
        previous = day
    return best


def category_counts(
    entries: Iterable[Entry], labels: Iterable[str] = ()
) -> Dict[str, int]:
    """Per-category totals; every label in ``labels`` is present, even at 0."""

    counts: Dict[str, int] = {label: 0 for label in labels}
    counts.update(Counter(entry.category for entry in entries))
    return counts


def build_summary(
    entries: Sequence[Entry],
    now: datetime,
    *,
    tz: tzinfo = timezone.utc,
    labels: Iterable[str] = (),
) -> Dict[str, Any]:
    return {
        "total": total_count(entries),
        "this_week": weekly_count(entries, now, tz=tz),
        "streak_days": streak(entries, now, tz=tz),
        "longest_streak_days": longest_streak(entries, tz=tz),
        "by_category": category_counts(entries, labels),
        "generated_at": now,
    }


class StatsService:
    """Computes journal statistics in the configured reference time zone."""

    def __init__(
        self,
        *,
        config: StatsConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
        metrics: MetricsClient | None = None,
    ) -> None:
        self._config = config or StatsConfig()
        self._tz = resolve_tz(self._config.timezone)
        self._clock = clock
        self._metrics = metrics or get_metrics_client()

    @property
    def tz(self) -> tzinfo:
        return self._tz

    def summarize(
        self,
        entries: Sequence[Entry],
        *,
        labels: Iterable[str] = (),
        now: datetime | None = None,
    ) -> Dict[str, Any]:
        reference = now or self._clock()
        start = time.perf_counter()
        summary = build_summary(entries, reference, tz=self._tz, labels=labels)
        duration_ms = int((time.perf_counter() - start) * 1000)
        self._metrics.increment("stats_summary_requests_total")
        logger.info(
            "stats_summary_generated",
            extra={
                "duration_ms": duration_ms,
                "entries": summary["total"],
                "streak_days": summary["streak_days"],
                "timezone": self._config.timezone,
            },
        )
        return summary
