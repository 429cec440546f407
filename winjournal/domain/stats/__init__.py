"""Pure statistics over a session's wins."""

from .calendar import entry_dates, local_date, resolve_tz
from .summary_service import (
    WEEKLY_WINDOW_DAYS,
    StatsService,
    build_summary,
    category_counts,
    longest_streak,
    streak,
    total_count,
    weekly_count,
)

__all__ = [
    "WEEKLY_WINDOW_DAYS",
    "StatsService",
    "build_summary",
    "category_counts",
    "entry_dates",
    "local_date",
    "longest_streak",
    "resolve_tz",
    "streak",
    "total_count",
    "weekly_count",
]
