"""Unit tests for the statistics engine."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from winjournal.config import StatsConfig
from winjournal.domain.stats import (
    StatsService,
    build_summary,
    category_counts,
    longest_streak,
    resolve_tz,
    streak,
    total_count,
    weekly_count,
)
from tests.helpers.stores import StubMetrics, make_entry, utc_day

pytestmark = [pytest.mark.stats]


def _entries_on(*days: int) -> list:
    return [make_entry(f"e{day}", utc_day(day)) for day in days]


@pytest.mark.parametrize(
    ("days", "now_day", "expected"),
    [
        ((1, 2, 3), 3, 3),
        ((1, 2, 3), 4, 3),
        ((1, 3), 3, 1),
        ((1, 2, 3), 5, 0),
        ((), 3, 0),
    ],
)
def test_streak_literal_scenarios(days, now_day, expected) -> None:
    assert streak(_entries_on(*days), utc_day(now_day)) == expected


def test_streak_counts_multiple_entries_per_day_once() -> None:
    entries = _entries_on(2, 3) + [
        make_entry("extra-1", utc_day(3, hour=8)),
        make_entry("extra-2", utc_day(3, hour=20)),
    ]

    assert streak(entries, utc_day(3)) == 2


def test_streak_ignores_input_order() -> None:
    shuffled = _entries_on(3, 1, 2)

    assert streak(shuffled, utc_day(3)) == 3


def test_weekly_count_uses_inclusive_date_window() -> None:
    now = datetime(2024, 1, 10, 9, 0, tzinfo=timezone.utc)
    entries = [
        make_entry("today", now - timedelta(hours=1)),
        make_entry("edge", datetime(2024, 1, 3, 23, 30, tzinfo=timezone.utc)),
        make_entry("too-old", datetime(2024, 1, 2, 23, 59, tzinfo=timezone.utc)),
        make_entry("future", datetime(2024, 1, 11, 0, 5, tzinfo=timezone.utc)),
        make_entry("later-today", datetime(2024, 1, 10, 22, 0, tzinfo=timezone.utc)),
    ]

    assert weekly_count(entries, now) == 3


def test_calendar_dates_follow_reference_time_zone() -> None:
    tz = resolve_tz("-05:00")
    # 03:00 UTC on Jan 4 is still Jan 3 at UTC-5.
    entries = [
        make_entry("a", utc_day(2)),
        make_entry("b", datetime(2024, 1, 4, 3, 0, tzinfo=timezone.utc)),
    ]
    now = datetime(2024, 1, 4, 4, 0, tzinfo=timezone.utc)

    assert streak(entries, now, tz=tz) == 2
    assert streak(entries, now) == 1


def test_total_and_category_counts() -> None:
    entries = [
        make_entry("a", utc_day(1), category="work"),
        make_entry("b", utc_day(1), category="work"),
        make_entry("c", utc_day(2), category="health"),
    ]

    assert total_count(entries) == 3
    assert total_count([]) == 0
    assert category_counts(entries, ["personal", "work", "health"]) == {
        "personal": 0,
        "work": 2,
        "health": 1,
    }


def test_longest_streak_finds_best_run_anywhere() -> None:
    entries = _entries_on(1, 2, 3, 4, 10, 11)

    assert longest_streak(entries) == 4
    assert longest_streak([]) == 0


def test_build_summary_shape() -> None:
    now = utc_day(4)
    summary = build_summary(_entries_on(1, 2, 3), now, labels=["work"])

    assert summary == {
        "total": 3,
        "this_week": 3,
        "streak_days": 3,
        "longest_streak_days": 3,
        "by_category": {"work": 0, "other": 3},
        "generated_at": now,
    }


def test_resolve_tz_accepts_iana_names_and_rejects_garbage() -> None:
    assert resolve_tz(None) is timezone.utc
    assert resolve_tz("utc") is timezone.utc
    assert resolve_tz("Europe/Berlin").utcoffset(datetime(2024, 1, 1)) == timedelta(
        hours=1
    )
    with pytest.raises(ValueError):
        resolve_tz("Mars/Olympus_Mons")


def test_stats_service_uses_injected_clock_and_records_metric() -> None:
    metrics = StubMetrics()
    service = StatsService(
        config=StatsConfig(timezone="UTC"),
        clock=lambda: utc_day(4),
        metrics=metrics,
    )

    summary = service.summarize(_entries_on(2, 3), labels=["other"])

    assert summary["streak_days"] == 2
    assert summary["generated_at"] == utc_day(4)
    assert metrics.count("stats_summary_requests_total") == 1
