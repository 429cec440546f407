"""Calendar-day bucketing in a fixed reference time zone."""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Iterable, Optional, Set
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..entrystore.models import Entry

_OFFSET_RE = re.compile(r"^([+-])(\d{2}):?(\d{2})$")


def resolve_tz(name: Optional[str]) -> tzinfo:
    """Resolve ``UTC``, an IANA name or a fixed ``+HH:MM`` offset.

    Raises ValueError for unknown identifiers.
    """

    tz_name = (name or "UTC").strip()
    if tz_name.upper() in {"UTC", "Z", "GMT"}:
        return timezone.utc

    match = _OFFSET_RE.match(tz_name)
    if match:
        sign, hours, minutes = match.groups()
        offset = timedelta(hours=int(hours), minutes=int(minutes))
        return timezone(-offset if sign == "-" else offset)

    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown time zone {tz_name!r}") from exc


def local_date(moment: datetime, tz: tzinfo) -> date:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz).date()


def entry_dates(entries: Iterable[Entry], tz: tzinfo) -> Set[date]:
    """Distinct calendar dates having at least one entry."""

    return {local_date(entry.created_at, tz) for entry in entries}
