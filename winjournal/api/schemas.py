"""Response models shared by several routers."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel

from ..domain.entrystore import Entry


class SyncStatusModel(BaseModel):
    remote_configured: bool
    enabled: bool
    state: str
    last_synced_at: datetime | None = None
    last_error: dict[str, Any] | None = None
    notice: str | None = None


class WinRecord(BaseModel):
    id: str
    title: str
    description: str = ""
    category: str
    created_at: datetime


def serialize_win(entry: Entry) -> WinRecord:
    return WinRecord(
        id=entry.entry_id,
        title=entry.title,
        description=entry.description,
        category=entry.category,
        created_at=entry.created_at,
    )
