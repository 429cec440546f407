"""Entry data model and its wire representation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional
from uuid import uuid4

__all__ = [
    "Entry",
    "utcnow",
]


def utcnow() -> datetime:
    """Return timezone-aware UTC timestamp."""

    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Entry:
    """One recorded win. Entries are never edited after creation."""

    entry_id: str
    title: str
    description: str
    category: str
    created_at: datetime

    @classmethod
    def new(
        cls,
        *,
        title: str,
        category: str,
        description: Optional[str] = None,
        entry_id: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> "Entry":
        """Factory that generates the id and creation timestamp."""

        return cls(
            entry_id=entry_id or str(uuid4()),
            title=title.strip(),
            description=(description or "").strip(),
            category=category,
            created_at=_ensure_aware(timestamp or utcnow()),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.entry_id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Entry":
        """Rebuild an entry from its wire form (cache, remote, export)."""

        created_raw = payload["createdAt"]
        if isinstance(created_raw, datetime):
            created_at = created_raw
        else:
            created_at = datetime.fromisoformat(str(created_raw))
        return cls(
            entry_id=str(payload["id"]),
            title=str(payload["title"]),
            description=str(payload.get("description") or ""),
            category=str(payload["category"]),
            created_at=_ensure_aware(created_at),
        )


def _ensure_aware(value: datetime) -> datetime:
    # Naive timestamps are treated as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
