"""Portable JSON backup format for a session's wins."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..errors import ExportFormatError
from .models import Entry, utcnow

__all__ = [
    "ExportDocument",
    "ExportedWin",
    "ParsedExport",
    "export_document",
    "dump_document",
    "import_document",
    "export_filename",
]

LEGACY_DATE_FORMAT = "%b %d, %Y"


class ExportedWin(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    description: str = ""
    category: str
    created_at: datetime = Field(alias="createdAt")

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return str(value)

    @field_validator("title")
    @classmethod
    def _require_title(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("title must not be empty")
        return value

    @field_validator("created_at")
    @classmethod
    def _ensure_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def to_entry(self) -> Entry:
        return Entry(
            entry_id=self.id,
            title=self.title,
            description=self.description,
            category=self.category,
            created_at=self.created_at,
        )


class ExportDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user: str
    exported_at: datetime = Field(alias="exportedAt")
    wins: List[ExportedWin] = Field(default_factory=list)


@dataclass(frozen=True)
class ParsedExport:
    user: Optional[str]
    exported_at: Optional[datetime]
    entries: List[Entry]


def export_document(
    session_id: str, entries: Sequence[Entry], *, now: Optional[datetime] = None
) -> Dict[str, Any]:
    """Return the backup document as a JSON-ready dict."""

    return {
        "user": session_id,
        "exportedAt": (now or utcnow()).isoformat(),
        "wins": [entry.to_dict() for entry in entries],
    }


def dump_document(
    session_id: str, entries: Sequence[Entry], *, now: Optional[datetime] = None
) -> str:
    return json.dumps(
        export_document(session_id, entries, now=now), ensure_ascii=False, indent=2
    )


def export_filename(now: Optional[datetime] = None) -> str:
    return f"daily-wins-{(now or utcnow()).date().isoformat()}.json"


def import_document(payload: Union[str, bytes, Mapping[str, Any], list]) -> ParsedExport:
    """Parse a backup document back into entries, preserving order.

    Also accepts the older bare-list format whose wins carry a display
    ``date`` such as ``"Jan 5, 2024"`` instead of ``createdAt``.
    """

    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except ValueError as exc:
            raise ExportFormatError(f"Backup is not valid JSON: {exc}") from exc

    if isinstance(payload, list):
        return ParsedExport(
            user=None,
            exported_at=None,
            entries=_parse_legacy_wins(payload),
        )
    if not isinstance(payload, Mapping):
        raise ExportFormatError("Backup must be a JSON object or list")

    try:
        document = ExportDocument.model_validate(payload)
    except ValidationError as exc:
        raise ExportFormatError(
            "Backup document failed validation",
            details={"errors": _error_list(exc)},
        ) from exc
    return ParsedExport(
        user=document.user,
        exported_at=document.exported_at,
        entries=[win.to_entry() for win in document.wins],
    )


def _parse_legacy_wins(items: List[Any]) -> List[Entry]:
    entries: List[Entry] = []
    for index, item in enumerate(items):
        if not isinstance(item, Mapping):
            raise ExportFormatError(
                "Legacy backup items must be objects", details={"index": index}
            )
        record = dict(item)
        if "createdAt" not in record and "date" in record:
            try:
                parsed = datetime.strptime(str(record["date"]), LEGACY_DATE_FORMAT)
            except ValueError as exc:
                raise ExportFormatError(
                    f"Unrecognised legacy date {record['date']!r}",
                    details={"index": index},
                ) from exc
            record["createdAt"] = parsed.replace(tzinfo=timezone.utc)
        try:
            entries.append(ExportedWin.model_validate(record).to_entry())
        except ValidationError as exc:
            raise ExportFormatError(
                "Legacy backup item failed validation",
                details={"index": index, "errors": _error_list(exc)},
            ) from exc
    return entries


def _error_list(exc: ValidationError) -> List[Dict[str, Any]]:
    return [
        {"loc": list(error["loc"]), "msg": error["msg"], "type": error["type"]}
        for error in exc.errors(include_url=False)
    ]
