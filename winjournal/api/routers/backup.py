"""JSON backup export and restore."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ...domain.entrystore import EntryStore, export_document, export_filename
from ...domain.entrystore import import_document
from ...domain.errors import WinJournalError
from ...domain.session import Session
from ...infra.logging import get_logger
from ..dependencies import (
    get_active_session,
    get_entry_store,
    sync_payload,
    to_http_exception,
)
from ..schemas import SyncStatusModel

router = APIRouter(prefix="/api", tags=["backup"])
logger = get_logger(__name__)


class ImportResponse(BaseModel):
    imported: int
    source_user: str | None = None
    sync: SyncStatusModel


@router.get("/export", summary="Download Backup")
def export_wins(
    session: Session = Depends(get_active_session),
    store: EntryStore = Depends(get_entry_store),
) -> JSONResponse:
    document = export_document(session.session_id, store.entries)
    logger.info(
        "wins_exported",
        extra={"session_id": session.session_id, "count": len(document["wins"])},
    )
    return JSONResponse(
        content=document,
        headers={
            "Content-Disposition": f'attachment; filename="{export_filename()}"'
        },
    )


@router.post("/import", response_model=ImportResponse, summary="Restore Backup")
def import_wins(
    payload: Any = Body(...),
    session: Session = Depends(get_active_session),
    store: EntryStore = Depends(get_entry_store),
) -> ImportResponse:
    try:
        parsed = import_document(payload)
        imported = store.replace_all(parsed.entries)
    except WinJournalError as exc:
        raise to_http_exception(exc) from exc
    if parsed.user is not None and parsed.user != session.session_id:
        logger.info(
            "backup_from_other_user",
            extra={"session_id": session.session_id, "source_user": parsed.user},
        )
    return ImportResponse(
        imported=imported,
        source_user=parsed.user,
        sync=SyncStatusModel(**sync_payload(store)),
    )
