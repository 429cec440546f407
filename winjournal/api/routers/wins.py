"""Endpoints for recording, listing and deleting wins."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, status
from pydantic import BaseModel, Field

from ...domain.entrystore import ALL_CATEGORIES, EntryStore
from ...domain.errors import WinJournalError
from ...domain.session import Session
from ...infra.logging import get_logger
from ...infra.metrics import get_metrics_client
from ..dependencies import (
    get_active_session,
    get_entry_store,
    sync_payload,
    to_http_exception,
)
from ..schemas import SyncStatusModel, WinRecord, serialize_win

router = APIRouter(prefix="/api/wins", tags=["wins"])
logger = get_logger(__name__)
metrics = get_metrics_client()

MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 2000
WinId = Annotated[str, Path(..., min_length=1, max_length=64)]
CategoryFilter = Annotated[str, Query(max_length=32)]


class WinCreateRequest(BaseModel):
    title: str = Field(..., max_length=MAX_TITLE_LENGTH)
    description: str | None = Field(default="", max_length=MAX_DESCRIPTION_LENGTH)
    category: str | None = None


class WinListResponse(BaseModel):
    items: list[WinRecord] = Field(default_factory=list)
    total: int = 0
    category: str = ALL_CATEGORIES
    categories: list[str] = Field(default_factory=list)


class WinCreatedResponse(BaseModel):
    win: WinRecord
    sync: SyncStatusModel


class WinRemovedResponse(BaseModel):
    removed: bool
    sync: SyncStatusModel


class WinsClearedResponse(BaseModel):
    cleared: int
    sync: SyncStatusModel


@router.get("", response_model=WinListResponse, summary="List Wins")
def list_wins(
    category: CategoryFilter = ALL_CATEGORIES,
    session: Session = Depends(get_active_session),
    store: EntryStore = Depends(get_entry_store),
) -> WinListResponse:
    try:
        entries = store.list(category)
    except WinJournalError as exc:
        raise to_http_exception(exc) from exc
    return WinListResponse(
        items=[serialize_win(entry) for entry in entries],
        total=len(entries),
        category=category.strip().lower() or ALL_CATEGORIES,
        categories=list(store.categories.labels),
    )


@router.post(
    "",
    response_model=WinCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record Win",
)
def create_win(
    payload: WinCreateRequest,
    session: Session = Depends(get_active_session),
    store: EntryStore = Depends(get_entry_store),
) -> WinCreatedResponse:
    try:
        entry = store.add(payload.title, payload.description, payload.category)
    except WinJournalError as exc:
        metrics.increment("win_create_rejected_total")
        raise to_http_exception(exc) from exc
    metrics.increment("win_created_total")
    return WinCreatedResponse(
        win=serialize_win(entry), sync=SyncStatusModel(**sync_payload(store))
    )


@router.delete("", response_model=WinsClearedResponse, summary="Clear All Wins")
def clear_wins(
    session: Session = Depends(get_active_session),
    store: EntryStore = Depends(get_entry_store),
) -> WinsClearedResponse:
    cleared = len(store)
    try:
        store.clear()
    except WinJournalError as exc:
        raise to_http_exception(exc) from exc
    return WinsClearedResponse(
        cleared=cleared, sync=SyncStatusModel(**sync_payload(store))
    )


@router.delete("/{win_id}", response_model=WinRemovedResponse, summary="Delete Win")
def delete_win(
    win_id: WinId,
    session: Session = Depends(get_active_session),
    store: EntryStore = Depends(get_entry_store),
) -> WinRemovedResponse:
    try:
        removed = store.remove(win_id)
    except WinJournalError as exc:
        raise to_http_exception(exc) from exc
    if not removed:
        logger.info(
            "win_delete_noop",
            extra={"session_id": session.session_id, "entry_id": win_id},
        )
    return WinRemovedResponse(
        removed=removed, sync=SyncStatusModel(**sync_payload(store))
    )
