"""Signup, login and logout for the single local session."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from ...domain.errors import WinJournalError
from ...domain.session import Session, SessionManager
from ..dependencies import get_session_manager, sync_payload, to_http_exception
from ..schemas import SyncStatusModel

router = APIRouter(prefix="/api/session", tags=["session"])


class CredentialsRequest(BaseModel):
    email: str = Field(..., max_length=320)
    password: str = Field(..., max_length=256)


class SessionResponse(BaseModel):
    active: bool
    session_id: str | None = None
    established_at: datetime | None = None
    source: str | None = None
    wins_loaded: int | None = None
    warning: str | None = None
    sync: SyncStatusModel | None = None


class LogoutResponse(BaseModel):
    logged_out: bool


@router.post(
    "/signup",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Account And Start Session",
)
def signup(
    payload: CredentialsRequest,
    manager: SessionManager = Depends(get_session_manager),
) -> SessionResponse:
    try:
        session = manager.signup(payload.email, payload.password)
    except WinJournalError as exc:
        raise to_http_exception(exc) from exc
    return _session_response(manager, session)


@router.post("/login", response_model=SessionResponse, summary="Start Session")
def login(
    payload: CredentialsRequest,
    manager: SessionManager = Depends(get_session_manager),
) -> SessionResponse:
    try:
        session = manager.login(payload.email, payload.password)
    except WinJournalError as exc:
        raise to_http_exception(exc) from exc
    return _session_response(manager, session)


@router.post("/logout", response_model=LogoutResponse, summary="End Session")
def logout(manager: SessionManager = Depends(get_session_manager)) -> LogoutResponse:
    return LogoutResponse(logged_out=manager.logout())


@router.get("", response_model=SessionResponse, summary="Current Session")
def current_session(
    manager: SessionManager = Depends(get_session_manager),
) -> SessionResponse:
    session = manager.current
    if session is None:
        return SessionResponse(active=False)
    return _session_response(manager, session)


def _session_response(manager: SessionManager, session: Session) -> SessionResponse:
    loaded = manager.last_load
    return SessionResponse(
        active=True,
        session_id=session.session_id,
        established_at=session.established_at,
        source=loaded.source if loaded else None,
        wins_loaded=len(loaded.entries) if loaded else None,
        warning=loaded.warning if loaded else None,
        sync=SyncStatusModel(**sync_payload(manager.store)),
    )
