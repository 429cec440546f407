from http import HTTPStatus

import pytest
from fastapi import HTTPException

from winjournal.api.dependencies import (
    get_active_session,
    sync_payload,
    to_http_exception,
)
from winjournal.domain.entrystore import DEGRADED_NOTICE
from winjournal.domain.errors import RemoteConnectivityError, WinJournalError
from winjournal.domain.session import (
    AuthService,
    InMemoryCredentialRepository,
    SessionManager,
)
from tests.helpers.stores import FlakyRemote, build_store

pytestmark = [pytest.mark.api]


def test_to_http_exception_preserves_error_contract() -> None:
    error = RemoteConnectivityError("offline", details={"cause": "OSError"})

    http_error = to_http_exception(error)

    assert http_error.status_code == HTTPStatus.SERVICE_UNAVAILABLE
    assert http_error.detail == {
        "error_code": "WJ-REMOTE-OFFLINE",
        "message": "offline",
        "details": {"cause": "OSError"},
    }


def test_error_overrides_take_precedence_over_class_defaults() -> None:
    error = WinJournalError(
        "teapot", status_code=HTTPStatus.IM_A_TEAPOT, error_code="WJ-TEA"
    )

    assert to_http_exception(error).status_code == 418
    assert to_http_exception(error).detail["error_code"] == "WJ-TEA"


def test_get_active_session_raises_401_without_session() -> None:
    manager = SessionManager(
        auth=AuthService(InMemoryCredentialRepository()), store=build_store()
    )

    with pytest.raises(HTTPException) as exc:
        get_active_session(manager)

    assert exc.value.status_code == 401


def test_sync_payload_consumes_notice() -> None:
    remote = FlakyRemote()
    store = build_store(remote=remote)
    store.load("ada@example.com")
    remote.go_offline()
    store.add("offline")

    first = sync_payload(store)
    second = sync_payload(store)

    assert first["notice"] == DEGRADED_NOTICE
    assert first["state"] == "offline"
    assert second["notice"] is None
