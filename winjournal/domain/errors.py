"""Domain exceptions propagated to API handlers."""

from __future__ import annotations

from http import HTTPStatus
from typing import Any, Dict


class WinJournalError(Exception):
    """Base error carrying an HTTP status and a stable error code."""

    status_code: HTTPStatus = HTTPStatus.BAD_REQUEST
    error_code: str = "WJ-ERROR"

    def __init__(
        self,
        message: str,
        *,
        status_code: HTTPStatus | None = None,
        error_code: str | None = None,
        details: Dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code
        self.details = details or {}


class EmptyTitleError(WinJournalError):
    status_code = HTTPStatus.UNPROCESSABLE_ENTITY
    error_code = "WJ-EMPTY-TITLE"


class InvalidCategoryError(WinJournalError):
    status_code = HTTPStatus.UNPROCESSABLE_ENTITY
    error_code = "WJ-INVALID-CATEGORY"


class DuplicateEntryError(WinJournalError):
    status_code = HTTPStatus.CONFLICT
    error_code = "WJ-DUPLICATE-ENTRY"


class NoActiveSessionError(WinJournalError):
    status_code = HTTPStatus.UNAUTHORIZED
    error_code = "WJ-NO-SESSION"


class ExportFormatError(WinJournalError):
    status_code = HTTPStatus.UNPROCESSABLE_ENTITY
    error_code = "WJ-EXPORT-FORMAT"


class RemoteStoreError(WinJournalError):
    """Remote store refused the operation (permission, validation, schema)."""

    status_code = HTTPStatus.BAD_GATEWAY
    error_code = "WJ-REMOTE-REJECTED"


class RemoteConnectivityError(RemoteStoreError):
    """Remote store is unreachable; callers degrade to local-only mode."""

    status_code = HTTPStatus.SERVICE_UNAVAILABLE
    error_code = "WJ-REMOTE-OFFLINE"


class InvalidIdentityError(WinJournalError):
    status_code = HTTPStatus.UNPROCESSABLE_ENTITY
    error_code = "WJ-INVALID-IDENTITY"


class InvalidCredentialsError(WinJournalError):
    status_code = HTTPStatus.UNAUTHORIZED
    error_code = "WJ-INVALID-CREDENTIALS"


class DuplicateUserError(WinJournalError):
    status_code = HTTPStatus.CONFLICT
    error_code = "WJ-DUPLICATE-USER"
