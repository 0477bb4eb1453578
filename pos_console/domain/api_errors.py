from __future__ import annotations

from typing import Any

from pos_console.providers.pos_api.client import PosApiError, SessionExpiredError
from pos_console.session.errors import (
    ConsoleSessionError,
    ImpersonationFailedError,
    ImpersonationNotAllowedError,
    ImpersonationStateError,
    LoginFailedError,
    NotAuthenticatedError,
    StaleTransitionError,
    StoreSelectionLockedError,
    UnknownStoreError,
)


def pos_api_error_http_status(exc: PosApiError) -> int:
    if isinstance(exc, SessionExpiredError):
        return 401
    if exc.category == "authorization" and exc.status_code is not None:
        return exc.status_code
    return 503 if exc.retryable else 502


def pos_api_error_detail(*, operation: str, exc: PosApiError) -> dict[str, Any]:
    return {
        "type": "pos_api_error",
        "operation": operation,
        "category": exc.category,
        "retryable": exc.retryable,
        "status_code": exc.status_code,
        "message": exc.message,
    }


def session_error_http_status(exc: ConsoleSessionError) -> int:
    if isinstance(exc, (NotAuthenticatedError, LoginFailedError)):
        return 401
    if isinstance(exc, ImpersonationFailedError):
        if exc.status_code is not None and 400 <= exc.status_code < 500:
            return exc.status_code
        return 502
    if isinstance(exc, ImpersonationNotAllowedError):
        return 403
    if isinstance(exc, UnknownStoreError):
        return 404
    if isinstance(exc, (ImpersonationStateError, StaleTransitionError, StoreSelectionLockedError)):
        return 409
    return 400


def session_error_detail(*, operation: str, exc: ConsoleSessionError) -> dict[str, Any]:
    return {
        "type": "session_error",
        "operation": operation,
        "error": type(exc).__name__,
        "message": exc.message,
    }
