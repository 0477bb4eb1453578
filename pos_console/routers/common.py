import logging
from typing import NoReturn

from fastapi import HTTPException, Request

from pos_console.auth.tokens import token_expires_at
from pos_console.config import settings
from pos_console.domain.api_errors import (
    pos_api_error_detail,
    pos_api_error_http_status,
    session_error_detail,
    session_error_http_status,
)
from pos_console.models.session import EffectiveContextResponse, SessionResponse
from pos_console.observability import incr_metric, log_event
from pos_console.providers.pos_api.client import PosApiError, SessionExpiredError
from pos_console.session.console import ConsoleSession
from pos_console.session.errors import ConsoleSessionError, NotAuthenticatedError


def request_id(request: Request | None) -> str | None:
    if not request:
        return None
    return getattr(getattr(request, "state", None), "request_id", None)


def session_response(console: ConsoleSession) -> SessionResponse:
    snap = console.session.snapshot()
    if not snap.is_authenticated:
        return SessionResponse(authenticated=False)
    return SessionResponse(
        authenticated=True,
        user=snap.principal,
        context=EffectiveContextResponse.from_context(console.context),
        access_token_expires_at=token_expires_at(snap.credentials.access_token),
    )


def raise_http_error(operation: str, exc: Exception, req_id: str | None = None) -> NoReturn:
    """Translate session and POS API failures into the console's HTTP errors."""
    if isinstance(exc, PosApiError):
        status_code = pos_api_error_http_status(exc)
        detail = pos_api_error_detail(operation=operation, exc=exc)
        category = exc.category
    elif isinstance(exc, ConsoleSessionError):
        status_code = session_error_http_status(exc)
        detail = session_error_detail(operation=operation, exc=exc)
        category = type(exc).__name__
    else:
        raise exc
    if isinstance(exc, (SessionExpiredError, NotAuthenticatedError)):
        detail["redirect_to"] = settings.login_path

    incr_metric("console.requests.failed", operation=operation, category=category)
    log_event(
        "console_operation_failed",
        level=logging.WARNING,
        request_id=req_id,
        operation=operation,
        category=category,
        status_code=status_code,
        error=str(exc),
    )
    raise HTTPException(status_code=status_code, detail=detail) from exc
