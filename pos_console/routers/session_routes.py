from fastapi import APIRouter, Depends, Request

from pos_console.auth.dependencies import get_console
from pos_console.models.auth import LoginRequest
from pos_console.models.session import SessionResponse
from pos_console.providers.pos_api.client import PosApiError
from pos_console.routers.common import raise_http_error, request_id, session_response
from pos_console.session.console import ConsoleSession
from pos_console.session.errors import ConsoleSessionError

router = APIRouter(prefix="/api/session", tags=["session"])


@router.get("", response_model=SessionResponse)
def get_session(console: ConsoleSession = Depends(get_console)):
    """Current principal, effective context and capabilities (unauthenticated is not an error)."""
    return session_response(console)


@router.post("/login", response_model=SessionResponse)
def login(data: LoginRequest, request: Request, console: ConsoleSession = Depends(get_console)):
    try:
        console.login(data.username, data.password)
    except (ConsoleSessionError, PosApiError) as exc:
        raise_http_error("login", exc, request_id(request))
    return session_response(console)


@router.post("/logout", response_model=SessionResponse)
def logout(console: ConsoleSession = Depends(get_console)):
    """Always succeeds locally; the server-side revoke is best-effort."""
    console.logout()
    return session_response(console)
