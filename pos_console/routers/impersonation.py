from fastapi import APIRouter, Depends, Query, Request

from pos_console.auth.context import Capability
from pos_console.auth.dependencies import get_console, get_current_context, require_capability
from pos_console.models.session import ExitImpersonationResponse, SessionResponse
from pos_console.providers.pos_api.client import PosApiError
from pos_console.routers.common import raise_http_error, request_id, session_response
from pos_console.session.console import ConsoleSession
from pos_console.session.errors import ConsoleSessionError

router = APIRouter(prefix="/api/impersonation", tags=["impersonation"])


@router.get("/partners")
def list_partners(
    request: Request,
    search: str | None = Query(None),
    console: ConsoleSession = Depends(get_console),
    _ctx=Depends(require_capability(Capability.MANAGE_PARTNERS)),
):
    """Partners a super admin can pick from."""
    try:
        data = console.list_partners(search)
    except (ConsoleSessionError, PosApiError) as exc:
        raise_http_error("list_partners", exc, request_id(request))
    if isinstance(data, dict) and "results" in data:
        return data["results"]
    return data


@router.post("/partners/{partner_id}", response_model=SessionResponse)
def enter_partner(
    partner_id: int,
    request: Request,
    console: ConsoleSession = Depends(get_console),
    _ctx=Depends(get_current_context),
):
    try:
        console.enter_partner(partner_id)
    except (ConsoleSessionError, PosApiError) as exc:
        raise_http_error("enter_partner", exc, request_id(request))
    return session_response(console)


@router.post("/partners/{partner_id}/stores/{store_id}", response_model=SessionResponse)
def enter_store(
    partner_id: int,
    store_id: int,
    request: Request,
    console: ConsoleSession = Depends(get_console),
    _ctx=Depends(get_current_context),
):
    try:
        console.enter_store(partner_id, store_id)
    except (ConsoleSessionError, PosApiError) as exc:
        raise_http_error("enter_store", exc, request_id(request))
    return session_response(console)


@router.delete("/store", response_model=ExitImpersonationResponse)
def exit_store(
    request: Request,
    console: ConsoleSession = Depends(get_console),
    _ctx=Depends(get_current_context),
):
    try:
        changed = console.exit_store()
    except PosApiError as exc:
        raise_http_error("exit_store", exc, request_id(request))
    return ExitImpersonationResponse(changed=changed, session=session_response(console))


@router.delete("/partner", response_model=ExitImpersonationResponse)
def exit_partner(
    request: Request,
    console: ConsoleSession = Depends(get_console),
    _ctx=Depends(get_current_context),
):
    """Unwinds store and partner impersonation; a no-op when not impersonating."""
    try:
        changed = console.exit_partner()
    except PosApiError as exc:
        raise_http_error("exit_partner", exc, request_id(request))
    return ExitImpersonationResponse(changed=changed, session=session_response(console))
