from fastapi import APIRouter, Depends, Request

from pos_console.auth.dependencies import get_console, get_current_context
from pos_console.models.session import SelectStoreRequest, StoreSelectionResponse
from pos_console.providers.pos_api.client import PosApiError
from pos_console.routers.common import raise_http_error, request_id
from pos_console.session.console import ConsoleSession
from pos_console.session.errors import ConsoleSessionError

router = APIRouter(prefix="/api/stores", tags=["stores"])


def _selection(console: ConsoleSession) -> StoreSelectionResponse:
    selector = console.stores
    return StoreSelectionResponse(
        partner_id=selector.partner_id,
        stores=selector.stores,
        selected_store_id=selector.selected_store_id,
        selected_store=selector.selected_store,
        locked=selector.is_locked,
    )


@router.get("", response_model=StoreSelectionResponse)
def get_store_selection(
    console: ConsoleSession = Depends(get_console),
    _ctx=Depends(get_current_context),
):
    return _selection(console)


@router.post("/refresh", response_model=StoreSelectionResponse)
def refresh_stores(
    request: Request,
    console: ConsoleSession = Depends(get_console),
    _ctx=Depends(get_current_context),
):
    try:
        console.stores.refresh()
    except PosApiError as exc:
        raise_http_error("refresh_stores", exc, request_id(request))
    return _selection(console)


@router.put("/selected", response_model=StoreSelectionResponse)
def select_store(
    data: SelectStoreRequest,
    request: Request,
    console: ConsoleSession = Depends(get_console),
    _ctx=Depends(get_current_context),
):
    try:
        console.select_store(data.store_id)
    except ConsoleSessionError as exc:
        raise_http_error("select_store", exc, request_id(request))
    return _selection(console)
