from typing import Any, Callable

from fastapi import APIRouter, Depends, Path, Query, Request

from pos_console.auth.context import Capability
from pos_console.auth.dependencies import get_console, require_capability
from pos_console.providers.pos_api.client import PosApiError
from pos_console.routers.common import raise_http_error, request_id
from pos_console.session.console import ConsoleSession
from pos_console.session.errors import ConsoleSessionError

router = APIRouter(prefix="/api", tags=["tenant-data"])

# store_id always comes from the session, never from the caller.
_RESERVED_PARAMS = {"store_id", "use_store_filter"}


def _read(
    operation: str,
    request: Request,
    fetch: Callable[..., Any],
    use_store_filter: bool,
) -> Any:
    filters = {key: value for key, value in request.query_params.items() if key not in _RESERVED_PARAMS}
    try:
        return fetch(use_store_filter=use_store_filter, **filters)
    except (ConsoleSessionError, PosApiError) as exc:
        raise_http_error(operation, exc, request_id(request))


@router.get("/products")
def list_products(
    request: Request,
    use_store_filter: bool = Query(True),
    console: ConsoleSession = Depends(get_console),
    _ctx=Depends(require_capability(Capability.VIEW_TENANT_DATA)),
):
    return _read("list_products", request, console.list_products, use_store_filter)


@router.get("/sales")
def list_sales(
    request: Request,
    use_store_filter: bool = Query(True),
    console: ConsoleSession = Depends(get_console),
    _ctx=Depends(require_capability(Capability.VIEW_TENANT_DATA)),
):
    return _read("list_sales", request, console.list_sales, use_store_filter)


@router.get("/stock")
def list_stock_transactions(
    request: Request,
    use_store_filter: bool = Query(True),
    console: ConsoleSession = Depends(get_console),
    _ctx=Depends(require_capability(Capability.VIEW_TENANT_DATA)),
):
    return _read("list_stock_transactions", request, console.list_stock_transactions, use_store_filter)


@router.get("/expenses")
def list_expenses(
    request: Request,
    use_store_filter: bool = Query(True),
    console: ConsoleSession = Depends(get_console),
    _ctx=Depends(require_capability(Capability.VIEW_TENANT_DATA)),
):
    return _read("list_expenses", request, console.list_expenses, use_store_filter)


@router.get("/dashboard")
def dashboard_stats(
    request: Request,
    use_store_filter: bool = Query(True),
    console: ConsoleSession = Depends(get_console),
    _ctx=Depends(require_capability(Capability.VIEW_TENANT_DATA)),
):
    return _read("dashboard_stats", request, console.dashboard_stats, use_store_filter)


@router.get("/reports/{report_type}")
def report(
    request: Request,
    report_type: str = Path(..., pattern=r"^[a-z0-9][a-z0-9_-]*$"),
    use_store_filter: bool = Query(True),
    console: ConsoleSession = Depends(get_console),
    _ctx=Depends(require_capability(Capability.VIEW_REPORTS)),
):
    def _fetch(**kwargs: Any) -> Any:
        return console.report(report_type, **kwargs)

    return _read("report", request, _fetch, use_store_filter)
