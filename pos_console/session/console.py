from __future__ import annotations

from typing import Any

import httpx

from pos_console.auth.context import Capability, EffectiveContext, has_capability, resolve_context
from pos_console.config import Settings
from pos_console.models.tenancy import Partner, Store
from pos_console.models.users import Principal
from pos_console.providers.pos_api.client import PosApiClient, SessionExpiredError
from pos_console.session.errors import NotAuthenticatedError
from pos_console.session.impersonation import ImpersonationManager
from pos_console.session.storage import JsonFileStorage, SessionStorage
from pos_console.session.store import SessionSnapshot, SessionStore
from pos_console.session.store_selector import StoreSelector


PRODUCTS_PATH = "/inventory/products/"
SALES_PATH = "/sales/"
STOCK_TRANSACTIONS_PATH = "/stock/transactions/"
EXPENSES_PATH = "/expenses/"
DASHBOARD_STATS_PATH = "/dashboard/stats/"
PARTNERS_PATH = "/auth/partners/"


def report_path(report_type: str) -> str:
    return f"/dashboard/reports/{report_type}/"


class ConsoleSession:
    """Identity and tenancy state for one signed-in console.

    Built once at startup and handed to whatever needs it. ``init`` restores
    the persisted session; ``dispose`` logs out and releases the HTTP client.
    """

    def __init__(
        self,
        storage: SessionStorage,
        *,
        api_base_url: str,
        timeout_seconds: float = 12.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.storage = storage
        self.client = PosApiClient(
            api_base_url,
            timeout_seconds=timeout_seconds,
            transport=transport,
            on_session_expired=self._handle_session_expired,
        )
        self.session = SessionStore(storage, self.client)
        self.impersonation = ImpersonationManager(self.session, self.client)
        self.stores = StoreSelector(self.session, self.client, storage)

    @classmethod
    def from_settings(cls, config: Settings) -> ConsoleSession:
        return cls(
            JsonFileStorage(config.storage_path),
            api_base_url=config.api_base_url,
            timeout_seconds=config.request_timeout_seconds,
        )

    def _handle_session_expired(self) -> None:
        self.session.expire()
        self.stores.reset()

    def init(self) -> bool:
        """Restore the persisted session. False when there is none or it has expired."""
        if not self.session.restore_session():
            return False
        try:
            self.stores.refresh()
        except SessionExpiredError:
            return False
        return True

    def dispose(self) -> None:
        try:
            if self.session.is_authenticated:
                self.logout()
        finally:
            self.client.close()

    def close(self) -> None:
        self.client.close()

    @property
    def is_authenticated(self) -> bool:
        return self.session.is_authenticated

    @property
    def principal(self) -> Principal | None:
        return self.session.snapshot().principal

    @property
    def context(self) -> EffectiveContext:
        """Recomputed on every read."""
        snap = self.session.snapshot()
        if not snap.is_authenticated:
            raise NotAuthenticatedError()
        return resolve_context(snap.principal, snap.stack)

    def has_capability(self, capability: Capability) -> bool:
        return has_capability(self.context, capability)

    def login(self, username: str, password: str) -> Principal:
        principal = self.session.login(username, password)
        self.stores.refresh()
        return principal

    def logout(self) -> None:
        self.session.logout()
        self.stores.reset()

    def enter_partner(self, partner_id: int) -> Partner:
        partner = self.impersonation.enter_partner(partner_id)
        self.stores.refresh()
        return partner

    def enter_store(self, partner_id: int, store_id: int) -> Store:
        store = self.impersonation.enter_store(partner_id, store_id)
        self.stores.refresh()
        return store

    def exit_store(self) -> bool:
        changed = self.impersonation.exit_store()
        if changed:
            self.stores.refresh()
        return changed

    def exit_partner(self) -> bool:
        changed = self.impersonation.exit_partner()
        if changed:
            self.stores.refresh()
        return changed

    def select_store(self, store_id: int | None) -> int | None:
        return self.stores.select(store_id)

    def scoped_params(self, filters: dict[str, Any] | None = None, *, use_store_filter: bool = True) -> dict[str, Any]:
        """Query parameters for a tenant-scoped read.

        ``store_id`` is the effective store when there is one; otherwise the
        store selector's filter, if asked for and set.
        """
        return self._scope(self.session.require_snapshot(), filters, use_store_filter)

    def _scope(self, snap: SessionSnapshot, filters: dict[str, Any] | None, use_store_filter: bool) -> dict[str, Any]:
        ctx = resolve_context(snap.principal, snap.stack)
        params = {key: value for key, value in (filters or {}).items() if value not in (None, "")}
        params.pop("store_id", None)
        store_id = ctx.effective_store_id
        if store_id is None and use_store_filter and self.stores.partner_id == ctx.effective_partner_id:
            store_id = self.stores.selected_store_id
        if store_id is not None:
            params["store_id"] = store_id
        return params

    def _scoped_get(self, path: str, filters: dict[str, Any], *, use_store_filter: bool = True) -> Any:
        snap = self.session.require_snapshot()
        params = self._scope(snap, filters, use_store_filter)
        return self.client.get_json(snap.credentials.access_token, path, params)

    def list_products(self, *, use_store_filter: bool = True, **filters: Any) -> Any:
        return self._scoped_get(PRODUCTS_PATH, filters, use_store_filter=use_store_filter)

    def list_sales(self, *, use_store_filter: bool = True, **filters: Any) -> Any:
        return self._scoped_get(SALES_PATH, filters, use_store_filter=use_store_filter)

    def list_stock_transactions(self, *, use_store_filter: bool = True, **filters: Any) -> Any:
        return self._scoped_get(STOCK_TRANSACTIONS_PATH, filters, use_store_filter=use_store_filter)

    def list_expenses(self, *, use_store_filter: bool = True, **filters: Any) -> Any:
        return self._scoped_get(EXPENSES_PATH, filters, use_store_filter=use_store_filter)

    def dashboard_stats(self, *, use_store_filter: bool = True, **filters: Any) -> Any:
        return self._scoped_get(DASHBOARD_STATS_PATH, filters, use_store_filter=use_store_filter)

    def report(self, report_type: str, *, use_store_filter: bool = True, **filters: Any) -> Any:
        return self._scoped_get(report_path(report_type), filters, use_store_filter=use_store_filter)

    def list_partners(self, search: str | None = None) -> Any:
        snap = self.session.require_snapshot()
        params = {"search": search} if search else None
        return self.client.get_json(snap.credentials.access_token, PARTNERS_PATH, params)
