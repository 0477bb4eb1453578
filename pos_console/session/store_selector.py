from __future__ import annotations

import logging
from threading import Lock

from pos_console.auth.context import resolve_context
from pos_console.models.tenancy import Store
from pos_console.observability import log_event
from pos_console.providers.pos_api.client import PosApiClient, PosApiError, SessionExpiredError
from pos_console.session.errors import StoreSelectionLockedError, UnknownStoreError
from pos_console.session.storage import SessionStorage, selected_store_key
from pos_console.session.store import SessionStore


def _parse_store_id(raw: str | None) -> int | None:
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


class StoreSelector:
    """Per-partner store filter for list and report queries.

    This is a query filter only. It never feeds the effective store, and while
    a store is impersonated it mirrors that store and refuses changes.
    """

    def __init__(self, session: SessionStore, client: PosApiClient, storage: SessionStorage) -> None:
        self._session = session
        self._client = client
        self._storage = storage
        self._lock = Lock()
        self._partner_id: int | None = None
        self._stores: list[Store] = []
        self._selected_store_id: int | None = None
        self._locked = False

    @property
    def partner_id(self) -> int | None:
        return self._partner_id

    @property
    def stores(self) -> list[Store]:
        return list(self._stores)

    @property
    def selected_store_id(self) -> int | None:
        return self._selected_store_id

    @property
    def selected_store(self) -> Store | None:
        if self._selected_store_id is None:
            return None
        return next((store for store in self._stores if store.id == self._selected_store_id), None)

    @property
    def is_locked(self) -> bool:
        return self._locked

    def reset(self) -> None:
        with self._lock:
            self._partner_id = None
            self._stores = []
            self._selected_store_id = None
            self._locked = False

    def refresh(self) -> int | None:
        """Reload the partner's stores and re-run the selection rules."""
        snap = self._session.snapshot()
        if not snap.is_authenticated:
            self.reset()
            return None
        ctx = resolve_context(snap.principal, snap.stack)
        partner_id = ctx.effective_partner_id
        if partner_id is None:
            self.reset()
            return None

        key = selected_store_key(partner_id)
        fetched = True
        try:
            stores = self._client.list_stores(snap.credentials.access_token)
        except SessionExpiredError:
            self.reset()
            raise
        except PosApiError as exc:
            log_event(
                "store_list_failed",
                level=logging.WARNING,
                partner_id=partner_id,
                category=exc.category,
                error=exc.message,
            )
            stores = []
            fetched = False

        with self._lock:
            if self._session.revision != snap.revision:
                # The session moved on while the list was loading; a newer refresh owns the result.
                return self._selected_store_id

            persisted = _parse_store_id(self._storage.get(key))
            known_ids = {store.id for store in stores}
            default_store = snap.principal.default_store

            if ctx.is_impersonating_store:
                selected = ctx.effective_store_id
            elif not fetched:
                selected = persisted
            elif persisted is not None and persisted in known_ids:
                selected = persisted
            elif default_store is not None and default_store.id in known_ids:
                selected = default_store.id
                self._storage.set(key, str(selected))
            elif stores:
                selected = stores[0].id
                self._storage.set(key, str(selected))
            else:
                selected = None
                self._storage.remove(key)

            self._partner_id = partner_id
            self._stores = stores
            self._selected_store_id = selected
            self._locked = ctx.is_impersonating_store

        log_event(
            "store_selection_refreshed",
            partner_id=partner_id,
            store_count=len(stores),
            selected_store_id=selected,
            locked=ctx.is_impersonating_store,
        )
        return selected

    def select(self, store_id: int | None) -> int | None:
        snap = self._session.snapshot()
        if not snap.is_authenticated:
            return None
        ctx = resolve_context(snap.principal, snap.stack)
        if ctx.is_impersonating_store:
            raise StoreSelectionLockedError()
        partner_id = ctx.effective_partner_id
        if partner_id is None:
            return None

        with self._lock:
            if store_id is not None and self._partner_id == partner_id and self._stores:
                if store_id not in {store.id for store in self._stores}:
                    raise UnknownStoreError(store_id)
            key = selected_store_key(partner_id)
            if store_id is None:
                self._storage.remove(key)
            else:
                self._storage.set(key, str(store_id))
            self._selected_store_id = store_id
        log_event("store_selected", partner_id=partner_id, store_id=store_id)
        return store_id
