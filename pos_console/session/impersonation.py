from __future__ import annotations

import logging
from threading import Lock
from typing import TYPE_CHECKING, Annotated, ClassVar, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from pos_console.auth.context import ImpersonationState, can_enter_store, resolve_context
from pos_console.auth.roles import PrincipalKind, may_hold_partner_level, may_hold_store_level
from pos_console.models.auth import CredentialPair, ImpersonationStatus
from pos_console.models.tenancy import Partner, Store
from pos_console.observability import incr_metric, log_event
from pos_console.providers.pos_api.client import (
    PosApiClient,
    PosApiError,
    SessionExpiredError,
    server_error_message,
)
from pos_console.session.errors import (
    ImpersonationFailedError,
    ImpersonationNotAllowedError,
    ImpersonationStateError,
    StaleTransitionError,
)

if TYPE_CHECKING:
    from pos_console.session.store import SessionSnapshot, SessionStore


class PartnerLevel(BaseModel):
    """Level 1. ``saved_credentials`` is the pair that was active before entering."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["partner"] = "partner"
    partner: Partner
    saved_credentials: CredentialPair


class StoreLevel(BaseModel):
    """Level 2. ``saved_credentials`` is the partner-level pair."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["store"] = "store"
    partner_id: int
    store: Store
    saved_credentials: CredentialPair


ImpersonationLevel = Annotated[Union[PartnerLevel, StoreLevel], Field(discriminator="kind")]


class ImpersonationStack(BaseModel):
    """Bounded stack of impersonation levels.

    Legal shapes are ``[]``, ``[partner]``, ``[partner, store]`` and ``[store]``;
    the last one belongs to a tenant admin whose own partner stands in for level 1.
    """

    model_config = ConfigDict(frozen=True)

    MAX_DEPTH: ClassVar[int] = 2

    levels: tuple[ImpersonationLevel, ...] = ()

    @model_validator(mode="after")
    def _check_shape(self) -> ImpersonationStack:
        if len(self.levels) > self.MAX_DEPTH:
            raise ValueError(f"Impersonation depth cannot exceed {self.MAX_DEPTH}")
        if len(self.levels) == 2:
            partner, store = self.levels
            if not isinstance(partner, PartnerLevel) or not isinstance(store, StoreLevel):
                raise ValueError("A store level can only sit on top of a partner level")
            if store.partner_id != partner.partner.id:
                raise ValueError("Store level does not belong to the impersonated partner")
        return self

    @property
    def depth(self) -> int:
        return len(self.levels)

    @property
    def top(self) -> PartnerLevel | StoreLevel | None:
        return self.levels[-1] if self.levels else None

    @property
    def partner_level(self) -> PartnerLevel | None:
        for level in self.levels:
            if isinstance(level, PartnerLevel):
                return level
        return None

    @property
    def store_level(self) -> StoreLevel | None:
        for level in self.levels:
            if isinstance(level, StoreLevel):
                return level
        return None

    @property
    def state(self) -> ImpersonationState:
        if self.store_level is not None:
            return ImpersonationState.PARTNER_AND_STORE
        if self.partner_level is not None:
            return ImpersonationState.PARTNER
        return ImpersonationState.BASE

    def push(self, level: PartnerLevel | StoreLevel) -> ImpersonationStack:
        if self.depth >= self.MAX_DEPTH:
            raise ImpersonationStateError("Already at the deepest impersonation level")
        if isinstance(level, PartnerLevel) and self.levels:
            raise ImpersonationStateError("Exit the current impersonation before impersonating another partner")
        if isinstance(level, StoreLevel) and self.store_level is not None:
            raise ImpersonationStateError("Exit the current store before impersonating another store")
        try:
            return ImpersonationStack(levels=(*self.levels, level))
        except ValidationError as exc:
            raise ImpersonationStateError(str(exc.errors()[0]["msg"])) from exc

    def pop(self) -> tuple[ImpersonationStack, PartnerLevel | StoreLevel]:
        if not self.levels:
            raise ImpersonationStateError("Not impersonating")
        return ImpersonationStack(levels=self.levels[:-1]), self.levels[-1]

    def for_principal(self, kind: PrincipalKind) -> ImpersonationStack:
        """Drop levels the principal could never have pushed."""
        kept = [
            level
            for level in self.levels
            if (isinstance(level, PartnerLevel) and may_hold_partner_level(kind))
            or (isinstance(level, StoreLevel) and may_hold_store_level(kind))
        ]
        if kind is PrincipalKind.SYSTEM_ADMIN and kept and isinstance(kept[0], StoreLevel):
            kept = []
        return ImpersonationStack(levels=tuple(kept))

    def reconcile(self, status: ImpersonationStatus) -> ImpersonationStack:
        """Align local levels with what the server reports for the active token.

        Levels the server denies are dropped together with their reserve
        credentials. Confirmed levels pick up the server's descriptor. A server
        side impersonation with no local record is left alone: without the
        reserve pair there is nothing to unwind to.
        """
        partner_level = self.partner_level
        store_level = self.store_level

        if partner_level is not None:
            if not status.is_impersonating_partner:
                return ImpersonationStack()
            if status.partner is not None:
                partner_level = partner_level.model_copy(update={"partner": status.partner})

        if store_level is not None:
            if not status.is_impersonating_store:
                store_level = None
            elif status.store is not None:
                store_level = store_level.model_copy(update={"store": status.store})
            if (
                store_level is not None
                and partner_level is not None
                and store_level.partner_id != partner_level.partner.id
            ):
                store_level = None

        levels: list[PartnerLevel | StoreLevel] = []
        if partner_level is not None:
            levels.append(partner_level)
        if store_level is not None:
            levels.append(store_level)
        return ImpersonationStack(levels=tuple(levels))


_ENTRY_STATUS_MESSAGES = {
    "partner": {
        400: "Cannot impersonate this partner (may be inactive)",
        403: "You do not have permission to impersonate this partner",
        404: "Partner not found",
    },
    "store": {
        400: "Cannot impersonate this store (may be inactive)",
        403: "You do not have permission to impersonate this store",
        404: "Store not found",
    },
}


def entry_failure_message(exc: PosApiError, target: Literal["partner", "store"]) -> str:
    """Server reason when the API refused the request, else a status-specific default.

    Errors without a status (transport failures, malformed success bodies)
    carry no server reason.
    """
    if exc.status_code is not None:
        reason = server_error_message(exc.payload)
        if reason:
            return reason
        default = _ENTRY_STATUS_MESSAGES[target].get(exc.status_code)
        if default:
            return default
    return f"Failed to impersonate {target}"


class ImpersonationManager:
    """Moves the session between BASE, PARTNER and PARTNER_AND_STORE.

    Transitions run one at a time. Each one works from a single session
    snapshot and commits against that snapshot's revision, so a logout (or any
    other change) that lands while the request is in flight wins.
    """

    def __init__(self, session: SessionStore, client: PosApiClient) -> None:
        self._session = session
        self._client = client
        self._transition_lock = Lock()

    def enter_partner(self, partner_id: int) -> Partner:
        with self._transition_lock:
            snap = self._session.require_snapshot()
            kind = snap.principal.kind
            if not may_hold_partner_level(kind):
                raise ImpersonationNotAllowedError("Only super admins can impersonate partners")
            if snap.stack.depth:
                raise ImpersonationStateError("Exit the current impersonation before impersonating another partner")

            incr_metric("impersonation.transitions.requested", transition="enter_partner")
            try:
                response = self._client.impersonate_partner(snap.credentials.access_token, partner_id)
            except SessionExpiredError:
                raise
            except PosApiError as exc:
                raise self._entry_failed("enter_partner", exc, "partner", partner_id=partner_id) from exc

            level = PartnerLevel(partner=response.impersonating, saved_credentials=snap.credentials)
            self._commit_entry("enter_partner", snap, response.credentials, snap.stack.push(level))
            return response.impersonating

    def enter_store(self, partner_id: int, store_id: int) -> Store:
        with self._transition_lock:
            snap = self._session.require_snapshot()
            ctx = resolve_context(snap.principal, snap.stack)
            if not may_hold_store_level(ctx.kind):
                raise ImpersonationNotAllowedError("Only partner admins can impersonate stores")
            if ctx.state is ImpersonationState.PARTNER_AND_STORE:
                raise ImpersonationStateError("Exit the current store before impersonating another store")
            if not can_enter_store(ctx):
                raise ImpersonationStateError("Impersonate a partner before impersonating one of its stores")
            if ctx.effective_partner_id != partner_id:
                raise ImpersonationNotAllowedError(
                    f"Store impersonation must target the current partner ({ctx.effective_partner_id})"
                )

            incr_metric("impersonation.transitions.requested", transition="enter_store")
            try:
                response = self._client.impersonate_store(snap.credentials.access_token, partner_id, store_id)
            except SessionExpiredError:
                raise
            except PosApiError as exc:
                raise self._entry_failed(
                    "enter_store", exc, "store", partner_id=partner_id, store_id=store_id
                ) from exc

            level = StoreLevel(
                partner_id=partner_id,
                store=response.impersonating_store,
                saved_credentials=snap.credentials,
            )
            self._commit_entry("enter_store", snap, response.credentials, snap.stack.push(level))
            return response.impersonating_store

    def exit_store(self) -> bool:
        """Leave store impersonation. Returns False when there was nothing to leave."""
        with self._transition_lock:
            snap = self._session.snapshot()
            level = snap.stack.top
            if not snap.is_authenticated or not isinstance(level, StoreLevel):
                return False
            return self._exit_store(snap, level)

    def exit_partner(self) -> bool:
        """Unwind to BASE, leaving any store level first. No-op at BASE."""
        with self._transition_lock:
            snap = self._session.snapshot()
            if not snap.is_authenticated or not snap.stack.depth:
                return False
            top = snap.stack.top
            if isinstance(top, StoreLevel):
                if not self._exit_store(snap, top):
                    return False
                snap = self._session.snapshot()
            level = snap.stack.top
            if not isinstance(level, PartnerLevel):
                return True

            try:
                self._client.exit_impersonation(snap.credentials.access_token)
            except SessionExpiredError:
                raise
            except PosApiError as exc:
                self._notification_failed("exit_partner", exc)

            stack, _ = snap.stack.pop()
            return self._commit_exit("exit_partner", snap, level.saved_credentials, stack)

    def _exit_store(self, snap: SessionSnapshot, level: StoreLevel) -> bool:
        fresh: CredentialPair | None = None
        try:
            fresh = self._client.exit_store_impersonation(snap.credentials.access_token).credentials
        except SessionExpiredError:
            raise
        except PosApiError as exc:
            self._notification_failed("exit_store", exc)

        stack, _ = snap.stack.pop()
        return self._commit_exit("exit_store", snap, fresh or level.saved_credentials, stack)

    def _commit_entry(
        self,
        transition: str,
        snap: SessionSnapshot,
        credentials: CredentialPair,
        stack: ImpersonationStack,
    ) -> None:
        if not self._session.commit(credentials, stack, expected_revision=snap.revision):
            incr_metric("impersonation.transitions.discarded", transition=transition)
            log_event("impersonation_response_discarded", level=logging.WARNING, transition=transition)
            raise StaleTransitionError()
        incr_metric("impersonation.transitions.completed", transition=transition)
        log_event(
            "impersonation_entered",
            transition=transition,
            state=stack.state.value,
            partner_id=stack.partner_level.partner.id if stack.partner_level else None,
            store_id=stack.store_level.store.id if stack.store_level else None,
        )

    def _commit_exit(
        self,
        transition: str,
        snap: SessionSnapshot,
        credentials: CredentialPair,
        stack: ImpersonationStack,
    ) -> bool:
        if not self._session.commit(credentials, stack, expected_revision=snap.revision):
            incr_metric("impersonation.transitions.discarded", transition=transition)
            log_event("impersonation_exit_discarded", level=logging.WARNING, transition=transition)
            return False
        incr_metric("impersonation.transitions.completed", transition=transition)
        log_event("impersonation_exited", transition=transition, state=stack.state.value)
        return True

    def _entry_failed(
        self,
        transition: str,
        exc: PosApiError,
        target: Literal["partner", "store"],
        **fields: int,
    ) -> ImpersonationFailedError:
        incr_metric(
            "impersonation.transitions.failed",
            transition=transition,
            category=exc.category,
            status_code=exc.status_code,
        )
        log_event(
            "impersonation_entry_failed",
            level=logging.WARNING,
            transition=transition,
            category=exc.category,
            status_code=exc.status_code,
            error=exc.message,
            **fields,
        )
        return ImpersonationFailedError(
            entry_failure_message(exc, target),
            status_code=exc.status_code,
            category=exc.category,
        )

    def _notification_failed(self, transition: str, exc: PosApiError) -> None:
        incr_metric("impersonation.exit_notifications.failed", transition=transition, category=exc.category)
        log_event(
            "impersonation_exit_notification_failed",
            level=logging.WARNING,
            transition=transition,
            category=exc.category,
            status_code=exc.status_code,
            error=exc.message,
        )
