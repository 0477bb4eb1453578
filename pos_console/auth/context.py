from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, assert_never

from pos_console.auth.roles import (
    PrincipalKind,
    is_store_level,
    may_hold_partner_level,
    may_hold_store_level,
)

if TYPE_CHECKING:
    from pos_console.models.tenancy import PartnerSummary, Store
    from pos_console.models.users import Principal
    from pos_console.session.impersonation import ImpersonationStack


class ImpersonationState(str, Enum):
    BASE = "base"
    PARTNER = "partner"
    PARTNER_AND_STORE = "partner_and_store"


class Capability(str, Enum):
    IMPERSONATE_PARTNER = "impersonate_partner"
    IMPERSONATE_STORE = "impersonate_store"
    EXIT_IMPERSONATION = "exit_impersonation"
    MANAGE_PARTNERS = "manage_partners"
    MANAGE_STORES = "manage_stores"
    VIEW_TENANT_DATA = "view_tenant_data"
    VIEW_REPORTS = "view_reports"
    SELECT_STORE_FILTER = "select_store_filter"
    USE_POS = "use_pos"


@dataclass(frozen=True)
class EffectiveContext:
    """Identity context every tenant- or store-scoped call is issued under."""

    principal_id: int
    username: str
    kind: PrincipalKind
    state: ImpersonationState
    effective_partner_id: int | None
    effective_store_id: int | None
    impersonated_partner: PartnerSummary | None = None
    impersonated_store: Store | None = None

    @property
    def is_impersonating_partner(self) -> bool:
        return self.impersonated_partner is not None

    @property
    def is_impersonating_store(self) -> bool:
        return self.impersonated_store is not None

    @property
    def is_impersonating(self) -> bool:
        return self.is_impersonating_partner or self.is_impersonating_store

    @property
    def is_super_admin(self) -> bool:
        return self.kind is PrincipalKind.SYSTEM_ADMIN

    @property
    def is_tenant_admin(self) -> bool:
        return self.kind is PrincipalKind.TENANT_ADMIN or self.is_impersonating_partner

    @property
    def is_store_admin(self) -> bool:
        return self.kind is PrincipalKind.STORE_ADMIN

    @property
    def is_cashier(self) -> bool:
        return self.kind is PrincipalKind.CASHIER

    @property
    def is_store_level_user(self) -> bool:
        return is_store_level(self.kind)


def resolve_context(principal: Principal, stack: ImpersonationStack) -> EffectiveContext:
    """Derive the effective partner/store from the principal and the impersonation stack.

    Impersonation levels only count for actors allowed to hold them, so a
    store-level user always resolves to their own assigned store even if the
    persisted stack says otherwise.
    """
    kind = principal.kind
    partner_level = stack.partner_level if may_hold_partner_level(kind) else None
    store_level = stack.store_level if may_hold_store_level(kind) else None
    # A system admin reaches a store only through a partner level.
    if store_level is not None and kind is PrincipalKind.SYSTEM_ADMIN and partner_level is None:
        store_level = None

    if partner_level is not None:
        effective_partner_id: int | None = partner_level.partner.id
    elif principal.partner is not None:
        effective_partner_id = principal.partner.id
    else:
        effective_partner_id = None

    if store_level is not None:
        effective_store_id: int | None = store_level.store.id
    elif principal.assigned_store is not None:
        effective_store_id = principal.assigned_store.id
    else:
        effective_store_id = None

    if store_level is not None:
        state = ImpersonationState.PARTNER_AND_STORE
    elif partner_level is not None:
        state = ImpersonationState.PARTNER
    else:
        state = ImpersonationState.BASE

    return EffectiveContext(
        principal_id=principal.id,
        username=principal.username,
        kind=kind,
        state=state,
        effective_partner_id=effective_partner_id,
        effective_store_id=effective_store_id,
        impersonated_partner=partner_level.partner if partner_level else None,
        impersonated_store=store_level.store if store_level else None,
    )


def can_enter_store(ctx: EffectiveContext) -> bool:
    match ctx.kind:
        case PrincipalKind.TENANT_ADMIN:
            return ctx.state is ImpersonationState.BASE
        case PrincipalKind.SYSTEM_ADMIN:
            return ctx.state is ImpersonationState.PARTNER
        case (
            PrincipalKind.STORE_ADMIN
            | PrincipalKind.INVENTORY_STAFF
            | PrincipalKind.CASHIER
            | PrincipalKind.VIEWER
        ):
            return False
        case _:
            assert_never(ctx.kind)


def has_capability(ctx: EffectiveContext, capability: Capability) -> bool:
    match capability:
        case Capability.IMPERSONATE_PARTNER:
            return ctx.is_super_admin and ctx.state is ImpersonationState.BASE
        case Capability.IMPERSONATE_STORE:
            return can_enter_store(ctx)
        case Capability.EXIT_IMPERSONATION:
            return ctx.is_impersonating
        case Capability.MANAGE_PARTNERS:
            return ctx.is_super_admin and not ctx.is_impersonating
        case Capability.MANAGE_STORES:
            return ctx.is_tenant_admin and ctx.effective_partner_id is not None
        case Capability.VIEW_TENANT_DATA:
            return not ctx.is_super_admin or ctx.is_impersonating
        case Capability.VIEW_REPORTS:
            return has_capability(ctx, Capability.VIEW_TENANT_DATA) and (
                ctx.is_super_admin or ctx.is_tenant_admin
            )
        case Capability.SELECT_STORE_FILTER:
            return (
                ctx.is_tenant_admin
                and not ctx.is_impersonating_store
                and ctx.effective_store_id is None
            )
        case Capability.USE_POS:
            return ctx.effective_store_id is not None
        case _:
            assert_never(capability)


def capabilities(ctx: EffectiveContext) -> list[Capability]:
    return [capability for capability in Capability if has_capability(ctx, capability)]
