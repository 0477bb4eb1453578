import pytest

from pos_console.auth.context import (
    Capability,
    ImpersonationState,
    capabilities,
    has_capability,
    resolve_context,
)
from pos_console.auth.roles import PrincipalKind, Role, normalize_role, principal_kind
from pos_console.models.auth import CredentialPair
from pos_console.models.tenancy import Partner, Store
from pos_console.models.users import Principal
from pos_console.session.impersonation import ImpersonationStack, PartnerLevel, StoreLevel

from tests.conftest import USERS

BASE_PAIR = CredentialPair(access_token="acc-base", refresh_token="ref-base")
PARTNER_PAIR = CredentialPair(access_token="acc-partner", refresh_token="ref-partner")


def _principal(username: str) -> Principal:
    return Principal.model_validate(USERS[username])


def _partner_level(partner_id: int = 42) -> PartnerLevel:
    return PartnerLevel(partner=Partner(id=partner_id, name="Forty Two Foods"), saved_credentials=BASE_PAIR)


def _store_level(partner_id: int = 42, store_id: int = 7) -> StoreLevel:
    return StoreLevel(
        partner_id=partner_id,
        store=Store(id=store_id, name="FTF Harbor", partner=partner_id),
        saved_credentials=PARTNER_PAIR,
    )


def test_normalize_role_accepts_aliases_and_casing() -> None:
    assert normalize_role("system-admin") is Role.ADMIN
    assert normalize_role("tenant_admin") is Role.ADMIN
    assert normalize_role("store-admin") is Role.STORE_ADMIN
    assert normalize_role("cashier") is Role.CASHIER
    assert normalize_role(Role.VIEWER) is Role.VIEWER


def test_normalize_role_rejects_unknown_role() -> None:
    with pytest.raises(ValueError, match="Unsupported role"):
        normalize_role("owner")


def test_principal_kind_prefers_super_admin_flag() -> None:
    assert principal_kind("ADMIN", True) is PrincipalKind.SYSTEM_ADMIN
    assert principal_kind("ADMIN", False) is PrincipalKind.TENANT_ADMIN
    assert principal_kind("STORE_ADMIN", False) is PrincipalKind.STORE_ADMIN
    assert principal_kind("INVENTORY_STAFF", False) is PrincipalKind.INVENTORY_STAFF
    assert principal_kind("CASHIER", False) is PrincipalKind.CASHIER


def test_system_admin_at_base_has_no_tenant() -> None:
    ctx = resolve_context(_principal("root"), ImpersonationStack())

    assert ctx.state is ImpersonationState.BASE
    assert ctx.effective_partner_id is None
    assert ctx.effective_store_id is None
    assert has_capability(ctx, Capability.IMPERSONATE_PARTNER)
    assert has_capability(ctx, Capability.MANAGE_PARTNERS)
    assert not has_capability(ctx, Capability.VIEW_TENANT_DATA)
    assert not has_capability(ctx, Capability.EXIT_IMPERSONATION)


def test_partner_level_makes_system_admin_act_as_tenant_admin() -> None:
    stack = ImpersonationStack(levels=(_partner_level(),))

    ctx = resolve_context(_principal("root"), stack)

    assert ctx.state is ImpersonationState.PARTNER
    assert ctx.effective_partner_id == 42
    assert ctx.effective_store_id is None
    assert ctx.is_tenant_admin
    assert set(capabilities(ctx)) >= {
        Capability.IMPERSONATE_STORE,
        Capability.EXIT_IMPERSONATION,
        Capability.VIEW_TENANT_DATA,
        Capability.VIEW_REPORTS,
        Capability.SELECT_STORE_FILTER,
    }
    assert not has_capability(ctx, Capability.IMPERSONATE_PARTNER)
    assert not has_capability(ctx, Capability.MANAGE_PARTNERS)


def test_store_level_overrides_assignment_for_system_admin() -> None:
    stack = ImpersonationStack(levels=(_partner_level(), _store_level()))

    ctx = resolve_context(_principal("root"), stack)

    assert ctx.state is ImpersonationState.PARTNER_AND_STORE
    assert ctx.effective_partner_id == 42
    assert ctx.effective_store_id == 7
    assert has_capability(ctx, Capability.USE_POS)
    assert not has_capability(ctx, Capability.SELECT_STORE_FILTER)
    assert not has_capability(ctx, Capability.IMPERSONATE_STORE)


def test_tenant_admin_uses_own_partner_and_may_enter_store() -> None:
    ctx = resolve_context(_principal("owner"), ImpersonationStack())

    assert ctx.kind is PrincipalKind.TENANT_ADMIN
    assert ctx.effective_partner_id == 9
    assert ctx.effective_store_id is None
    assert has_capability(ctx, Capability.IMPERSONATE_STORE)
    assert has_capability(ctx, Capability.MANAGE_STORES)
    assert not has_capability(ctx, Capability.IMPERSONATE_PARTNER)


def test_tenant_admin_store_level_without_partner_level() -> None:
    stack = ImpersonationStack(levels=(_store_level(partner_id=9, store_id=12),))

    ctx = resolve_context(_principal("owner"), stack)

    assert ctx.state is ImpersonationState.PARTNER_AND_STORE
    assert ctx.effective_partner_id == 9
    assert ctx.effective_store_id == 12
    assert not ctx.is_impersonating_partner


def test_store_level_user_ignores_persisted_impersonation() -> None:
    stack = ImpersonationStack(levels=(_partner_level(), _store_level()))

    ctx = resolve_context(_principal("clerk"), stack)

    assert ctx.state is ImpersonationState.BASE
    assert ctx.effective_partner_id == 9
    assert ctx.effective_store_id == 3
    assert ctx.is_store_level_user
    assert not has_capability(ctx, Capability.IMPERSONATE_STORE)
    assert not has_capability(ctx, Capability.SELECT_STORE_FILTER)
    assert has_capability(ctx, Capability.USE_POS)


def test_cashier_resolves_to_assigned_store() -> None:
    ctx = resolve_context(_principal("till"), ImpersonationStack())

    assert ctx.is_cashier
    assert ctx.effective_store_id == 3
    assert not has_capability(ctx, Capability.VIEW_REPORTS)
    assert has_capability(ctx, Capability.VIEW_TENANT_DATA)


def test_orphan_store_level_is_ignored_for_system_admin() -> None:
    stack = ImpersonationStack(levels=(_store_level(),))

    ctx = resolve_context(_principal("root"), stack)

    assert ctx.state is ImpersonationState.BASE
    assert ctx.effective_store_id is None
