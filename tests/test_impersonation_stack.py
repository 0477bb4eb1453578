import pytest
from pydantic import ValidationError

from pos_console.auth.context import ImpersonationState
from pos_console.auth.roles import PrincipalKind
from pos_console.models.auth import CredentialPair, ImpersonationStatus
from pos_console.models.tenancy import Partner, Store
from pos_console.session.errors import ImpersonationStateError
from pos_console.session.impersonation import ImpersonationStack, PartnerLevel, StoreLevel

BASE_PAIR = CredentialPair(access_token="acc-base", refresh_token="ref-base")
PARTNER_PAIR = CredentialPair(access_token="acc-partner", refresh_token="ref-partner")


def _partner_level(partner_id: int = 42) -> PartnerLevel:
    return PartnerLevel(partner=Partner(id=partner_id, name="Forty Two Foods"), saved_credentials=BASE_PAIR)


def _store_level(partner_id: int = 42, store_id: int = 7) -> StoreLevel:
    return StoreLevel(
        partner_id=partner_id,
        store=Store(id=store_id, name="FTF Harbor", partner=partner_id),
        saved_credentials=PARTNER_PAIR,
    )


def test_push_and_pop_follow_lifo_order() -> None:
    stack = ImpersonationStack().push(_partner_level()).push(_store_level())

    assert stack.depth == 2
    assert stack.state is ImpersonationState.PARTNER_AND_STORE

    stack, popped = stack.pop()
    assert isinstance(popped, StoreLevel)
    assert popped.saved_credentials == PARTNER_PAIR
    assert stack.state is ImpersonationState.PARTNER

    stack, popped = stack.pop()
    assert isinstance(popped, PartnerLevel)
    assert popped.saved_credentials == BASE_PAIR
    assert stack.depth == 0


def test_push_rejects_third_level() -> None:
    stack = ImpersonationStack().push(_partner_level()).push(_store_level())

    with pytest.raises(ImpersonationStateError):
        stack.push(_store_level(store_id=8))


def test_push_rejects_second_partner_level() -> None:
    stack = ImpersonationStack().push(_partner_level())

    with pytest.raises(ImpersonationStateError):
        stack.push(_partner_level(partner_id=9))


def test_push_rejects_store_of_another_partner() -> None:
    stack = ImpersonationStack().push(_partner_level())

    with pytest.raises(ImpersonationStateError):
        stack.push(_store_level(partner_id=9, store_id=3))


def test_pop_on_empty_stack_raises() -> None:
    with pytest.raises(ImpersonationStateError):
        ImpersonationStack().pop()


def test_store_under_partner_shape_is_rejected_on_load() -> None:
    with pytest.raises(ValidationError):
        ImpersonationStack(levels=(_store_level(), _partner_level()))


def test_persisted_json_restores_level_kinds() -> None:
    raw = (
        '{"levels": ['
        '{"kind": "partner", "partner": {"id": 42, "name": "Forty Two Foods"},'
        ' "saved_credentials": {"access_token": "a0", "refresh_token": "r0"}},'
        '{"kind": "store", "partner_id": 42, "store": {"id": 7, "name": "FTF Harbor"},'
        ' "saved_credentials": {"access_token": "a1", "refresh_token": "r1"}}'
        "]}"
    )

    stack = ImpersonationStack.model_validate_json(raw)

    assert isinstance(stack.levels[0], PartnerLevel)
    assert isinstance(stack.levels[1], StoreLevel)
    assert stack.store_level.saved_credentials.access_token == "a1"


def test_for_principal_drops_levels_the_role_cannot_hold() -> None:
    stack = ImpersonationStack(levels=(_partner_level(), _store_level()))

    assert stack.for_principal(PrincipalKind.SYSTEM_ADMIN) == stack
    assert stack.for_principal(PrincipalKind.CASHIER).depth == 0
    assert stack.for_principal(PrincipalKind.STORE_ADMIN).depth == 0
    tenant = stack.for_principal(PrincipalKind.TENANT_ADMIN)
    assert tenant.depth == 1
    assert isinstance(tenant.top, StoreLevel)


def test_reconcile_clears_everything_when_partner_is_denied() -> None:
    stack = ImpersonationStack(levels=(_partner_level(), _store_level()))

    reconciled = stack.reconcile(ImpersonationStatus(is_impersonating_partner=False))

    assert reconciled.depth == 0


def test_reconcile_drops_denied_store_level_only() -> None:
    stack = ImpersonationStack(levels=(_partner_level(), _store_level()))
    status = ImpersonationStatus(is_impersonating_partner=True, partner=Partner(id=42, name="FTF"))

    reconciled = stack.reconcile(status)

    assert reconciled.state is ImpersonationState.PARTNER
    assert reconciled.partner_level.partner.name == "FTF"
    assert reconciled.partner_level.saved_credentials == BASE_PAIR


def test_reconcile_refreshes_confirmed_store_descriptor() -> None:
    stack = ImpersonationStack(levels=(_partner_level(), _store_level()))
    status = ImpersonationStatus(
        is_impersonating_partner=True,
        partner=Partner(id=42, name="Forty Two Foods"),
        is_impersonating_store=True,
        store=Store(id=7, name="Harbor (renamed)", partner=42),
    )

    reconciled = stack.reconcile(status)

    assert reconciled.depth == 2
    assert reconciled.store_level.store.name == "Harbor (renamed)"


def test_reconcile_leaves_untracked_server_impersonation_alone() -> None:
    status = ImpersonationStatus(is_impersonating_partner=True, partner=Partner(id=42))

    assert ImpersonationStack().reconcile(status).depth == 0
