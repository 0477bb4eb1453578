from datetime import datetime

from pydantic import BaseModel

from pos_console.auth.context import Capability, EffectiveContext, ImpersonationState, capabilities
from pos_console.auth.roles import PrincipalKind
from pos_console.models.tenancy import PartnerSummary, Store
from pos_console.models.users import Principal


class EffectiveContextResponse(BaseModel):
    principal_id: int
    username: str
    kind: PrincipalKind
    state: ImpersonationState
    effective_partner_id: int | None
    effective_store_id: int | None
    impersonated_partner: PartnerSummary | None = None
    impersonated_store: Store | None = None
    is_super_admin: bool
    is_tenant_admin: bool
    is_store_admin: bool
    is_cashier: bool
    is_store_level_user: bool
    is_impersonating_partner: bool
    is_impersonating_store: bool
    capabilities: list[Capability]

    @classmethod
    def from_context(cls, ctx: EffectiveContext) -> "EffectiveContextResponse":
        return cls(
            principal_id=ctx.principal_id,
            username=ctx.username,
            kind=ctx.kind,
            state=ctx.state,
            effective_partner_id=ctx.effective_partner_id,
            effective_store_id=ctx.effective_store_id,
            impersonated_partner=ctx.impersonated_partner,
            impersonated_store=ctx.impersonated_store,
            is_super_admin=ctx.is_super_admin,
            is_tenant_admin=ctx.is_tenant_admin,
            is_store_admin=ctx.is_store_admin,
            is_cashier=ctx.is_cashier,
            is_store_level_user=ctx.is_store_level_user,
            is_impersonating_partner=ctx.is_impersonating_partner,
            is_impersonating_store=ctx.is_impersonating_store,
            capabilities=capabilities(ctx),
        )


class SessionResponse(BaseModel):
    authenticated: bool
    user: Principal | None = None
    context: EffectiveContextResponse | None = None
    access_token_expires_at: datetime | None = None


class ExitImpersonationResponse(BaseModel):
    changed: bool
    session: SessionResponse


class StoreSelectionResponse(BaseModel):
    partner_id: int | None
    stores: list[Store]
    selected_store_id: int | None
    selected_store: Store | None
    locked: bool


class SelectStoreRequest(BaseModel):
    store_id: int | None = None
