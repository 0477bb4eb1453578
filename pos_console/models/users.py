from pydantic import BaseModel, ConfigDict, field_validator

from pos_console.auth.roles import PrincipalKind, Role, normalize_role, principal_kind
from pos_console.models.tenancy import PartnerSummary, Store


class Principal(BaseModel):
    """The authenticated user as returned by the login endpoint."""

    model_config = ConfigDict(extra="ignore")

    id: int
    username: str
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    role: Role
    is_super_admin: bool = False
    partner: PartnerSummary | None = None
    assigned_store: Store | None = None
    default_store: Store | None = None

    @field_validator("role", mode="before")
    @classmethod
    def _normalize_role(cls, value: str) -> Role:
        return normalize_role(value)

    @property
    def kind(self) -> PrincipalKind:
        return principal_kind(self.role, self.is_super_admin)
