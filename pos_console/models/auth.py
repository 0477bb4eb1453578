from pydantic import BaseModel, ConfigDict

from pos_console.models.tenancy import Partner, Store
from pos_console.models.users import Principal


class LoginRequest(BaseModel):
    username: str
    password: str


class CredentialPair(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str


class _TokenResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    access_token: str
    refresh_token: str
    expires_in: int | None = None
    token_type: str = "bearer"

    @property
    def credentials(self) -> CredentialPair:
        return CredentialPair(access_token=self.access_token, refresh_token=self.refresh_token)


class LoginResponse(_TokenResponse):
    user: Principal


class ImpersonationResponse(_TokenResponse):
    impersonating: Partner
    message: str | None = None


class StoreImpersonationResponse(_TokenResponse):
    impersonating_store: Store
    message: str | None = None


class ExitStoreImpersonationResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    access_token: str | None = None
    refresh_token: str | None = None
    message: str | None = None

    @property
    def credentials(self) -> CredentialPair | None:
        if not self.access_token or not self.refresh_token:
            return None
        return CredentialPair(access_token=self.access_token, refresh_token=self.refresh_token)


class ImpersonationStatus(BaseModel):
    model_config = ConfigDict(extra="ignore")

    is_impersonating_partner: bool = False
    partner: Partner | None = None
    is_impersonating_store: bool = False
    store: Store | None = None
