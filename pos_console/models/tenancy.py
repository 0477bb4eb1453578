from pydantic import BaseModel, ConfigDict


class PartnerSummary(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    name: str = ""
    code: str = ""


class Partner(PartnerSummary):
    contact_email: str | None = None
    contact_phone: str | None = None
    address: str | None = None
    is_active: bool = True
    user_count: int | None = None


class Store(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    name: str = ""
    code: str = ""
    description: str | None = None
    address: str | None = None
    is_active: bool = True
    is_default: bool | None = None
    partner: int | None = None
    partner_name: str | None = None
    partner_code: str | None = None
