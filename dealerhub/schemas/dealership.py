from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class DealershipCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    city: str | None = Field(default=None, max_length=120)
    country: str | None = Field(default=None, max_length=120)
    website_url: str | None = Field(default=None, max_length=500)
    logo_url: str | None = Field(default=None, max_length=500)


class DealershipOut(BaseModel):
    id: str
    owner_user_id: str
    name: str
    city: str | None
    country: str | None
    website_url: str | None
    logo_url: str | None


class MembershipApply(BaseModel):
    # omitted = independent partner
    dealership_id: str | None = None
    business_name: str | None = Field(default=None, max_length=200)
    contact_name: str | None = Field(default=None, max_length=200)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, max_length=40)


class MembershipApprovalIn(BaseModel):
    is_approved: bool
    commission_rate: Decimal | None = Field(default=None, ge=0, le=1, decimal_places=4)


class MembershipOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    dealership_id: str | None
    partner_user_id: str
    is_approved: bool
    commission_rate: Decimal
    business_name: str | None
    contact_name: str | None
    email: str | None
    phone: str | None
    created_at: datetime
