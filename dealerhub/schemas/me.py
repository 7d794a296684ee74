from decimal import Decimal

from pydantic import BaseModel


class MeMembershipOut(BaseModel):
    id: str
    dealership_id: str | None
    is_approved: bool
    commission_rate: Decimal


class MeOut(BaseModel):
    user_id: str
    role: str
    api_key_id: str | None
    dealership_id: str | None
    dealership_name: str | None
    partner_memberships: list[MeMembershipOut]
