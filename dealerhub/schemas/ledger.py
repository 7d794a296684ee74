from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class LeadCreate(BaseModel):
    listing_id: str
    name: str = Field(min_length=1, max_length=200)
    email: EmailStr
    phone: str | None = Field(default=None, max_length=40)
    city: str | None = Field(default=None, max_length=120)
    message: str | None = Field(default=None, max_length=5_000)
    source_type: Literal["organic", "tipper"] = "organic"
    source_id: str | None = None


class LeadStatusIn(BaseModel):
    status: Literal["new", "contacted", "closed"]


class LeadOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    listing_id: str
    from_user_id: str | None
    name: str
    email: str
    phone: str | None
    city: str | None
    message: str | None
    source_type: str
    source_id: str | None
    status: str
    created_at: datetime


class TransactionCreate(BaseModel):
    listing_id: str
    agreed_price: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    lead_id: str | None = None


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    listing_id: str
    buyer_id: str | None
    seller_id: str | None
    lead_id: str | None
    agreed_price: Decimal
    status: str
    completed_at: datetime | None
    created_at: datetime


class CommissionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    transaction_id: str
    partner_id: str
    lead_id: str | None
    rate: Decimal
    amount: Decimal
    status: str
    paid_at: datetime | None
    created_at: datetime


class TransactionCompletedOut(BaseModel):
    transaction: TransactionOut
    commission: CommissionOut | None
