from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class VehicleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    make: str
    model: str
    year: int | None
    price: Decimal | None
    mileage: int | None
    condition: str | None
    fuel_type: str | None
    transmission: str | None
    body_type: str | None
    exterior_color: str | None
    interior_color: str | None
    engine: str | None
    vin: str | None
    description: str | None
    location_city: str | None
    location_country: str | None
    images: list[str]
    features: list[str]
    is_special_offer: bool
    special_offer_label: str | None
    created_at: datetime
    updated_at: datetime


class PendingListingOut(VehicleOut):
    dealership_id: str | None
    created_by: str | None
    approval_status: str
    is_shared_with_network: bool
    is_public: bool
    decided_by: str | None
    decided_at: datetime | None
    admin_notes: str | None
    car_listing_id: str | None


class PartnerListingOut(VehicleOut):
    partner_id: str
    status: str
    is_public: bool
    is_shared_with_network: bool
    is_added_to_main_listings: bool
    car_listing_id: str | None
    content_hash: str | None


class CarListingOut(VehicleOut):
    dealer_id: str | None
    status: str
    is_public: bool
    is_shared_with_network: bool
    source_type: str
    source_id: str


class ListingOverrides(BaseModel):
    """Fields an admin may set when approving, or edit afterwards."""
    model_config = ConfigDict(extra="forbid")

    price: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    make: str | None = Field(default=None, min_length=1, max_length=80)
    model: str | None = Field(default=None, min_length=1, max_length=120)
    year: int | None = Field(default=None, ge=1886, le=2100)
    mileage: int | None = Field(default=None, ge=0)
    description: str | None = Field(default=None, max_length=20_000)
    is_special_offer: bool | None = None
    special_offer_label: str | None = Field(default=None, max_length=120)
    is_shared_with_network: bool | None = None
    is_public: bool | None = None
    admin_notes: str | None = None


class DecisionIn(BaseModel):
    decision: Literal["approved", "rejected"]
    overrides: ListingOverrides | None = None


class PartnerListingAdminUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    price: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    description: str | None = Field(default=None, max_length=20_000)
    status: Literal["available", "reserved", "sold", "rented"] | None = None
    is_public: bool | None = None
    is_shared_with_network: bool | None = None
    is_special_offer: bool | None = None
    special_offer_label: str | None = Field(default=None, max_length=120)


class ListingCard(BaseModel):
    """Summary row for marketplace / inventory / network views."""
    kind: Literal["pending_listing", "partner_listing", "car_listing"]
    id: str
    dealership_id: str | None
    make: str
    model: str
    year: int | None
    price: Decimal | None
    is_special_offer: bool
    created_at: datetime


class VisibilityOut(BaseModel):
    owner: list[ListingCard] = Field(default_factory=list)
    public: list[ListingCard] = Field(default_factory=list)
    network: list[ListingCard] = Field(default_factory=list)


class IngestIn(BaseModel):
    payload: dict[str, Any] = Field(default_factory=dict)
