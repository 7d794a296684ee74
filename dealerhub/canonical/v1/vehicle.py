from __future__ import annotations

from decimal import Decimal
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, HttpUrl, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

_HTTP_URL = TypeAdapter(HttpUrl)


def _well_formed_url(v: str) -> str:
    try:
        _HTTP_URL.validate_python(v)
    except PydanticValidationError:
        raise ValueError("image must be a well-formed http(s) URL")
    return v.strip()


ImageUrl = Annotated[str, AfterValidator(_well_formed_url)]


class VehicleV1(BaseModel):
    """
    Canonical vehicle v1.

    The fixed vehicle contract every intake channel is validated against:
    make and model are required, numeric fields are non-negative and image
    references must be well-formed URLs.
    """
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    make: str = Field(min_length=1, max_length=80)
    model: str = Field(min_length=1, max_length=120)
    year: int | None = Field(default=None, ge=1886, le=2100)
    price: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    mileage: int | None = Field(default=None, ge=0)

    condition: str | None = Field(default=None, max_length=40)
    fuel_type: str | None = Field(default=None, max_length=40)
    transmission: str | None = Field(default=None, max_length=40)
    body_type: str | None = Field(default=None, max_length=40)
    exterior_color: str | None = Field(default=None, max_length=40)
    interior_color: str | None = Field(default=None, max_length=40)
    engine: str | None = Field(default=None, max_length=80)
    vin: str | None = Field(default=None, max_length=32)

    description: str | None = Field(default=None, max_length=20_000)
    location_city: str | None = Field(default=None, max_length=120)
    location_country: str | None = Field(default=None, max_length=120)

    images: list[ImageUrl] = Field(default_factory=list)
    features: list[str] = Field(default_factory=list)

    @field_validator("images", "features", mode="before")
    @classmethod
    def none_as_empty(cls, v):
        # the automated channel sends explicit nulls for missing lists
        return [] if v is None else v

    @field_validator("vin")
    @classmethod
    def normalize_vin(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v2 = v.strip().upper()
        return v2 or None


class ListingSubmissionV1(VehicleV1):
    """Vehicle plus the visibility flags a dealer or partner may request."""

    is_special_offer: bool = False
    special_offer_label: str | None = Field(default=None, max_length=120)
    is_shared_with_network: bool = False
    is_public: bool = False
