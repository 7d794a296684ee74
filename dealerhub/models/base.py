from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Boolean, Integer, Numeric, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func
from sqlalchemy.types import DateTime


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass

class AuditMixin:
    # python-side defaults keep the values loaded after flush (no lazy load under asyncio)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False
    )

    # User id that created/updated the record (or "internal" / "ingest")
    created_by: Mapped[str | None] = mapped_column(nullable=True)
    updated_by: Mapped[str | None] = mapped_column(nullable=True)


class VehicleMixin:
    """Vehicle attributes shared by pending, partner and marketplace listings."""

    make: Mapped[str] = mapped_column(String(80), nullable=False)
    model: Mapped[str] = mapped_column(String(120), nullable=False)
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    mileage: Mapped[int | None] = mapped_column(Integer, nullable=True)

    condition: Mapped[str | None] = mapped_column(String(40), nullable=True)
    fuel_type: Mapped[str | None] = mapped_column(String(40), nullable=True)
    transmission: Mapped[str | None] = mapped_column(String(40), nullable=True)
    body_type: Mapped[str | None] = mapped_column(String(40), nullable=True)
    exterior_color: Mapped[str | None] = mapped_column(String(40), nullable=True)
    interior_color: Mapped[str | None] = mapped_column(String(40), nullable=True)
    engine: Mapped[str | None] = mapped_column(String(80), nullable=True)
    vin: Mapped[str | None] = mapped_column(String(32), nullable=True, index=True)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    location_city: Mapped[str | None] = mapped_column(String(120), nullable=True)
    location_country: Mapped[str | None] = mapped_column(String(120), nullable=True)

    images: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    features: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)

    is_special_offer: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    special_offer_label: Mapped[str | None] = mapped_column(String(120), nullable=True)


VEHICLE_FIELDS: tuple[str, ...] = (
    "make", "model", "year", "price", "mileage",
    "condition", "fuel_type", "transmission", "body_type",
    "exterior_color", "interior_color", "engine", "vin",
    "description", "location_city", "location_country",
    "images", "features",
)
