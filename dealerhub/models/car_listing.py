from sqlalchemy import Boolean, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from dealerhub.core.ids import gen_id

from dealerhub.models.base import Base, AuditMixin, VehicleMixin

LISTING_STATUSES = ("available", "reserved", "sold", "rented")


class CarListing(VehicleMixin, AuditMixin, Base):
    """Promoted marketplace listing."""
    __tablename__ = "car_listings"
    __table_args__ = (
        # a source record is promoted at most once
        UniqueConstraint("source_type", "source_id", name="uq_car_listing_source"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("car"))

    # null when promoted from an independent partner
    dealer_id: Mapped[str | None] = mapped_column(String, ForeignKey("dealerships.id"), nullable=True, index=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="available", index=True)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_shared_with_network: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # "pending_listing" | "partner_listing"
    source_type: Mapped[str] = mapped_column(String(30), nullable=False)
    source_id: Mapped[str] = mapped_column(String, nullable=False)
