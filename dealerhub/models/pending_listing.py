from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import DateTime

from dealerhub.core.ids import gen_id

from dealerhub.models.base import Base, AuditMixin, VehicleMixin

APPROVAL_STATUSES = ("pending", "approved", "rejected")


class PendingListing(VehicleMixin, AuditMixin, Base):
    __tablename__ = "pending_listings"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("pl"))

    # null = submitted by an independent partner
    dealership_id: Mapped[str | None] = mapped_column(String, ForeignKey("dealerships.id"), nullable=True, index=True)

    # "pending" | "approved" | "rejected"; only ever moves out of "pending"
    approval_status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)

    is_shared_with_network: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    decided_by: Mapped[str | None] = mapped_column(String, nullable=True)
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # set when approval promoted the listing into the marketplace
    car_listing_id: Mapped[str | None] = mapped_column(String, ForeignKey("car_listings.id"), nullable=True)
