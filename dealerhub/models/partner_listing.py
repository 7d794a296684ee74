from sqlalchemy import Boolean, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from dealerhub.core.ids import gen_id

from dealerhub.models.base import Base, AuditMixin, VehicleMixin


class PartnerListing(VehicleMixin, AuditMixin, Base):
    """Listing from the automated intake channel or a partner's own catalogue."""
    __tablename__ = "partner_listings"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("ptl"))
    partner_id: Mapped[str] = mapped_column(String, ForeignKey("partner_memberships.id"), nullable=False, index=True)

    # dealer-facing availability: "available" | "reserved" | "sold" | "rented"
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="available")

    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_shared_with_network: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # one-way flag: false -> true on admin promotion
    is_added_to_main_listings: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    car_listing_id: Mapped[str | None] = mapped_column(String, ForeignKey("car_listings.id"), nullable=True)

    # hash of the normalized vehicle payload (ops visibility; not used for dedup)
    content_hash: Mapped[str | None] = mapped_column(String(80), nullable=True, index=True)
