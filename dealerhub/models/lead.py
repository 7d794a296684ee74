from sqlalchemy import CheckConstraint, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from dealerhub.core.ids import gen_id

from dealerhub.models.base import Base, AuditMixin

LEAD_SOURCE_TYPES = ("organic", "tipper")
LEAD_STATUSES = ("new", "contacted", "closed")


class Lead(AuditMixin, Base):
    __tablename__ = "leads"
    __table_args__ = (
        CheckConstraint(
            "(source_type = 'tipper' AND source_id IS NOT NULL) OR (source_type = 'organic' AND source_id IS NULL)",
            name="ck_leads_source",
        ),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("led"))
    listing_id: Mapped[str] = mapped_column(String, ForeignKey("car_listings.id"), nullable=False, index=True)
    from_user_id: Mapped[str | None] = mapped_column(String, ForeignKey("users.id"), nullable=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(40), nullable=True)
    city: Mapped[str | None] = mapped_column(String(120), nullable=True)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # "organic" | "tipper"; source_id -> partner_memberships.id when tipper
    source_type: Mapped[str] = mapped_column(String(20), nullable=False, default="organic")
    source_id: Mapped[str | None] = mapped_column(String, ForeignKey("partner_memberships.id"), nullable=True, index=True)

    # "new" | "contacted" | "closed"
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="new")
