from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, Numeric, String, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from dealerhub.core.ids import gen_id

from dealerhub.models.base import Base, AuditMixin


class PartnerMembership(AuditMixin, Base):
    """
    Links a partner (sub-dealer / tipper) user to a dealership, or to no
    dealership at all for independent partners.

    Created pending by the partner; approval is toggled by the dealership
    owner (admin for independent memberships). Never hard-deleted: revoking
    sets is_approved back to False.
    """
    __tablename__ = "partner_memberships"
    __table_args__ = (
        UniqueConstraint("partner_user_id", "dealership_id", name="uq_membership_partner_dealership"),
        # NULL dealership ids escape the unique constraint above
        Index(
            "uq_membership_independent_partner",
            "partner_user_id",
            unique=True,
            postgresql_where=text("dealership_id IS NULL"),
            sqlite_where=text("dealership_id IS NULL"),
        ),
        CheckConstraint("commission_rate >= 0 AND commission_rate <= 1", name="ck_membership_rate_range"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("pm"))

    dealership_id: Mapped[str | None] = mapped_column(String, ForeignKey("dealerships.id"), nullable=True, index=True)
    partner_user_id: Mapped[str] = mapped_column(String, ForeignKey("users.id"), nullable=False, index=True)

    is_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Read at transaction completion and frozen into the commission row.
    commission_rate: Mapped[Decimal] = mapped_column(Numeric(5, 4), nullable=False, default=Decimal("0"))

    business_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    contact_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(40), nullable=True)
