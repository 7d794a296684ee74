from datetime import datetime
from decimal import Decimal

from sqlalchemy import ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import DateTime

from dealerhub.core.ids import gen_id

from dealerhub.models.base import Base, AuditMixin


class Commission(AuditMixin, Base):
    """
    Immutable attribution record. rate and amount are computed once at
    transaction completion; later rate changes on the membership do not touch it.
    """
    __tablename__ = "commissions"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("com"))

    # unique: one commission per completed transaction
    transaction_id: Mapped[str] = mapped_column(String, ForeignKey("transactions.id"), nullable=False, unique=True)
    partner_id: Mapped[str] = mapped_column(String, ForeignKey("partner_memberships.id"), nullable=False, index=True)
    lead_id: Mapped[str | None] = mapped_column(String, ForeignKey("leads.id"), nullable=True)

    rate: Mapped[Decimal] = mapped_column(Numeric(5, 4), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    # "pending" | "paid"
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
