from datetime import datetime
from decimal import Decimal

from sqlalchemy import ForeignKey, Index, Numeric, String, text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import DateTime

from dealerhub.core.ids import gen_id

from dealerhub.models.base import Base, AuditMixin

TRANSACTION_STATUSES = ("pending", "confirmed", "completed", "cancelled")


class Transaction(AuditMixin, Base):
    __tablename__ = "transactions"
    __table_args__ = (
        # at most one non-cancelled transaction per listing (no double-selling)
        Index(
            "uq_transactions_listing_not_cancelled",
            "listing_id",
            unique=True,
            postgresql_where=text("status <> 'cancelled'"),
            sqlite_where=text("status <> 'cancelled'"),
        ),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("txn"))
    listing_id: Mapped[str] = mapped_column(String, ForeignKey("car_listings.id"), nullable=False)

    buyer_id: Mapped[str | None] = mapped_column(String, ForeignKey("users.id"), nullable=True)
    seller_id: Mapped[str | None] = mapped_column(String, ForeignKey("dealerships.id"), nullable=True)

    # explicit attribution; falls back to the listing's earliest tipper lead
    lead_id: Mapped[str | None] = mapped_column(String, ForeignKey("leads.id"), nullable=True)

    agreed_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    # "pending" | "confirmed" | "completed" | "cancelled"
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
