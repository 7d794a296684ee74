from decimal import Decimal

from sqlalchemy import ForeignKey, Numeric, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from dealerhub.core.ids import gen_id

from dealerhub.models.base import Base, AuditMixin


class SearchIntent(AuditMixin, Base):
    __tablename__ = "search_intents"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("sin"))
    user_id: Mapped[str | None] = mapped_column(String, ForeignKey("users.id"), nullable=True)
    session_id: Mapped[str | None] = mapped_column(String(120), nullable=True)

    user_input: Mapped[str] = mapped_column(Text, nullable=False)

    # filled only from a successful upstream response
    parsed_filters: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    confidence: Mapped[Decimal | None] = mapped_column(Numeric(5, 4), nullable=True)

    # "received" | "parsed" | "accepted" | "failed"
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="received")
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
