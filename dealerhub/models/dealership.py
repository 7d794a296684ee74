from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from dealerhub.core.ids import gen_id

from dealerhub.models.base import Base, AuditMixin


class Dealership(AuditMixin, Base):
    __tablename__ = "dealerships"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("dlr"))

    # exactly one owning user; the owner has full write authority within this tenant
    owner_user_id: Mapped[str] = mapped_column(String, ForeignKey("users.id"), nullable=False, unique=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    city: Mapped[str | None] = mapped_column(String(120), nullable=True)
    country: Mapped[str | None] = mapped_column(String(120), nullable=True)
    website_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    logo_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
