from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from dealerhub.core.ids import gen_id

from dealerhub.models.base import Base, AuditMixin

ROLES = ("buyer", "dealer", "tipper", "admin")


class User(AuditMixin, Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("usr"))
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    display_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    # "buyer" | "dealer" | "tipper" | "admin" (role claim from the identity provider)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="buyer")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
