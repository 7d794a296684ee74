from fastapi import Header

from dealerhub.core.config import settings
from dealerhub.core.errors import ForbiddenError
from dealerhub.core.security import tokens_match


async def require_internal_admin(x_internal_admin_key: str | None = Header(default=None)) -> None:
    if not tokens_match(x_internal_admin_key, settings.internal_admin_key):
        raise ForbiddenError("Internal admin key required")
