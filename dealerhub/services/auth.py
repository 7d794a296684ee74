from dataclasses import dataclass
from fastapi import Depends, Security
from fastapi.security.api_key import APIKeyHeader
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dealerhub.core.db import get_db
from dealerhub.core.errors import ForbiddenError, UnauthorizedError
from dealerhub.core.security import hash_api_key
from dealerhub.models.api_key import ApiKey
from dealerhub.models.user import User

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


@dataclass(frozen=True)
class Actor:
    user_id: str
    role: str  # "buyer" | "dealer" | "tipper" | "admin"
    api_key_id: str | None


async def _actor_for_key(db: AsyncSession, api_key: str) -> Actor | None:
    hashed = hash_api_key(api_key)
    stmt = (
        select(ApiKey, User)
        .join(User, User.id == ApiKey.user_id)
        .where(ApiKey.key_hash == hashed, ApiKey.is_active.is_(True), User.is_active.is_(True))
    )
    row = (await db.execute(stmt)).first()
    if not row:
        return None
    key, user = row
    return Actor(user_id=user.id, role=user.role, api_key_id=key.id)


async def get_actor(
    api_key: str | None = Security(api_key_header),
    db: AsyncSession = Depends(get_db),
) -> Actor:
    if not api_key:
        raise UnauthorizedError("Missing X-API-Key")

    actor = await _actor_for_key(db, api_key)
    if actor is None:
        raise UnauthorizedError("Invalid API key")
    return actor


async def get_optional_actor(
    api_key: str | None = Security(api_key_header),
    db: AsyncSession = Depends(get_db),
) -> Actor | None:
    # Anonymous browsing is allowed on public surfaces, a bad key is not.
    if not api_key:
        return None
    actor = await _actor_for_key(db, api_key)
    if actor is None:
        raise UnauthorizedError("Invalid API key")
    return actor


def require_role(*roles: str):
    def _dep(actor: Actor = Depends(get_actor)) -> Actor:
        if actor.role not in roles:
            raise ForbiddenError(f"Role required: {', '.join(roles)}")
        return actor
    return _dep


require_admin = require_role("admin")
