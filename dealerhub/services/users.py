from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dealerhub.core.errors import ConflictError, NotFoundError
from dealerhub.core.security import ApiKeyParts, generate_api_key
from dealerhub.models.api_key import ApiKey
from dealerhub.models.base import utcnow
from dealerhub.models.user import User

INTERNAL_ACTOR = "internal"


async def bootstrap_user(
    db: AsyncSession,
    *,
    email: str,
    role: str,
    display_name: str | None = None,
) -> tuple[User, ApiKeyParts]:
    user = User(
        email=email.lower(),
        display_name=display_name,
        role=role,
        created_by=INTERNAL_ACTOR,
        updated_by=INTERNAL_ACTOR,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("User with this email already exists")

    key = generate_api_key()
    db.add(ApiKey(user_id=user.id, key_prefix=key.prefix, key_hash=key.hashed, is_active=True))
    await db.flush()
    return user, key


async def rotate_user_key(db: AsyncSession, *, user_id: str) -> ApiKeyParts:
    user = (await db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
    if user is None:
        raise NotFoundError("User not found")

    # Deactivate existing keys
    await db.execute(
        update(ApiKey)
        .where(ApiKey.user_id == user_id, ApiKey.is_active.is_(True))
        .values(is_active=False, rotated_at=utcnow())
        .execution_options(synchronize_session=False)
    )

    key = generate_api_key()
    db.add(ApiKey(user_id=user_id, key_prefix=key.prefix, key_hash=key.hashed, is_active=True))
    await db.flush()
    return key
