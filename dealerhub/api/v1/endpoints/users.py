from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dealerhub.core.db import get_db
from dealerhub.schemas.user import UserBootstrapIn, UserBootstrapOut, UserRotateKeyOut
from dealerhub.services.internal_admin import require_internal_admin
from dealerhub.services.users import bootstrap_user, rotate_user_key

router = APIRouter()


@router.post(
    "/internal/users",
    response_model=UserBootstrapOut,
    dependencies=[Depends(require_internal_admin)],
    status_code=201,
)
async def create_user(payload: UserBootstrapIn, db: AsyncSession = Depends(get_db)) -> UserBootstrapOut:
    user, key = await bootstrap_user(db, email=payload.email, role=payload.role, display_name=payload.display_name)
    await db.commit()
    # Return plain key ONCE
    return UserBootstrapOut(user_id=user.id, role=user.role, api_key=key.plain)


@router.post(
    "/internal/users/{user_id}/rotate-key",
    response_model=UserRotateKeyOut,
    dependencies=[Depends(require_internal_admin)],
)
async def rotate_key(user_id: str, db: AsyncSession = Depends(get_db)) -> UserRotateKeyOut:
    key = await rotate_user_key(db, user_id=user_id)
    await db.commit()
    return UserRotateKeyOut(user_id=user_id, api_key=key.plain)
