from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dealerhub.core.db import get_db
from dealerhub.schemas.ledger import CommissionOut
from dealerhub.services.attribution import list_commissions, mark_commission_paid
from dealerhub.services.tenancy import ResolvedActor, get_resolved_actor

router = APIRouter()


@router.get("/commissions", response_model=list[CommissionOut])
async def commissions(
    actor: ResolvedActor = Depends(get_resolved_actor),
    db: AsyncSession = Depends(get_db),
) -> list[CommissionOut]:
    rows = await list_commissions(db, actor=actor)
    return [CommissionOut.model_validate(r) for r in rows]


@router.post("/commissions/{commission_id}/pay", response_model=CommissionOut)
async def pay(
    commission_id: str,
    admin: ResolvedActor = Depends(get_resolved_actor),
    db: AsyncSession = Depends(get_db),
) -> CommissionOut:
    row = await mark_commission_paid(db, admin=admin, commission_id=commission_id)
    resp = CommissionOut.model_validate(row)
    await db.commit()
    return resp
