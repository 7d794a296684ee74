from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dealerhub.core.db import get_db
from dealerhub.schemas.ledger import LeadCreate, LeadOut, LeadStatusIn
from dealerhub.services.attribution import list_leads, record_lead, update_lead_status
from dealerhub.services.tenancy import ResolvedActor, get_resolved_actor

router = APIRouter()


@router.post("/leads", response_model=LeadOut, status_code=201)
async def create_lead(
    payload: LeadCreate,
    actor: ResolvedActor = Depends(get_resolved_actor),
    db: AsyncSession = Depends(get_db),
) -> LeadOut:
    lead = await record_lead(db, payload=payload, from_user_id=actor.actor_id)
    resp = LeadOut.model_validate(lead)
    await db.commit()
    return resp


@router.get("/leads", response_model=list[LeadOut])
async def leads(
    actor: ResolvedActor = Depends(get_resolved_actor),
    db: AsyncSession = Depends(get_db),
) -> list[LeadOut]:
    rows = await list_leads(db, actor=actor)
    return [LeadOut.model_validate(r) for r in rows]


@router.patch("/leads/{lead_id}", response_model=LeadOut)
async def set_lead_status(
    lead_id: str,
    payload: LeadStatusIn,
    actor: ResolvedActor = Depends(get_resolved_actor),
    db: AsyncSession = Depends(get_db),
) -> LeadOut:
    lead = await update_lead_status(db, actor=actor, lead_id=lead_id, status=payload.status)
    resp = LeadOut.model_validate(lead)
    await db.commit()
    return resp
