from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dealerhub.core.db import get_db
from dealerhub.core.errors import NotFoundError
from dealerhub.models.dealership import Dealership
from dealerhub.schemas.dealership import (
    DealershipCreate,
    DealershipOut,
    MembershipApply,
    MembershipApprovalIn,
    MembershipOut,
)
from dealerhub.services.memberships import (
    apply_for_membership,
    create_dealership,
    list_dealership_members,
    list_own_memberships,
    set_membership_approval,
)
from dealerhub.services.tenancy import ResolvedActor, get_resolved_actor

router = APIRouter()


def _dealership_out(d: Dealership) -> DealershipOut:
    return DealershipOut(
        id=d.id,
        owner_user_id=d.owner_user_id,
        name=d.name,
        city=d.city,
        country=d.country,
        website_url=d.website_url,
        logo_url=d.logo_url,
    )


@router.post("/dealerships", response_model=DealershipOut, status_code=201)
async def create(
    payload: DealershipCreate,
    actor: ResolvedActor = Depends(get_resolved_actor),
    db: AsyncSession = Depends(get_db),
) -> DealershipOut:
    row = await create_dealership(db, actor=actor, payload=payload)
    await db.commit()
    return _dealership_out(row)


@router.get("/dealerships/me", response_model=DealershipOut)
async def my_dealership(
    actor: ResolvedActor = Depends(get_resolved_actor),
    db: AsyncSession = Depends(get_db),
) -> DealershipOut:
    if actor.owned_dealership_id is None:
        raise NotFoundError("Actor does not own a dealership")
    row = await db.get(Dealership, actor.owned_dealership_id)
    return _dealership_out(row)


@router.get("/dealerships/me/partners", response_model=list[MembershipOut])
async def my_partners(
    actor: ResolvedActor = Depends(get_resolved_actor),
    db: AsyncSession = Depends(get_db),
) -> list[MembershipOut]:
    rows = await list_dealership_members(db, actor=actor)
    return [MembershipOut.model_validate(r) for r in rows]


@router.post("/memberships", response_model=MembershipOut, status_code=201)
async def apply(
    payload: MembershipApply,
    actor: ResolvedActor = Depends(get_resolved_actor),
    db: AsyncSession = Depends(get_db),
) -> MembershipOut:
    row = await apply_for_membership(db, actor=actor, payload=payload)
    await db.commit()
    return MembershipOut.model_validate(row)


@router.get("/memberships", response_model=list[MembershipOut])
async def my_memberships(
    actor: ResolvedActor = Depends(get_resolved_actor),
    db: AsyncSession = Depends(get_db),
) -> list[MembershipOut]:
    rows = await list_own_memberships(db, actor=actor)
    return [MembershipOut.model_validate(r) for r in rows]


@router.patch("/memberships/{membership_id}", response_model=MembershipOut)
async def set_approval(
    membership_id: str,
    payload: MembershipApprovalIn,
    actor: ResolvedActor = Depends(get_resolved_actor),
    db: AsyncSession = Depends(get_db),
) -> MembershipOut:
    row = await set_membership_approval(
        db,
        actor=actor,
        membership_id=membership_id,
        is_approved=payload.is_approved,
        commission_rate=payload.commission_rate,
    )
    await db.commit()
    return MembershipOut.model_validate(row)
