from fastapi import APIRouter, Depends

from dealerhub.schemas.me import MeMembershipOut, MeOut
from dealerhub.services.auth import Actor, get_actor
from dealerhub.services.tenancy import ResolvedActor, get_resolved_actor

router = APIRouter()

@router.get("/me", response_model=MeOut)
async def me(
    actor: Actor = Depends(get_actor),
    resolved: ResolvedActor = Depends(get_resolved_actor),
) -> MeOut:
    return MeOut(
        user_id=resolved.actor_id,
        role=resolved.role,
        api_key_id=actor.api_key_id,
        dealership_id=resolved.owned_dealership_id,
        dealership_name=resolved.dealership_owned.name if resolved.dealership_owned else None,
        partner_memberships=[
            MeMembershipOut(
                id=m.id,
                dealership_id=m.dealership_id,
                is_approved=m.is_approved,
                commission_rate=m.commission_rate,
            )
            for m in resolved.partner_memberships
        ],
    )
