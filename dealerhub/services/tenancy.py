"""
Identity & tenancy resolution.

Maps an authenticated actor to the dealership it owns and the partner
memberships it holds. Read-only: nothing here writes. The FastAPI dependency
`get_resolved_actor` caches the result for the lifetime of one request only
(FastAPI's per-request dependency cache), so approvals and revocations are
visible on the very next request.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dealerhub.core.db import get_db
from dealerhub.core.errors import ForbiddenError, NotFoundError
from dealerhub.models.dealership import Dealership
from dealerhub.models.partner_membership import PartnerMembership
from dealerhub.models.user import User
from dealerhub.services.auth import Actor, get_actor


@dataclass(frozen=True)
class DealershipRef:
    id: str
    name: str


@dataclass(frozen=True)
class MembershipRef:
    id: str
    dealership_id: str | None
    is_approved: bool
    commission_rate: Decimal


@dataclass(frozen=True)
class ResolvedActor:
    actor_id: str
    role: str
    dealership_owned: DealershipRef | None = None
    partner_memberships: tuple[MembershipRef, ...] = field(default_factory=tuple)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def owned_dealership_id(self) -> str | None:
        return self.dealership_owned.id if self.dealership_owned else None

    def approved_memberships(self) -> tuple[MembershipRef, ...]:
        return tuple(m for m in self.partner_memberships if m.is_approved)


async def resolve_actor(db: AsyncSession, actor_id: str) -> ResolvedActor:
    user = (await db.execute(select(User).where(User.id == actor_id))).scalar_one_or_none()
    if user is None:
        raise NotFoundError("Actor not found")

    dealership = (
        await db.execute(select(Dealership).where(Dealership.owner_user_id == actor_id))
    ).scalar_one_or_none()

    memberships = (
        await db.execute(
            select(PartnerMembership)
            .where(PartnerMembership.partner_user_id == actor_id)
            .order_by(PartnerMembership.created_at.asc())
            .execution_options(populate_existing=True)
        )
    ).scalars().all()

    return ResolvedActor(
        actor_id=user.id,
        role=user.role,
        dealership_owned=DealershipRef(id=dealership.id, name=dealership.name) if dealership else None,
        partner_memberships=tuple(
            MembershipRef(
                id=m.id,
                dealership_id=m.dealership_id,
                is_approved=m.is_approved,
                commission_rate=m.commission_rate,
            )
            for m in memberships
        ),
    )


async def get_resolved_actor(
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> ResolvedActor:
    return await resolve_actor(db, actor.user_id)


def require_admin(resolved: ResolvedActor) -> None:
    if not resolved.is_admin:
        raise ForbiddenError("Admin role required")
