from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import and_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dealerhub.core.errors import ConflictError, ForbiddenError, NotFoundError
from dealerhub.models.dealership import Dealership
from dealerhub.models.partner_membership import PartnerMembership
from dealerhub.schemas.dealership import DealershipCreate, MembershipApply
from dealerhub.services.audit import audit
from dealerhub.services.outbox import emit_event
from dealerhub.services.tenancy import ResolvedActor

log = logging.getLogger(__name__)


async def create_dealership(db: AsyncSession, *, actor: ResolvedActor, payload: DealershipCreate) -> Dealership:
    if actor.role != "dealer":
        raise ForbiddenError("Dealer role required")
    if actor.dealership_owned is not None:
        raise ConflictError("Actor already owns a dealership")

    row = Dealership(
        owner_user_id=actor.actor_id,
        name=payload.name,
        city=payload.city,
        country=payload.country,
        website_url=payload.website_url,
        logo_url=payload.logo_url,
        created_by=actor.actor_id,
        updated_by=actor.actor_id,
    )
    db.add(row)
    try:
        await db.flush()
    except IntegrityError:
        # concurrent create by the same owner lost on the unique owner index
        await db.rollback()
        raise ConflictError("Actor already owns a dealership")
    return row


async def apply_for_membership(db: AsyncSession, *, actor: ResolvedActor, payload: MembershipApply) -> PartnerMembership:
    if payload.dealership_id is not None:
        exists = (
            await db.execute(select(Dealership.id).where(Dealership.id == payload.dealership_id))
        ).scalar_one_or_none()
        if exists is None:
            raise NotFoundError("Dealership not found")

    # the unique constraint does not cover NULL dealership ids
    dup = (
        await db.execute(
            select(PartnerMembership.id).where(
                PartnerMembership.partner_user_id == actor.actor_id,
                PartnerMembership.dealership_id.is_(None)
                if payload.dealership_id is None
                else PartnerMembership.dealership_id == payload.dealership_id,
            )
        )
    ).scalar_one_or_none()
    if dup is not None:
        raise ConflictError("Membership already exists for this dealership")

    row = PartnerMembership(
        dealership_id=payload.dealership_id,
        partner_user_id=actor.actor_id,
        is_approved=False,
        commission_rate=Decimal("0"),
        business_name=payload.business_name,
        contact_name=payload.contact_name,
        email=payload.email,
        phone=payload.phone,
        created_by=actor.actor_id,
        updated_by=actor.actor_id,
    )
    db.add(row)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Membership already exists for this dealership")

    emit_event(
        db,
        aggregate_type="partner_membership",
        aggregate_id=row.id,
        event_type="membership.applied",
        payload={"membership_id": row.id, "dealership_id": row.dealership_id},
    )
    return row


async def set_membership_approval(
    db: AsyncSession,
    *,
    actor: ResolvedActor,
    membership_id: str,
    is_approved: bool,
    commission_rate: Decimal | None = None,
) -> PartnerMembership:
    """
    Approve, revoke or re-rate a membership.

    The ownership predicate is part of the UPDATE itself: a dealership owner
    may only touch memberships of the dealership they own, and only admins
    may touch independent memberships.
    """
    owned = select(Dealership.id).where(Dealership.owner_user_id == actor.actor_id).scalar_subquery()
    scope = PartnerMembership.dealership_id == owned
    if actor.is_admin:
        scope = scope | PartnerMembership.dealership_id.is_(None)

    values: dict = {"is_approved": is_approved, "updated_by": actor.actor_id}
    if commission_rate is not None:
        values["commission_rate"] = commission_rate

    result = await db.execute(
        update(PartnerMembership)
        .where(and_(PartnerMembership.id == membership_id, scope))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        exists = (
            await db.execute(select(PartnerMembership.id).where(PartnerMembership.id == membership_id))
        ).scalar_one_or_none()
        if exists is None:
            raise NotFoundError("Membership not found")
        raise ForbiddenError("Only the dealership owner may change this membership")

    row = (
        await db.execute(
            select(PartnerMembership)
            .where(PartnerMembership.id == membership_id)
            .execution_options(populate_existing=True)
        )
    ).scalar_one()

    await audit(
        db,
        actor_id=actor.actor_id,
        dealership_id=row.dealership_id,
        action="membership.approved" if is_approved else "membership.revoked",
        target_type="partner_membership",
        target_id=row.id,
        detail={"commission_rate": str(row.commission_rate)},
    )
    emit_event(
        db,
        aggregate_type="partner_membership",
        aggregate_id=row.id,
        event_type="membership.approved" if is_approved else "membership.revoked",
        payload={"membership_id": row.id, "dealership_id": row.dealership_id},
    )
    log.info("membership %s approval=%s by %s", row.id, is_approved, actor.actor_id)
    return row


async def list_dealership_members(db: AsyncSession, *, actor: ResolvedActor) -> list[PartnerMembership]:
    if actor.owned_dealership_id is None:
        raise ForbiddenError("Actor does not own a dealership")
    stmt = (
        select(PartnerMembership)
        .where(PartnerMembership.dealership_id == actor.owned_dealership_id)
        .order_by(PartnerMembership.created_at.asc())
    )
    return list((await db.execute(stmt)).scalars().all())


async def list_own_memberships(db: AsyncSession, *, actor: ResolvedActor) -> list[PartnerMembership]:
    stmt = (
        select(PartnerMembership)
        .where(PartnerMembership.partner_user_id == actor.actor_id)
        .order_by(PartnerMembership.created_at.asc())
    )
    return list((await db.execute(stmt)).scalars().all())
