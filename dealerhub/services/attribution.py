"""
Attribution ledger: leads, transactions and commissions.

Leads are append-only; only their follow-up status moves forward. A listing
can carry at most one non-cancelled transaction (partial unique index).
Completing a transaction freezes the attributed partner's commission rate
into a commission row, one per transaction; later rate changes on the
membership never touch it.
"""
from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dealerhub.core.errors import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from dealerhub.models.base import utcnow
from dealerhub.models.car_listing import CarListing
from dealerhub.models.commission import Commission
from dealerhub.models.dealership import Dealership
from dealerhub.models.lead import LEAD_STATUSES, Lead
from dealerhub.models.partner_membership import PartnerMembership
from dealerhub.models.transaction import Transaction
from dealerhub.schemas.ledger import LeadCreate
from dealerhub.services.audit import audit
from dealerhub.services.outbox import emit_event
from dealerhub.services.tenancy import ResolvedActor, require_admin

log = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def commission_amount(agreed_price: Decimal, rate: Decimal) -> Decimal:
    return (Decimal(agreed_price) * Decimal(rate)).quantize(CENTS, rounding=ROUND_HALF_UP)


async def _get_car_listing(db: AsyncSession, listing_id: str) -> CarListing:
    stmt = select(CarListing).where(CarListing.id == listing_id).execution_options(populate_existing=True)
    row = (await db.execute(stmt)).scalar_one_or_none()
    if row is None:
        raise NotFoundError("Listing not found")
    return row


def _owned_listing_ids(actor_id: str):
    owned = select(Dealership.id).where(Dealership.owner_user_id == actor_id)
    return select(CarListing.id).where(CarListing.dealer_id.in_(owned))


def _is_listing_owner(actor: ResolvedActor, listing: CarListing) -> bool:
    return listing.dealer_id is not None and listing.dealer_id == actor.owned_dealership_id


# ---- leads -------------------------------------------------------------------

async def record_lead(db: AsyncSession, *, payload: LeadCreate, from_user_id: str) -> Lead:
    if payload.source_type == "organic" and payload.source_id is not None:
        raise ValidationError(
            "organic leads must not carry a source_id",
            details=[{"loc": ["body", "source_id"], "type": "value_error", "msg": "must be empty for organic leads"}],
        )
    if payload.source_type == "tipper" and not payload.source_id:
        raise ValidationError(
            "tipper leads require a source_id",
            details=[{"loc": ["body", "source_id"], "type": "missing", "msg": "Field required"}],
        )

    await _get_car_listing(db, payload.listing_id)

    if payload.source_type == "tipper":
        # locked so a concurrent revoke cannot slip between check and insert
        membership = (
            await db.execute(
                select(PartnerMembership)
                .where(PartnerMembership.id == payload.source_id, PartnerMembership.is_approved.is_(True))
                .with_for_update()
            )
        ).scalar_one_or_none()
        if membership is None:
            raise ValidationError(
                "source_id is not an approved partner membership",
                details=[{"loc": ["body", "source_id"], "type": "value_error", "msg": "unknown or unapproved partner"}],
            )

    lead = Lead(
        listing_id=payload.listing_id,
        from_user_id=from_user_id,
        name=payload.name,
        email=payload.email,
        phone=payload.phone,
        city=payload.city,
        message=payload.message,
        source_type=payload.source_type,
        source_id=payload.source_id,
        status="new",
        created_by=from_user_id,
        updated_by=from_user_id,
    )
    db.add(lead)
    await db.flush()

    emit_event(
        db,
        aggregate_type="lead",
        aggregate_id=lead.id,
        event_type="lead.created",
        payload={"lead_id": lead.id, "listing_id": lead.listing_id, "source_type": lead.source_type},
    )
    return lead


async def update_lead_status(db: AsyncSession, *, actor: ResolvedActor, lead_id: str, status: str) -> Lead:
    if status not in LEAD_STATUSES:
        raise ValidationError(f"status must be one of {LEAD_STATUSES}")
    # forward only: new -> contacted -> closed
    earlier = LEAD_STATUSES[: LEAD_STATUSES.index(status)]

    stmt = update(Lead).where(Lead.id == lead_id, Lead.status.in_(earlier))
    if not actor.is_admin:
        stmt = stmt.where(Lead.listing_id.in_(_owned_listing_ids(actor.actor_id)))
    result = await db.execute(
        stmt.values(status=status, updated_by=actor.actor_id).execution_options(synchronize_session=False)
    )

    lead = (
        await db.execute(select(Lead).where(Lead.id == lead_id).execution_options(populate_existing=True))
    ).scalar_one_or_none()
    if lead is None:
        raise NotFoundError("Lead not found")
    if result.rowcount != 1:
        if lead.status not in earlier:
            raise InvalidStateError(f"Lead is already {lead.status}")
        raise ForbiddenError("Only the listing's dealership may update this lead")
    return lead


async def list_leads(db: AsyncSession, *, actor: ResolvedActor) -> list[Lead]:
    stmt = select(Lead).order_by(Lead.created_at.desc())
    if actor.owned_dealership_id is not None and not actor.is_admin:
        stmt = stmt.where(Lead.listing_id.in_(_owned_listing_ids(actor.actor_id)))
    elif not actor.is_admin:
        member_ids = [m.id for m in actor.partner_memberships]
        stmt = stmt.where((Lead.from_user_id == actor.actor_id) | Lead.source_id.in_(member_ids))
    return list((await db.execute(stmt)).scalars().all())


# ---- transactions --------------------------------------------------------------

async def get_transaction(db: AsyncSession, transaction_id: str) -> Transaction:
    row = (
        await db.execute(
            select(Transaction)
            .where(Transaction.id == transaction_id)
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if row is None:
        raise NotFoundError("Transaction not found")
    return row


async def open_transaction(
    db: AsyncSession,
    *,
    actor: ResolvedActor,
    listing_id: str,
    agreed_price: Decimal,
    lead_id: str | None = None,
) -> Transaction:
    listing = await _get_car_listing(db, listing_id)
    if listing.status != "available":
        raise InvalidStateError(f"Listing is {listing.status}")

    if lead_id is not None:
        lead = (await db.execute(select(Lead).where(Lead.id == lead_id))).scalar_one_or_none()
        if lead is None or lead.listing_id != listing_id:
            raise ValidationError(
                "lead_id does not belong to this listing",
                details=[{"loc": ["body", "lead_id"], "type": "value_error", "msg": "lead not on listing"}],
            )

    txn = Transaction(
        listing_id=listing_id,
        buyer_id=actor.actor_id,
        seller_id=listing.dealer_id,
        lead_id=lead_id,
        agreed_price=agreed_price,
        status="pending",
        created_by=actor.actor_id,
        updated_by=actor.actor_id,
    )
    db.add(txn)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Listing already has an open transaction")

    emit_event(
        db,
        aggregate_type="transaction",
        aggregate_id=txn.id,
        event_type="transaction.opened",
        payload={"transaction_id": txn.id, "listing_id": listing_id},
    )
    return txn


def _seller_scope(actor: ResolvedActor):
    if actor.is_admin:
        return None
    return Transaction.listing_id.in_(_owned_listing_ids(actor.actor_id))


async def _transition(
    db: AsyncSession,
    *,
    actor: ResolvedActor,
    transaction_id: str,
    from_states: tuple[str, ...],
    to_state: str,
    scope=None,
    extra: dict | None = None,
) -> int:
    stmt = update(Transaction).where(Transaction.id == transaction_id, Transaction.status.in_(from_states))
    if scope is not None:
        stmt = stmt.where(scope)
    result = await db.execute(
        stmt.values(status=to_state, updated_by=actor.actor_id, **(extra or {}))
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def confirm_transaction(db: AsyncSession, *, actor: ResolvedActor, transaction_id: str) -> Transaction:
    rows = await _transition(
        db, actor=actor, transaction_id=transaction_id,
        from_states=("pending",), to_state="confirmed", scope=_seller_scope(actor),
    )
    txn = await get_transaction(db, transaction_id)
    if rows != 1:
        if txn.status != "pending":
            raise InvalidStateError(f"Transaction is {txn.status}")
        raise ForbiddenError("Only the selling dealership may confirm")
    emit_event(db, aggregate_type="transaction", aggregate_id=txn.id, event_type="transaction.confirmed",
               payload={"transaction_id": txn.id})
    return txn


async def cancel_transaction(db: AsyncSession, *, actor: ResolvedActor, transaction_id: str) -> Transaction:
    scope = _seller_scope(actor)
    if scope is not None:
        scope = scope | (Transaction.buyer_id == actor.actor_id)
    rows = await _transition(
        db, actor=actor, transaction_id=transaction_id,
        from_states=("pending", "confirmed"), to_state="cancelled", scope=scope,
    )
    txn = await get_transaction(db, transaction_id)
    if rows != 1:
        if txn.status not in ("pending", "confirmed"):
            raise InvalidStateError(f"Transaction is {txn.status}")
        raise ForbiddenError("Only the buyer or selling dealership may cancel")
    emit_event(db, aggregate_type="transaction", aggregate_id=txn.id, event_type="transaction.cancelled",
               payload={"transaction_id": txn.id})
    return txn


async def _attributed_lead(db: AsyncSession, txn: Transaction) -> Lead | None:
    if txn.lead_id is not None:
        lead = (await db.execute(select(Lead).where(Lead.id == txn.lead_id))).scalar_one_or_none()
        return lead if lead is not None and lead.source_type == "tipper" else None
    stmt = (
        select(Lead)
        .where(Lead.listing_id == txn.listing_id, Lead.source_type == "tipper")
        .order_by(Lead.created_at.asc(), Lead.id.asc())
        .limit(1)
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def complete_transaction(
    db: AsyncSession,
    *,
    actor: ResolvedActor,
    transaction_id: str,
) -> tuple[Transaction, Commission | None]:
    """
    {pending, confirmed} -> completed, once.

    Marks the listing sold and, when a tipper lead is attributed, writes the
    commission with the membership's current rate. Everything commits or
    rolls back together.
    """
    await get_transaction(db, transaction_id)

    try:
        rows = await _transition(
            db, actor=actor, transaction_id=transaction_id,
            from_states=("pending", "confirmed"), to_state="completed",
            scope=_seller_scope(actor), extra={"completed_at": utcnow()},
        )
        txn = await get_transaction(db, transaction_id)
        if rows != 1:
            if txn.status == "completed":
                raise ConflictError("Transaction already completed")
            if txn.status == "cancelled":
                raise InvalidStateError("Transaction is cancelled")
            raise ForbiddenError("Only the selling dealership may complete")

        await db.execute(
            update(CarListing)
            .where(CarListing.id == txn.listing_id)
            .values(status="sold", updated_by=actor.actor_id)
            .execution_options(synchronize_session=False)
        )

        commission = None
        lead = await _attributed_lead(db, txn)
        if lead is not None and lead.source_id is not None:
            membership = (
                await db.execute(
                    select(PartnerMembership)
                    .where(PartnerMembership.id == lead.source_id)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                )
            ).scalar_one()
            rate = Decimal(membership.commission_rate)
            commission = Commission(
                transaction_id=txn.id,
                partner_id=membership.id,
                lead_id=lead.id,
                rate=rate,
                amount=commission_amount(txn.agreed_price, rate),
                status="pending",
                created_by=actor.actor_id,
                updated_by=actor.actor_id,
            )
            db.add(commission)
            await db.flush()
            emit_event(
                db,
                aggregate_type="commission",
                aggregate_id=commission.id,
                event_type="commission.created",
                payload={"commission_id": commission.id, "partner_id": membership.id, "amount": str(commission.amount)},
            )

        emit_event(
            db,
            aggregate_type="transaction",
            aggregate_id=txn.id,
            event_type="transaction.completed",
            payload={"transaction_id": txn.id, "listing_id": txn.listing_id},
        )
        await db.flush()
    except IntegrityError:
        # a commission already exists for this transaction
        await db.rollback()
        raise ConflictError("Transaction already completed")
    except Exception:
        await db.rollback()
        raise

    log.info("transaction %s completed (commission=%s)", transaction_id, commission.id if commission else None)
    return txn, commission


# ---- commissions ---------------------------------------------------------------

async def mark_commission_paid(db: AsyncSession, *, admin: ResolvedActor, commission_id: str) -> Commission:
    require_admin(admin)
    result = await db.execute(
        update(Commission)
        .where(Commission.id == commission_id, Commission.status == "pending")
        .values(status="paid", paid_at=utcnow(), updated_by=admin.actor_id)
        .execution_options(synchronize_session=False)
    )
    row = (
        await db.execute(
            select(Commission).where(Commission.id == commission_id).execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if row is None:
        raise NotFoundError("Commission not found")
    if result.rowcount != 1:
        raise InvalidStateError(f"Commission is already {row.status}")

    await audit(
        db,
        actor_id=admin.actor_id,
        action="commission.paid",
        target_type="commission",
        target_id=row.id,
        detail={"amount": str(row.amount), "partner_id": row.partner_id},
    )
    emit_event(
        db,
        aggregate_type="commission",
        aggregate_id=row.id,
        event_type="commission.paid",
        payload={"commission_id": row.id, "partner_id": row.partner_id},
    )
    return row


async def list_commissions(db: AsyncSession, *, actor: ResolvedActor) -> list[Commission]:
    stmt = select(Commission).order_by(Commission.created_at.desc())
    if actor.is_admin:
        return list((await db.execute(stmt)).scalars().all())
    # any role earns through held memberships, sub-dealers included
    member_ids = [m.id for m in actor.partner_memberships]
    if not member_ids:
        return []
    stmt = stmt.where(Commission.partner_id.in_(member_ids))
    return list((await db.execute(stmt)).scalars().all())
