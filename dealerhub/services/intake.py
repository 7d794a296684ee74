"""
Intake normalizer.

Three channels produce listings: a dealership owner, an approved partner and
the automated ingestion bot. Each is described by a source variant and mapped
by `normalize_submission` into the one canonical record shape the rest of the
system works with. Dealer and partner submissions land in `pending_listings`
and wait for an admin decision. Automated submissions land in
`partner_listings` as private, available stock of the bound partner.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Union

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from dealerhub.core.config import settings
from dealerhub.core.errors import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from dealerhub.core.security import tokens_match
from dealerhub.models.base import VEHICLE_FIELDS
from dealerhub.models.dealership import Dealership
from dealerhub.models.partner_listing import PartnerListing
from dealerhub.models.partner_membership import PartnerMembership
from dealerhub.models.pending_listing import PendingListing
from dealerhub.services.canonical_validate import validate_and_normalize_canonical
from dealerhub.services.outbox import emit_event
from dealerhub.services.tenancy import ResolvedActor

log = logging.getLogger(__name__)

SUBMISSION_SCHEMA = "canonical.listing_submission"
VEHICLE_SCHEMA = "canonical.vehicle"
SCHEMA_VERSION = "1.0"

SUBMISSION_FLAGS = ("is_special_offer", "special_offer_label", "is_shared_with_network", "is_public")

# actor recorded on rows written by the automated channel
INGEST_ACTOR = "ingest"


@dataclass(frozen=True)
class DealerSource:
    actor_id: str
    dealership_id: str


@dataclass(frozen=True)
class PartnerSource:
    actor_id: str
    membership_id: str
    dealership_id: str | None


@dataclass(frozen=True)
class AutomatedSource:
    membership_id: str


SubmissionSource = Union[DealerSource, PartnerSource, AutomatedSource]


@dataclass(frozen=True)
class NormalizedSubmission:
    target: str  # "pending_listing" | "partner_listing"
    values: dict[str, Any]
    content_hash: str


def _validated(schema: str, payload: dict[str, Any]):
    res = validate_and_normalize_canonical(schema=schema, schema_version=SCHEMA_VERSION, payload=payload)
    if not res.ok:
        raise ValidationError("Invalid listing payload", details=res.errors)
    return res


def _column_values(model, fields: tuple[str, ...]) -> dict[str, Any]:
    # full dump (not exclude_none) so cleared fields are written as NULL
    dumped = model.model_dump()
    return {f: dumped[f] for f in fields if f in dumped}


def normalize_submission(source: SubmissionSource, payload: dict[str, Any]) -> NormalizedSubmission:
    if isinstance(source, AutomatedSource):
        res = _validated(VEHICLE_SCHEMA, payload)
        values = _column_values(res.model, VEHICLE_FIELDS)
        values.update(
            partner_id=source.membership_id,
            status="available",
            is_public=False,
            is_shared_with_network=False,
            is_added_to_main_listings=False,
            content_hash=res.content_hash,
            created_by=INGEST_ACTOR,
            updated_by=INGEST_ACTOR,
        )
        return NormalizedSubmission(target="partner_listing", values=values, content_hash=res.content_hash)

    if isinstance(source, DealerSource):
        dealership_id, actor_id = source.dealership_id, source.actor_id
    elif isinstance(source, PartnerSource):
        dealership_id, actor_id = source.dealership_id, source.actor_id
    else:
        raise TypeError(f"Unknown submission source: {type(source).__name__}")

    res = _validated(SUBMISSION_SCHEMA, payload)
    values = _column_values(res.model, VEHICLE_FIELDS + SUBMISSION_FLAGS)
    values.update(
        dealership_id=dealership_id,
        approval_status="pending",
        created_by=actor_id,
        updated_by=actor_id,
    )
    return NormalizedSubmission(target="pending_listing", values=values, content_hash=res.content_hash)


def _submitted_event(db: AsyncSession, row: PendingListing, channel: str) -> None:
    emit_event(
        db,
        aggregate_type="pending_listing",
        aggregate_id=row.id,
        event_type="listing.submitted",
        payload={"listing_id": row.id, "dealership_id": row.dealership_id, "channel": channel},
    )


async def submit_dealer_listing(db: AsyncSession, *, actor: ResolvedActor, payload: dict[str, Any]) -> PendingListing:
    if actor.owned_dealership_id is None:
        raise ForbiddenError("Actor does not own a dealership")

    # re-check ownership inside the writing transaction
    dealership = (
        await db.execute(
            select(Dealership)
            .where(Dealership.id == actor.owned_dealership_id, Dealership.owner_user_id == actor.actor_id)
            .with_for_update()
        )
    ).scalar_one_or_none()
    if dealership is None:
        raise ForbiddenError("Actor does not own a dealership")

    normalized = normalize_submission(DealerSource(actor_id=actor.actor_id, dealership_id=dealership.id), payload)
    row = PendingListing(**normalized.values)
    db.add(row)
    await db.flush()
    _submitted_event(db, row, "dealer")
    return row


def _pick_membership(actor: ResolvedActor, membership_id: str | None):
    approved = actor.approved_memberships()
    if membership_id is not None:
        for m in approved:
            if m.id == membership_id:
                return m
        raise ForbiddenError("No approved membership with this id")
    if not approved:
        raise ForbiddenError("Approved partner membership required")
    if len(approved) > 1:
        raise ValidationError(
            "membership_id is required when holding several approved memberships",
            details=[{"loc": ["query", "membership_id"], "type": "missing", "msg": "Field required"}],
        )
    return approved[0]


async def submit_partner_listing(
    db: AsyncSession,
    *,
    actor: ResolvedActor,
    payload: dict[str, Any],
    membership_id: str | None = None,
) -> PendingListing:
    chosen = _pick_membership(actor, membership_id)

    # the membership may have been revoked since resolution; lock it for the insert
    membership = (
        await db.execute(
            select(PartnerMembership)
            .where(
                PartnerMembership.id == chosen.id,
                PartnerMembership.partner_user_id == actor.actor_id,
                PartnerMembership.is_approved.is_(True),
            )
            .with_for_update()
        )
    ).scalar_one_or_none()
    if membership is None:
        raise ForbiddenError("Approved partner membership required")

    source = PartnerSource(actor_id=actor.actor_id, membership_id=membership.id, dealership_id=membership.dealership_id)
    normalized = normalize_submission(source, payload)
    row = PendingListing(**normalized.values)
    db.add(row)
    await db.flush()
    _submitted_event(db, row, "partner")
    return row


async def ingest_automated(db: AsyncSession, *, token: str | None, payload: dict[str, Any]) -> PartnerListing:
    expected = settings.ingest_api_key.get_secret_value()
    if not tokens_match(token, expected):
        raise UnauthorizedError("Invalid ingestion token")

    membership = (
        await db.execute(
            select(PartnerMembership)
            .where(PartnerMembership.id == settings.ingest_partner_id)
            .with_for_update()
        )
    ).scalar_one_or_none()
    if membership is None or not membership.is_approved:
        log.warning("ingest rejected: bound partner %r missing or not approved", settings.ingest_partner_id)
        raise ForbiddenError("Ingestion partner is not an approved membership")

    normalized = normalize_submission(AutomatedSource(membership_id=membership.id), payload)
    row = PartnerListing(**normalized.values)
    db.add(row)
    await db.flush()

    emit_event(
        db,
        aggregate_type="partner_listing",
        aggregate_id=row.id,
        event_type="partner_listing.ingested",
        payload={"listing_id": row.id, "partner_id": row.partner_id, "content_hash": row.content_hash},
    )
    return row


def _editable_by(actor_id: str):
    """WHERE fragment: listing is in the actor's owned dealership, or the actor
    created it and still holds an approved membership for its scope."""
    owner_scope = PendingListing.dealership_id.in_(
        select(Dealership.id).where(Dealership.owner_user_id == actor_id)
    )
    member_scope = (
        select(PartnerMembership.id)
        .where(
            PartnerMembership.partner_user_id == actor_id,
            PartnerMembership.is_approved.is_(True),
            or_(
                PartnerMembership.dealership_id == PendingListing.dealership_id,
                and_(PartnerMembership.dealership_id.is_(None), PendingListing.dealership_id.is_(None)),
            ),
        )
        .correlate(PendingListing)
        .exists()
    )
    return or_(owner_scope, and_(PendingListing.created_by == actor_id, member_scope))


async def _load_fresh(db: AsyncSession, listing_id: str) -> PendingListing | None:
    stmt = (
        select(PendingListing)
        .where(PendingListing.id == listing_id)
        .execution_options(populate_existing=True)
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def _diagnose(db: AsyncSession, listing_id: str) -> None:
    row = await _load_fresh(db, listing_id)
    if row is None:
        raise NotFoundError("Pending listing not found")
    if row.approval_status != "pending":
        raise InvalidStateError(f"Listing already {row.approval_status}")
    raise ForbiddenError("Not allowed to modify this listing")


def _may_edit(row: PendingListing, actor: ResolvedActor) -> bool:
    if row.dealership_id is not None and row.dealership_id == actor.owned_dealership_id:
        return True
    if row.created_by != actor.actor_id:
        return False
    return any(m.dealership_id == row.dealership_id for m in actor.approved_memberships())


async def update_pending_listing(
    db: AsyncSession,
    *,
    actor: ResolvedActor,
    listing_id: str,
    changes: dict[str, Any],
) -> PendingListing:
    current = await _load_fresh(db, listing_id)
    if current is None:
        raise NotFoundError("Pending listing not found")
    if current.approval_status != "pending":
        raise InvalidStateError(f"Listing already {current.approval_status}")
    if not _may_edit(current, actor):
        raise ForbiddenError("Not allowed to modify this listing")

    merged = {f: getattr(current, f) for f in VEHICLE_FIELDS + SUBMISSION_FLAGS}
    merged.update(changes)
    res = _validated(SUBMISSION_SCHEMA, merged)
    values = _column_values(res.model, VEHICLE_FIELDS + SUBMISSION_FLAGS)
    values["updated_by"] = actor.actor_id

    # authoritative check: pending + authorized, evaluated by the write itself
    result = await db.execute(
        update(PendingListing)
        .where(
            PendingListing.id == listing_id,
            PendingListing.approval_status == "pending",
            _editable_by(actor.actor_id),
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await _diagnose(db, listing_id)

    return await _load_fresh(db, listing_id)


async def withdraw_pending_listing(db: AsyncSession, *, actor: ResolvedActor, listing_id: str) -> None:
    result = await db.execute(
        delete(PendingListing)
        .where(
            PendingListing.id == listing_id,
            PendingListing.approval_status == "pending",
            _editable_by(actor.actor_id),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await _diagnose(db, listing_id)

    emit_event(
        db,
        aggregate_type="pending_listing",
        aggregate_id=listing_id,
        event_type="listing.withdrawn",
        payload={"listing_id": listing_id, "actor_id": actor.actor_id},
    )


async def list_own_pending_listings(db: AsyncSession, *, actor: ResolvedActor) -> list[PendingListing]:
    cond = PendingListing.created_by == actor.actor_id
    if actor.owned_dealership_id is not None:
        cond = or_(cond, PendingListing.dealership_id == actor.owned_dealership_id)
    stmt = select(PendingListing).where(cond).order_by(PendingListing.created_at.desc())
    return list((await db.execute(stmt)).scalars().all())
