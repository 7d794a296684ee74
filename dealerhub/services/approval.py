"""
Approval state machine for pending listings, plus admin promotion of
partner listings into the marketplace.

pending -> approved | rejected, exactly once. The terminal transition is a
compare-and-set on approval_status so two admins racing on the same listing
cannot both win. Decide and promote run as one unit: if promotion or the
promotion webhook fails, the session is rolled back and the listing is still
pending.
"""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from dealerhub.core.errors import InvalidStateError, NotFoundError, ConflictError, ValidationError
from dealerhub.models.base import VEHICLE_FIELDS, utcnow
from dealerhub.models.car_listing import CarListing
from dealerhub.models.partner_listing import PartnerListing
from dealerhub.models.partner_membership import PartnerMembership
from dealerhub.models.pending_listing import PendingListing
from dealerhub.services.audit import audit
from dealerhub.services.http_client import HubHttpClient
from dealerhub.services.outbox import emit_event
from dealerhub.services.tenancy import ResolvedActor, require_admin
from dealerhub.services.webhooks import notify_promotion

log = logging.getLogger(__name__)

DECISIONS = ("approved", "rejected")

# columns that may not be set to NULL through an override
_NOT_NULL = {"make", "model", "is_special_offer", "is_shared_with_network", "is_public", "status"}

# pending/partner listing fields mirrored onto the promoted car listing
_MIRRORED = set(VEHICLE_FIELDS) | {"is_special_offer", "special_offer_label", "is_shared_with_network", "is_public"}


def _clean(changes: dict[str, Any] | None) -> dict[str, Any]:
    return {k: v for k, v in (changes or {}).items() if not (v is None and k in _NOT_NULL)}


async def _load_pending_listing(db: AsyncSession, listing_id: str) -> PendingListing | None:
    stmt = (
        select(PendingListing)
        .where(PendingListing.id == listing_id)
        .execution_options(populate_existing=True)
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def _reload(db: AsyncSession, model, row_id: str):
    stmt = select(model).where(model.id == row_id).execution_options(populate_existing=True)
    return (await db.execute(stmt)).scalar_one()


async def _create_car_listing(
    db: AsyncSession,
    *,
    source_type: str,
    source,
    dealer_id: str | None,
    is_public: bool,
    actor_id: str,
) -> CarListing:
    car = CarListing(
        **{f: getattr(source, f) for f in VEHICLE_FIELDS},
        is_special_offer=source.is_special_offer,
        special_offer_label=source.special_offer_label,
        dealer_id=dealer_id,
        status="available",
        is_public=is_public,
        is_shared_with_network=source.is_shared_with_network,
        source_type=source_type,
        source_id=source.id,
        created_by=actor_id,
        updated_by=actor_id,
    )
    db.add(car)
    await db.flush()
    return car


async def _mirror_onto_car(db: AsyncSession, car_listing_id: str, changes: dict[str, Any], actor_id: str) -> None:
    mirrored = {k: v for k, v in changes.items() if k in _MIRRORED}
    if not mirrored:
        return
    await db.execute(
        update(CarListing)
        .where(CarListing.id == car_listing_id)
        .values(**mirrored, updated_by=actor_id)
        .execution_options(synchronize_session=False)
    )


async def decide(
    db: AsyncSession,
    *,
    admin: ResolvedActor,
    listing_id: str,
    decision: str,
    overrides: dict[str, Any] | None = None,
    http: HubHttpClient | None = None,
) -> PendingListing:
    require_admin(admin)
    if decision not in DECISIONS:
        raise ValidationError(f"decision must be one of {DECISIONS}")

    snapshot = await _load_pending_listing(db, listing_id)
    if snapshot is None:
        raise NotFoundError("Pending listing not found")
    if snapshot.approval_status != "pending":
        raise InvalidStateError(f"Listing already {snapshot.approval_status}")

    changes = _clean(overrides)
    notes = changes.pop("admin_notes", None)
    values: dict[str, Any] = {
        "approval_status": decision,
        "decided_by": admin.actor_id,
        "decided_at": utcnow(),
        "updated_by": admin.actor_id,
    }
    if decision == "approved":
        values.update(changes)
    if notes is not None:
        values["admin_notes"] = notes

    try:
        result = await db.execute(
            update(PendingListing)
            .where(PendingListing.id == listing_id, PendingListing.approval_status == "pending")
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError("Listing was decided concurrently; re-fetch and retry")

        listing = await _reload(db, PendingListing, listing_id)

        car = None
        if decision == "approved" and listing.is_public:
            car = await _create_car_listing(
                db,
                source_type="pending_listing",
                source=listing,
                dealer_id=listing.dealership_id,
                is_public=listing.is_public,
                actor_id=admin.actor_id,
            )
            listing.car_listing_id = car.id

        await audit(
            db,
            actor_id=admin.actor_id,
            dealership_id=listing.dealership_id,
            action=f"listing.{decision}",
            target_type="pending_listing",
            target_id=listing.id,
            detail={"overrides": sorted(changes) if decision == "approved" else [], "car_listing_id": listing.car_listing_id},
        )
        emit_event(
            db,
            aggregate_type="pending_listing",
            aggregate_id=listing.id,
            event_type=f"listing.{decision}",
            payload={"listing_id": listing.id, "dealership_id": listing.dealership_id, "car_listing_id": listing.car_listing_id},
        )
        await db.flush()

        if car is not None:
            await notify_promotion(http, car)
    except Exception:
        await db.rollback()
        raise

    log.info("listing %s %s by %s", listing_id, decision, admin.actor_id)
    return listing


async def admin_edit_listing(
    db: AsyncSession,
    *,
    admin: ResolvedActor,
    listing_id: str,
    changes: dict[str, Any],
    http: HubHttpClient | None = None,
) -> PendingListing:
    """Admin edit, allowed before or after the decision.

    Price and flag changes follow the listing onto its promoted car listing.
    Making an approved, unpromoted listing public promotes it.
    """
    require_admin(admin)
    changes = _clean(changes)

    listing = await _load_pending_listing(db, listing_id)
    if listing is None:
        raise NotFoundError("Pending listing not found")

    try:
        for k, v in changes.items():
            setattr(listing, k, v)
        listing.updated_by = admin.actor_id
        await db.flush()

        car = None
        if listing.car_listing_id:
            await _mirror_onto_car(db, listing.car_listing_id, changes, admin.actor_id)
        elif listing.approval_status == "approved" and listing.is_public:
            car = await _create_car_listing(
                db,
                source_type="pending_listing",
                source=listing,
                dealer_id=listing.dealership_id,
                is_public=listing.is_public,
                actor_id=admin.actor_id,
            )
            listing.car_listing_id = car.id
            emit_event(
                db,
                aggregate_type="pending_listing",
                aggregate_id=listing.id,
                event_type="listing.promoted",
                payload={"listing_id": listing.id, "car_listing_id": car.id},
            )

        await audit(
            db,
            actor_id=admin.actor_id,
            dealership_id=listing.dealership_id,
            action="listing.edited",
            target_type="pending_listing",
            target_id=listing.id,
            detail={"fields": sorted(changes)},
        )
        await db.flush()

        if car is not None:
            await notify_promotion(http, car)
    except Exception:
        await db.rollback()
        raise

    return listing


async def promote_partner_listing(
    db: AsyncSession,
    *,
    admin: ResolvedActor,
    listing_id: str,
    overrides: dict[str, Any] | None = None,
    http: HubHttpClient | None = None,
) -> CarListing:
    require_admin(admin)
    changes = {k: v for k, v in _clean(overrides).items() if k in _MIRRORED}
    # promotion publishes unless the admin says otherwise; source row and car agree
    changes.setdefault("is_public", True)

    try:
        # one-way flag; the CAS makes a second promotion a no-op
        result = await db.execute(
            update(PartnerListing)
            .where(PartnerListing.id == listing_id, PartnerListing.is_added_to_main_listings.is_(False))
            .values(is_added_to_main_listings=True, updated_by=admin.actor_id, **changes)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            exists = (
                await db.execute(select(PartnerListing.id).where(PartnerListing.id == listing_id))
            ).scalar_one_or_none()
            if exists is None:
                raise NotFoundError("Partner listing not found")
            raise InvalidStateError("Partner listing already added to main listings")

        listing = await _reload(db, PartnerListing, listing_id)
        membership = (
            await db.execute(select(PartnerMembership).where(PartnerMembership.id == listing.partner_id))
        ).scalar_one()

        car = await _create_car_listing(
            db,
            source_type="partner_listing",
            source=listing,
            dealer_id=membership.dealership_id,
            is_public=listing.is_public,
            actor_id=admin.actor_id,
        )
        listing.car_listing_id = car.id

        await audit(
            db,
            actor_id=admin.actor_id,
            dealership_id=membership.dealership_id,
            action="partner_listing.promoted",
            target_type="partner_listing",
            target_id=listing.id,
            detail={"car_listing_id": car.id},
        )
        emit_event(
            db,
            aggregate_type="partner_listing",
            aggregate_id=listing.id,
            event_type="listing.promoted",
            payload={"listing_id": listing.id, "car_listing_id": car.id, "partner_id": listing.partner_id},
        )
        await db.flush()

        await notify_promotion(http, car)
    except Exception:
        await db.rollback()
        raise

    log.info("partner listing %s promoted to %s", listing_id, car.id)
    return car


async def admin_update_partner_listing(
    db: AsyncSession,
    *,
    admin: ResolvedActor,
    listing_id: str,
    changes: dict[str, Any],
) -> PartnerListing:
    require_admin(admin)
    changes = _clean(changes)

    listing = (
        await db.execute(
            select(PartnerListing)
            .where(PartnerListing.id == listing_id)
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if listing is None:
        raise NotFoundError("Partner listing not found")

    for k, v in changes.items():
        setattr(listing, k, v)
    listing.updated_by = admin.actor_id
    await db.flush()

    if listing.car_listing_id:
        await _mirror_onto_car(db, listing.car_listing_id, changes, admin.actor_id)
        # availability follows the partner's stock
        if "status" in changes:
            await db.execute(
                update(CarListing)
                .where(CarListing.id == listing.car_listing_id)
                .values(status=changes["status"])
                .execution_options(synchronize_session=False)
            )

    await audit(
        db,
        actor_id=admin.actor_id,
        action="partner_listing.edited",
        target_type="partner_listing",
        target_id=listing.id,
        detail={"fields": sorted(changes)},
    )
    return listing


async def list_pending_queue(db: AsyncSession, *, admin: ResolvedActor, status: str | None = "pending") -> list[PendingListing]:
    require_admin(admin)
    stmt = select(PendingListing).order_by(PendingListing.created_at.asc())
    if status is not None:
        stmt = stmt.where(PendingListing.approval_status == status)
    return list((await db.execute(stmt)).scalars().all())


async def list_partner_listings(
    db: AsyncSession,
    *,
    admin: ResolvedActor,
    added: bool | None = None,
) -> list[PartnerListing]:
    require_admin(admin)
    stmt = select(PartnerListing).order_by(PartnerListing.created_at.desc())
    if added is not None:
        stmt = stmt.where(PartnerListing.is_added_to_main_listings.is_(added))
    return list((await db.execute(stmt)).scalars().all())
