from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dealerhub.core.db import get_db
from dealerhub.schemas.listing import (
    CarListingOut,
    DecisionIn,
    ListingOverrides,
    PartnerListingAdminUpdate,
    PartnerListingOut,
    PendingListingOut,
)
from dealerhub.services.approval import (
    admin_edit_listing,
    admin_update_partner_listing,
    decide,
    list_partner_listings,
    list_pending_queue,
    promote_partner_listing,
)
from dealerhub.services.http_client import HubHttpClient, get_http_client
from dealerhub.services.tenancy import ResolvedActor, get_resolved_actor

router = APIRouter(prefix="/admin")


@router.get("/pending-listings", response_model=list[PendingListingOut])
async def pending_queue(
    status: str | None = "pending",
    admin: ResolvedActor = Depends(get_resolved_actor),
    db: AsyncSession = Depends(get_db),
) -> list[PendingListingOut]:
    rows = await list_pending_queue(db, admin=admin, status=status)
    return [PendingListingOut.model_validate(r) for r in rows]


@router.post("/pending-listings/{listing_id}/decision", response_model=PendingListingOut)
async def decide_listing(
    listing_id: str,
    payload: DecisionIn,
    admin: ResolvedActor = Depends(get_resolved_actor),
    http: HubHttpClient = Depends(get_http_client),
    db: AsyncSession = Depends(get_db),
) -> PendingListingOut:
    row = await decide(
        db,
        admin=admin,
        listing_id=listing_id,
        decision=payload.decision,
        overrides=payload.overrides.model_dump(exclude_unset=True) if payload.overrides else None,
        http=http,
    )
    resp = PendingListingOut.model_validate(row)
    await db.commit()
    return resp


@router.patch("/pending-listings/{listing_id}", response_model=PendingListingOut)
async def edit_listing(
    listing_id: str,
    payload: ListingOverrides,
    admin: ResolvedActor = Depends(get_resolved_actor),
    http: HubHttpClient = Depends(get_http_client),
    db: AsyncSession = Depends(get_db),
) -> PendingListingOut:
    row = await admin_edit_listing(
        db, admin=admin, listing_id=listing_id, changes=payload.model_dump(exclude_unset=True), http=http,
    )
    resp = PendingListingOut.model_validate(row)
    await db.commit()
    return resp


@router.get("/partner-listings", response_model=list[PartnerListingOut])
async def partner_listings(
    added: bool | None = None,
    admin: ResolvedActor = Depends(get_resolved_actor),
    db: AsyncSession = Depends(get_db),
) -> list[PartnerListingOut]:
    rows = await list_partner_listings(db, admin=admin, added=added)
    return [PartnerListingOut.model_validate(r) for r in rows]


@router.patch("/partner-listings/{listing_id}", response_model=PartnerListingOut)
async def update_partner_listing(
    listing_id: str,
    payload: PartnerListingAdminUpdate,
    admin: ResolvedActor = Depends(get_resolved_actor),
    db: AsyncSession = Depends(get_db),
) -> PartnerListingOut:
    row = await admin_update_partner_listing(
        db, admin=admin, listing_id=listing_id, changes=payload.model_dump(exclude_unset=True),
    )
    resp = PartnerListingOut.model_validate(row)
    await db.commit()
    return resp


@router.post("/partner-listings/{listing_id}/promote", response_model=CarListingOut)
async def promote(
    listing_id: str,
    payload: ListingOverrides | None = None,
    admin: ResolvedActor = Depends(get_resolved_actor),
    http: HubHttpClient = Depends(get_http_client),
    db: AsyncSession = Depends(get_db),
) -> CarListingOut:
    car = await promote_partner_listing(
        db,
        admin=admin,
        listing_id=listing_id,
        overrides=payload.model_dump(exclude_unset=True) if payload else None,
        http=http,
    )
    resp = CarListingOut.model_validate(car)
    await db.commit()
    return resp
