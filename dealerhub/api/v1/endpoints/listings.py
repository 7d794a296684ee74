from typing import Any

from fastapi import APIRouter, Body, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from dealerhub.core.db import get_db
from dealerhub.schemas.listing import PendingListingOut
from dealerhub.services.idempotency import (
    get_or_reserve_idempotency,
    optional_idempotency_key,
    store_idempotency_response,
)
from dealerhub.services.intake import (
    list_own_pending_listings,
    submit_dealer_listing,
    submit_partner_listing,
    update_pending_listing,
    withdraw_pending_listing,
)
from dealerhub.services.tenancy import ResolvedActor, get_resolved_actor

router = APIRouter()


async def _submit(
    *,
    request: Request,
    db: AsyncSession,
    actor: ResolvedActor,
    idempotency_key: str | None,
    payload: dict[str, Any],
    submit,
) -> PendingListingOut:
    if idempotency_key:
        existing_idm, _ = await get_or_reserve_idempotency(
            db=db,
            scope=actor.actor_id,
            idempotency_key=idempotency_key,
            request_path=str(request.url.path),
            request_body={"payload": payload, "query": dict(request.query_params)},
        )
        if existing_idm:
            # Safe retry: return stored response
            return PendingListingOut(**existing_idm.response)

    row = await submit()
    resp = PendingListingOut.model_validate(row)

    if idempotency_key:
        await store_idempotency_response(
            db=db, scope=actor.actor_id, idempotency_key=idempotency_key, response=resp.model_dump(mode="json"),
        )
    await db.commit()
    return resp


@router.post("/listings/dealer", response_model=PendingListingOut, status_code=201)
async def submit_as_dealer(
    request: Request,
    payload: dict[str, Any] = Body(...),
    actor: ResolvedActor = Depends(get_resolved_actor),
    idempotency_key: str | None = Depends(optional_idempotency_key),
    db: AsyncSession = Depends(get_db),
) -> PendingListingOut:
    return await _submit(
        request=request, db=db, actor=actor, idempotency_key=idempotency_key, payload=payload,
        submit=lambda: submit_dealer_listing(db, actor=actor, payload=payload),
    )


@router.post("/listings/partner", response_model=PendingListingOut, status_code=201)
async def submit_as_partner(
    request: Request,
    payload: dict[str, Any] = Body(...),
    membership_id: str | None = None,
    actor: ResolvedActor = Depends(get_resolved_actor),
    idempotency_key: str | None = Depends(optional_idempotency_key),
    db: AsyncSession = Depends(get_db),
) -> PendingListingOut:
    return await _submit(
        request=request, db=db, actor=actor, idempotency_key=idempotency_key, payload=payload,
        submit=lambda: submit_partner_listing(db, actor=actor, payload=payload, membership_id=membership_id),
    )


@router.get("/listings/pending", response_model=list[PendingListingOut])
async def my_pending_listings(
    actor: ResolvedActor = Depends(get_resolved_actor),
    db: AsyncSession = Depends(get_db),
) -> list[PendingListingOut]:
    rows = await list_own_pending_listings(db, actor=actor)
    return [PendingListingOut.model_validate(r) for r in rows]


@router.patch("/listings/pending/{listing_id}", response_model=PendingListingOut)
async def edit_pending_listing(
    listing_id: str,
    changes: dict[str, Any] = Body(...),
    actor: ResolvedActor = Depends(get_resolved_actor),
    db: AsyncSession = Depends(get_db),
) -> PendingListingOut:
    row = await update_pending_listing(db, actor=actor, listing_id=listing_id, changes=changes)
    resp = PendingListingOut.model_validate(row)
    await db.commit()
    return resp


@router.delete("/listings/pending/{listing_id}", status_code=204)
async def withdraw_listing(
    listing_id: str,
    actor: ResolvedActor = Depends(get_resolved_actor),
    db: AsyncSession = Depends(get_db),
) -> None:
    await withdraw_pending_listing(db, actor=actor, listing_id=listing_id)
    await db.commit()
