from decimal import Decimal
from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from dealerhub.core.db import get_db
from dealerhub.core.errors import NotFoundError
from dealerhub.models.car_listing import CarListing
from dealerhub.schemas.listing import CarListingOut, ListingCard, VisibilityOut
from dealerhub.services.auth import Actor, get_optional_actor
from dealerhub.services.tenancy import ResolvedActor, get_resolved_actor, resolve_actor
from dealerhub.services.visibility import (
    ListingFilters,
    ListingView,
    Viewer,
    car_view,
    page_views,
    resolve_visibility,
    sort_views,
    visible_listings,
)

router = APIRouter()

SortParam = Literal["newest", "oldest", "price_asc", "price_desc"]


class Paging:
    def __init__(
        self,
        sort: SortParam = "newest",
        page: int = Query(default=1, ge=1),
        limit: int = Query(default=24, ge=1, le=100),
    ):
        self.sort = sort
        self.page = page
        self.limit = limit


def listing_filters(
    make: str | None = None,
    model: str | None = None,
    year_from: int | None = None,
    year_to: int | None = None,
    price_min: Decimal | None = Query(default=None, ge=0),
    price_max: Decimal | None = Query(default=None, ge=0),
    mileage_min: int | None = Query(default=None, ge=0),
    mileage_max: int | None = Query(default=None, ge=0),
    body_type: str | None = None,
    fuel_type: str | None = None,
    transmission: str | None = None,
) -> ListingFilters:
    return ListingFilters(
        make=make, model=model,
        year_from=year_from, year_to=year_to,
        price_min=price_min, price_max=price_max,
        mileage_min=mileage_min, mileage_max=mileage_max,
        body_type=body_type, fuel_type=fuel_type, transmission=transmission,
    )


def _card(v: ListingView) -> ListingCard:
    return ListingCard(
        kind=v.ref.kind,
        id=v.ref.id,
        dealership_id=v.dealership_id,
        make=v.make,
        model=v.model,
        year=v.year,
        price=v.price,
        is_special_offer=v.is_special_offer,
        created_at=v.created_at,
    )


def _cards(views: list[ListingView], paging: Paging) -> list[ListingCard]:
    ordered = sort_views(views, paging.sort)
    return [_card(v) for v in page_views(ordered, paging.page, paging.limit)]


async def _viewer(db: AsyncSession, actor: Actor | None) -> Viewer:
    if actor is None:
        return Viewer.anonymous()
    return Viewer.from_resolved(await resolve_actor(db, actor.user_id))


@router.get("/marketplace", response_model=list[ListingCard])
async def marketplace(
    paging: Paging = Depends(),
    filters: ListingFilters = Depends(listing_filters),
    actor: Actor | None = Depends(get_optional_actor),
    db: AsyncSession = Depends(get_db),
) -> list[ListingCard]:
    visible = await visible_listings(db, await _viewer(db, actor), filters)
    return _cards(visible.public, paging)


@router.get("/marketplace/{listing_id}", response_model=CarListingOut)
async def marketplace_listing(
    listing_id: str,
    actor: Actor | None = Depends(get_optional_actor),
    db: AsyncSession = Depends(get_db),
) -> CarListingOut:
    row = await db.get(CarListing, listing_id, populate_existing=True)
    if row is None:
        raise NotFoundError("Listing not found")
    vis = resolve_visibility(car_view(row), await _viewer(db, actor))
    # hidden listings are indistinguishable from missing ones
    if not (vis.public or vis.owner):
        raise NotFoundError("Listing not found")
    return CarListingOut.model_validate(row)


@router.get("/inventory", response_model=list[ListingCard])
async def inventory(
    paging: Paging = Depends(),
    filters: ListingFilters = Depends(listing_filters),
    actor: ResolvedActor = Depends(get_resolved_actor),
    db: AsyncSession = Depends(get_db),
) -> list[ListingCard]:
    visible = await visible_listings(db, Viewer.from_resolved(actor), filters)
    return _cards(visible.owner, paging)


@router.get("/network", response_model=list[ListingCard])
async def network(
    paging: Paging = Depends(),
    filters: ListingFilters = Depends(listing_filters),
    actor: ResolvedActor = Depends(get_resolved_actor),
    db: AsyncSession = Depends(get_db),
) -> list[ListingCard]:
    visible = await visible_listings(db, Viewer.from_resolved(actor), filters)
    return _cards(visible.network, paging)


@router.get("/visibility", response_model=VisibilityOut)
async def visibility(
    paging: Paging = Depends(),
    filters: ListingFilters = Depends(listing_filters),
    actor: ResolvedActor = Depends(get_resolved_actor),
    db: AsyncSession = Depends(get_db),
) -> VisibilityOut:
    visible = await visible_listings(db, Viewer.from_resolved(actor), filters)
    # each surface is paged on its own
    return VisibilityOut(
        owner=_cards(visible.owner, paging),
        public=_cards(visible.public, paging),
        network=_cards(visible.network, paging),
    )
