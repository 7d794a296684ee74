"""
Visibility resolver.

`resolve_visibility` is the single place that decides whether a viewer may
see a listing and through which surface. It is a pure function over a flags
snapshot so it can be tested without a database. `visible_listings` loads
candidate rows, maps them to `ListingView` snapshots and filters them
through the same function.

Surfaces:
- owner:   anything in the viewer's owned dealership, regardless of flags
- public:  car listings that are available and public, public partner listings
           not yet promoted (their car listing stands in for them)
- network: approved pending listings shared with the network, for viewers
           holding an approved membership, minus the viewer's own dealerships
           and own submissions
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import AsyncIterator

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from dealerhub.models.car_listing import CarListing
from dealerhub.models.partner_listing import PartnerListing
from dealerhub.models.partner_membership import PartnerMembership
from dealerhub.models.pending_listing import PendingListing
from dealerhub.services.tenancy import ResolvedActor

PENDING = "pending_listing"
PARTNER = "partner_listing"
CAR = "car_listing"


@dataclass(frozen=True)
class ListingRef:
    kind: str
    id: str


@dataclass(frozen=True)
class ListingView:
    ref: ListingRef
    dealership_id: str | None
    created_by: str | None
    is_public: bool
    is_shared_with_network: bool
    approval_status: str | None = None  # pending listings only
    status: str | None = None  # car / partner listings only
    is_added_to_main_listings: bool = False  # partner listings only

    # summary carried for rendering and sorting
    make: str = ""
    model: str = ""
    year: int | None = None
    price: Decimal | None = None
    is_special_offer: bool = False
    created_at: datetime | None = None


@dataclass(frozen=True)
class Viewer:
    actor_id: str | None = None
    owned_dealership_id: str | None = None
    # dealership ids of approved memberships; None stands for an independent membership
    approved_scopes: frozenset = frozenset()

    @property
    def has_approved_membership(self) -> bool:
        return len(self.approved_scopes) > 0

    @property
    def own_dealerships(self) -> frozenset:
        ids = {d for d in self.approved_scopes if d is not None}
        if self.owned_dealership_id is not None:
            ids.add(self.owned_dealership_id)
        return frozenset(ids)

    @classmethod
    def anonymous(cls) -> "Viewer":
        return cls()

    @classmethod
    def from_resolved(cls, actor: ResolvedActor | None) -> "Viewer":
        if actor is None:
            return cls.anonymous()
        return cls(
            actor_id=actor.actor_id,
            owned_dealership_id=actor.owned_dealership_id,
            approved_scopes=frozenset(m.dealership_id for m in actor.approved_memberships()),
        )


@dataclass(frozen=True)
class Visibility:
    owner: bool
    public: bool
    network: bool

    @property
    def any(self) -> bool:
        return self.owner or self.public or self.network


def resolve_visibility(listing: ListingView, viewer: Viewer) -> Visibility:
    owner = viewer.owned_dealership_id is not None and listing.dealership_id == viewer.owned_dealership_id

    kind = listing.ref.kind
    if kind == CAR:
        public = listing.status == "available" and listing.is_public
    elif kind == PARTNER:
        public = listing.is_public and not listing.is_added_to_main_listings
    else:
        public = False

    network = (
        kind == PENDING
        and listing.approval_status == "approved"
        and listing.is_shared_with_network
        and viewer.has_approved_membership
        and listing.dealership_id not in viewer.own_dealerships
        and (viewer.actor_id is None or listing.created_by != viewer.actor_id)
    )

    return Visibility(owner=owner, public=public, network=network)


@dataclass
class VisibleListings:
    owner: list[ListingView] = field(default_factory=list)
    public: list[ListingView] = field(default_factory=list)
    network: list[ListingView] = field(default_factory=list)

    def refs(self, surface: str) -> set[ListingRef]:
        return {v.ref for v in getattr(self, surface)}


def pending_view(r: PendingListing) -> ListingView:
    return ListingView(
        ref=ListingRef(PENDING, r.id),
        dealership_id=r.dealership_id,
        created_by=r.created_by,
        is_public=r.is_public,
        is_shared_with_network=r.is_shared_with_network,
        approval_status=r.approval_status,
        make=r.make, model=r.model, year=r.year, price=r.price,
        is_special_offer=r.is_special_offer,
        created_at=r.created_at,
    )


def car_view(r: CarListing) -> ListingView:
    return ListingView(
        ref=ListingRef(CAR, r.id),
        dealership_id=r.dealer_id,
        created_by=r.created_by,
        is_public=r.is_public,
        is_shared_with_network=r.is_shared_with_network,
        status=r.status,
        make=r.make, model=r.model, year=r.year, price=r.price,
        is_special_offer=r.is_special_offer,
        created_at=r.created_at,
    )


def partner_view(r: PartnerListing, dealership_id: str | None) -> ListingView:
    return ListingView(
        ref=ListingRef(PARTNER, r.id),
        dealership_id=dealership_id,
        created_by=r.created_by,
        is_public=r.is_public,
        is_shared_with_network=r.is_shared_with_network,
        status=r.status,
        is_added_to_main_listings=r.is_added_to_main_listings,
        make=r.make, model=r.model, year=r.year, price=r.price,
        is_special_offer=r.is_special_offer,
        created_at=r.created_at,
    )


@dataclass(frozen=True)
class ListingFilters:
    """Search narrowing applied to every surface before visibility is resolved."""

    make: str | None = None  # case-insensitive exact
    model: str | None = None  # case-insensitive prefix
    year_from: int | None = None
    year_to: int | None = None
    price_min: Decimal | None = None
    price_max: Decimal | None = None
    mileage_min: int | None = None
    mileage_max: int | None = None
    body_type: str | None = None
    fuel_type: str | None = None
    transmission: str | None = None

    def clauses(self, entity) -> list:
        out = []
        for name in ("make", "body_type", "fuel_type", "transmission"):
            value = getattr(self, name)
            if value:
                out.append(func.lower(getattr(entity, name)) == value.strip().lower())
        if self.model:
            out.append(entity.model.istartswith(self.model.strip(), autoescape=True))
        for column, low, high in (
            (entity.year, self.year_from, self.year_to),
            (entity.price, self.price_min, self.price_max),
            (entity.mileage, self.mileage_min, self.mileage_max),
        ):
            if low is not None:
                out.append(column >= low)
            if high is not None:
                out.append(column <= high)
        return out


NO_FILTERS = ListingFilters()


async def _candidates(
    db: AsyncSession,
    viewer: Viewer,
    filters: ListingFilters = NO_FILTERS,
) -> AsyncIterator[ListingView]:
    # SQL prefilters are supersets of the final answer; resolve_visibility decides.
    # Each surface is only queried when the viewer can receive something from it.
    # populate_existing: flags and status move through bulk conditional UPDATEs.
    owned = viewer.owned_dealership_id

    pending_conds = []
    if viewer.has_approved_membership:
        pending_conds.append(and_(
            PendingListing.approval_status == "approved",
            PendingListing.is_shared_with_network.is_(True),
        ))
    if owned is not None:
        pending_conds.append(PendingListing.dealership_id == owned)
    if pending_conds:
        stmt = (
            select(PendingListing)
            .where(or_(*pending_conds), *filters.clauses(PendingListing))
            .execution_options(populate_existing=True)
        )
        for r in (await db.execute(stmt)).scalars():
            yield pending_view(r)

    car_cond = and_(CarListing.is_public.is_(True), CarListing.status == "available")
    if owned is not None:
        car_cond = or_(car_cond, CarListing.dealer_id == owned)
    stmt = (
        select(CarListing)
        .where(car_cond, *filters.clauses(CarListing))
        .execution_options(populate_existing=True)
    )
    for r in (await db.execute(stmt)).scalars():
        yield car_view(r)

    partner_cond = and_(
        PartnerListing.is_public.is_(True),
        PartnerListing.is_added_to_main_listings.is_(False),
    )
    if owned is not None:
        partner_cond = or_(partner_cond, PartnerMembership.dealership_id == owned)
    stmt = (
        select(PartnerListing, PartnerMembership.dealership_id)
        .join(PartnerMembership, PartnerMembership.id == PartnerListing.partner_id)
        .where(partner_cond, *filters.clauses(PartnerListing))
        .execution_options(populate_existing=True)
    )
    for r, dealership_id in (await db.execute(stmt)).all():
        yield partner_view(r, dealership_id)


async def visible_listings(
    db: AsyncSession,
    viewer: Viewer,
    filters: ListingFilters = NO_FILTERS,
) -> VisibleListings:
    out = VisibleListings()
    async for view in _candidates(db, viewer, filters):
        vis = resolve_visibility(view, viewer)
        if vis.owner:
            out.owner.append(view)
        if vis.public:
            out.public.append(view)
        if vis.network:
            out.network.append(view)
    return out


SORT_KEYS = ("newest", "oldest", "price_asc", "price_desc")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _created_key(v: ListingView) -> datetime:
    ts = v.created_at
    if ts is None:
        return _EPOCH
    # some drivers hand back naive UTC timestamps
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)


def sort_views(views: list[ListingView], sort: str = "newest") -> list[ListingView]:
    """Caller-chosen ordering; the resolver itself guarantees none. Ties break on id."""
    if sort in ("price_asc", "price_desc"):
        priced = [v for v in views if v.price is not None]
        unpriced = sorted((v for v in views if v.price is None), key=lambda v: v.ref.id)
        priced.sort(key=lambda v: (v.price, v.ref.id), reverse=(sort == "price_desc"))
        return priced + unpriced
    ordered = sorted(views, key=lambda v: v.ref.id)
    ordered.sort(key=_created_key, reverse=(sort == "newest"))
    return ordered


def page_views(views: list[ListingView], page: int, limit: int) -> list[ListingView]:
    start = (page - 1) * limit
    return views[start:start + limit]
