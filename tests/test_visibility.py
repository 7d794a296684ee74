from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from dealerhub.services.visibility import (
    CAR,
    PARTNER,
    PENDING,
    ListingRef,
    ListingView,
    Viewer,
    resolve_visibility,
    sort_views,
)

from tests.fixtures_seed import (
    approve,
    create_membership,
    create_user,
    published_car_listing,
    submit_dealer_listing,
    vehicle_payload,
)

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def view(kind=PENDING, id="x1", dealership_id="dlr_a", **kw) -> ListingView:
    base = dict(created_by="usr_dealer_a", is_public=False, is_shared_with_network=False)
    base.update(kw)
    return ListingView(ref=ListingRef(kind, id), dealership_id=dealership_id, **base)


network_partner = Viewer(actor_id="usr_p", approved_scopes=frozenset({"dlr_b"}))


def test_anonymous_sees_only_public_available_cars():
    anon = Viewer.anonymous()
    assert resolve_visibility(view(CAR, status="available", is_public=True), anon).public
    assert not resolve_visibility(view(CAR, status="sold", is_public=True), anon).any
    assert not resolve_visibility(view(CAR, status="available", is_public=False), anon).any
    assert not resolve_visibility(
        view(approval_status="approved", is_shared_with_network=True, is_public=True), anon,
    ).any


def test_partner_listing_public_only_when_flagged():
    anon = Viewer.anonymous()
    assert resolve_visibility(view(PARTNER, status="available", is_public=True), anon).public
    assert not resolve_visibility(view(PARTNER, status="available", is_public=False), anon).public


def test_promoted_partner_listing_leaves_public_view():
    promoted = view(PARTNER, status="available", is_public=True, is_added_to_main_listings=True)
    assert not resolve_visibility(promoted, Viewer.anonymous()).public
    assert resolve_visibility(promoted, Viewer(actor_id="usr_dealer_a", owned_dealership_id="dlr_a")).owner


def test_owner_sees_own_dealership_regardless_of_flags():
    owner = Viewer(actor_id="usr_dealer_a", owned_dealership_id="dlr_a")
    for listing in (
        view(approval_status="pending"),
        view(approval_status="rejected"),
        view(CAR, status="sold"),
        view(PARTNER, status="available"),
    ):
        vis = resolve_visibility(listing, owner)
        assert vis.owner
        assert not vis.network

    assert not resolve_visibility(view(dealership_id="dlr_b"), owner).owner


def test_network_needs_approved_shared_listing_and_membership():
    shared = view(approval_status="approved", is_shared_with_network=True)
    assert resolve_visibility(shared, network_partner).network

    assert not resolve_visibility(view(approval_status="pending", is_shared_with_network=True), network_partner).network
    assert not resolve_visibility(view(approval_status="approved"), network_partner).network
    assert not resolve_visibility(view(CAR, status="available", is_shared_with_network=True), network_partner).network

    no_membership = Viewer(actor_id="usr_b", owned_dealership_id="dlr_b")
    assert not resolve_visibility(shared, no_membership).network


def test_network_excludes_own_dealerships():
    shared = view(approval_status="approved", is_shared_with_network=True)

    member_of_a = Viewer(actor_id="usr_p", approved_scopes=frozenset({"dlr_a"}))
    assert not resolve_visibility(shared, member_of_a).network

    # owner of A with an approved membership at B still does not see A's pool as network
    owner_and_partner = Viewer(actor_id="usr_x", owned_dealership_id="dlr_a", approved_scopes=frozenset({"dlr_b"}))
    vis = resolve_visibility(shared, owner_and_partner)
    assert vis.owner
    assert not vis.network


def test_network_excludes_own_submissions():
    submitted_by_partner = view(approval_status="approved", is_shared_with_network=True, created_by="usr_p")
    assert not resolve_visibility(submitted_by_partner, network_partner).network


def test_independent_membership_counts_for_network():
    independent = Viewer(actor_id="usr_i", approved_scopes=frozenset({None}))
    shared = view(approval_status="approved", is_shared_with_network=True)
    assert independent.has_approved_membership
    assert independent.own_dealerships == frozenset()
    assert resolve_visibility(shared, independent).network


def test_sort_views_by_price_and_age():
    cheap = view(CAR, id="c1", price=Decimal("9000"), created_at=T0)
    pricey = view(CAR, id="c2", price=Decimal("30000"), created_at=T0 + timedelta(days=1))
    unpriced = view(CAR, id="c3", created_at=T0 - timedelta(days=1))

    assert [v.ref.id for v in sort_views([pricey, unpriced, cheap], "price_asc")] == ["c1", "c2", "c3"]
    assert [v.ref.id for v in sort_views([cheap, unpriced, pricey], "price_desc")] == ["c2", "c1", "c3"]
    assert [v.ref.id for v in sort_views([cheap, unpriced, pricey], "newest")] == ["c2", "c1", "c3"]
    assert [v.ref.id for v in sort_views([cheap, unpriced, pricey], "oldest")] == ["c3", "c1", "c2"]


def test_sort_views_mixes_naive_and_aware_timestamps():
    naive = view(CAR, id="n", created_at=datetime(2024, 5, 2, 12, 0))
    aware = view(CAR, id="a", created_at=T0)
    assert [v.ref.id for v in sort_views([aware, naive], "newest")] == ["n", "a"]


# ---- through the API --------------------------------------------------------------

@pytest.mark.asyncio
async def test_approved_public_listing_reaches_buyers_and_owner(client, db_session, seed_dealer, seed_admin):
    listing = await submit_dealer_listing(client, seed_dealer, is_public=True)
    decided = await approve(client, seed_admin, listing["id"])
    car_id = decided["car_listing_id"]

    buyer = await create_user(db_session, role="buyer")
    r = await client.get("/v1/marketplace", headers=buyer["headers"])
    assert r.status_code == 200
    assert [(c["kind"], c["id"]) for c in r.json()] == [("car_listing", car_id)]
    assert r.json()[0]["dealership_id"] == seed_dealer["dealership_id"]

    r = await client.get("/v1/inventory", headers=seed_dealer["headers"])
    refs = {(c["kind"], c["id"]) for c in r.json()}
    assert refs == {("pending_listing", listing["id"]), ("car_listing", car_id)}


@pytest.mark.asyncio
async def test_pending_listing_is_invisible_outside_owner(client, db_session, seed_dealer, seed_other_dealer):
    await submit_dealer_listing(client, seed_dealer, is_public=True, is_shared_with_network=True)

    r = await client.get("/v1/marketplace")
    assert r.json() == []

    r = await client.get("/v1/visibility", headers=seed_other_dealer["headers"])
    assert r.json() == {"owner": [], "public": [], "network": []}


@pytest.mark.asyncio
async def test_network_pool_between_dealerships(client, db_session, seed_dealer, seed_other_dealer, seed_admin, seed_tipper):
    listing = await submit_dealer_listing(client, seed_dealer, is_shared_with_network=True)
    await approve(client, seed_admin, listing["id"])

    partner_of_b = await create_user(db_session, role="tipper")
    await create_membership(
        db_session, partner_user_id=partner_of_b["user_id"], dealership_id=seed_other_dealer["dealership_id"],
    )

    r = await client.get("/v1/network", headers=partner_of_b["headers"])
    assert [c["id"] for c in r.json()] == [listing["id"]]

    # partner of A: same dealership, not network
    r = await client.get("/v1/network", headers=seed_tipper["headers"])
    assert r.json() == []

    # owner of B holds no membership
    r = await client.get("/v1/network", headers=seed_other_dealer["headers"])
    assert r.json() == []

    # never on the public marketplace
    r = await client.get("/v1/marketplace")
    assert r.json() == []


@pytest.mark.asyncio
async def test_unapproved_membership_grants_no_network(client, db_session, seed_dealer, seed_other_dealer, seed_admin):
    listing = await submit_dealer_listing(client, seed_dealer, is_shared_with_network=True)
    await approve(client, seed_admin, listing["id"])

    applicant = await create_user(db_session, role="tipper")
    await create_membership(
        db_session,
        partner_user_id=applicant["user_id"],
        dealership_id=seed_other_dealer["dealership_id"],
        is_approved=False,
    )
    r = await client.get("/v1/network", headers=applicant["headers"])
    assert r.json() == []


@pytest.mark.asyncio
async def test_private_ingested_stock_stays_off_marketplace(client, seed_admin, seed_ingest_partner):
    r = await client.post(
        "/v1/ingest/listings",
        json={"payload": vehicle_payload(make="Kia")},
        headers={"Authorization": "Bearer test-ingest-token"},
    )
    assert r.status_code == 201

    r = await client.get("/v1/marketplace")
    assert r.json() == []


@pytest.mark.asyncio
async def test_marketplace_sort(client, seed_dealer, seed_admin):
    await published_car_listing(client, seed_dealer, seed_admin, price=25000, model="Camry")
    await published_car_listing(client, seed_dealer, seed_admin, price=12000, model="Yaris")

    r = await client.get("/v1/marketplace?sort=price_asc")
    assert [c["model"] for c in r.json()] == ["Yaris", "Camry"]

    r = await client.get("/v1/marketplace?sort=price_desc")
    assert [c["model"] for c in r.json()] == ["Camry", "Yaris"]

    r = await client.get("/v1/marketplace?sort=cheapest")
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_hidden_car_is_not_found_except_for_owner(client, seed_dealer, seed_admin):
    listing = await submit_dealer_listing(client, seed_dealer, is_public=True)
    decided = await approve(client, seed_admin, listing["id"])
    car_id = decided["car_listing_id"]

    r = await client.patch(
        f"/v1/admin/pending-listings/{listing['id']}", json={"is_public": False}, headers=seed_admin["headers"],
    )
    assert r.status_code == 200

    r = await client.get(f"/v1/marketplace/{car_id}")
    assert r.status_code == 404

    r = await client.get(f"/v1/marketplace/{car_id}", headers=seed_dealer["headers"])
    assert r.status_code == 200
    assert r.json()["is_public"] is False


@pytest.mark.asyncio
async def test_bad_api_key_on_marketplace_is_rejected(client):
    r = await client.get("/v1/marketplace", headers={"X-API-Key": "dh_nope_nope"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_promoted_partner_listing_appears_once(client, seed_admin, seed_ingest_partner):
    r = await client.post(
        "/v1/ingest/listings",
        json={"payload": vehicle_payload(make="Skoda", model="Octavia")},
        headers={"Authorization": "Bearer test-ingest-token"},
    )
    listing_id = r.json()["id"]

    r = await client.patch(
        f"/v1/admin/partner-listings/{listing_id}", json={"is_public": True}, headers=seed_admin["headers"],
    )
    assert r.status_code == 200
    r = await client.get("/v1/marketplace")
    assert [(c["kind"], c["id"]) for c in r.json()] == [(PARTNER, listing_id)]

    r = await client.post(f"/v1/admin/partner-listings/{listing_id}/promote", headers=seed_admin["headers"])
    assert r.status_code == 200, r.text
    car_id = r.json()["id"]

    r = await client.get("/v1/marketplace")
    assert [(c["kind"], c["id"]) for c in r.json()] == [(CAR, car_id)]


@pytest.mark.asyncio
async def test_marketplace_pages(client, seed_dealer, seed_admin):
    for model, price in (("Yaris", 15000), ("Corolla", 20000), ("Camry", 25000)):
        await published_car_listing(client, seed_dealer, seed_admin, model=model, price=price)

    async def page(query: str) -> list[str]:
        r = await client.get(f"/v1/marketplace?sort=price_asc&{query}")
        assert r.status_code == 200, r.text
        return [c["model"] for c in r.json()]

    assert await page("limit=2") == ["Yaris", "Corolla"]
    assert await page("limit=2&page=2") == ["Camry"]
    assert await page("limit=2&page=3") == []
    assert await page("") == ["Yaris", "Corolla", "Camry"]

    for bad in ("limit=0", "limit=101", "page=0"):
        r = await client.get(f"/v1/marketplace?{bad}")
        assert r.status_code == 422, bad

    r = await client.get("/v1/inventory?limit=1", headers=seed_dealer["headers"])
    assert len(r.json()) == 1


@pytest.mark.asyncio
async def test_marketplace_filters(client, seed_dealer, seed_admin):
    await published_car_listing(
        client, seed_dealer, seed_admin,
        make="Toyota", model="Corolla", price=18000, year=2018, mileage=60000, body_type="sedan",
    )
    await published_car_listing(
        client, seed_dealer, seed_admin,
        make="Toyota", model="RAV4", price=32000, year=2022, mileage=10000, body_type="suv",
    )
    await published_car_listing(
        client, seed_dealer, seed_admin,
        make="Kia", model="Ceed", price=16000, year=2020, mileage=30000, body_type="hatchback",
    )

    async def models(query: str) -> list[str]:
        r = await client.get(f"/v1/marketplace?sort=price_asc&{query}")
        assert r.status_code == 200, r.text
        return [c["model"] for c in r.json()]

    assert await models("make=toyota") == ["Corolla", "RAV4"]
    assert await models("model=cor") == ["Corolla"]
    assert await models("price_min=17000&price_max=33000") == ["Corolla", "RAV4"]
    assert await models("year_from=2019&mileage_max=40000") == ["Ceed", "RAV4"]
    assert await models("year_to=2019") == ["Corolla"]
    assert await models("body_type=SUV") == ["RAV4"]
    assert await models("make=toyota&fuel_type=diesel") == []

    r = await client.get("/v1/marketplace?price_min=-1")
    assert r.status_code == 422
