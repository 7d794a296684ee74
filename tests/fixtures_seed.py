from decimal import Decimal

import pytest_asyncio

from dealerhub.core.config import settings
from dealerhub.core.ids import gen_id
from dealerhub.core.security import generate_api_key
from dealerhub.models.api_key import ApiKey
from dealerhub.models.dealership import Dealership
from dealerhub.models.partner_membership import PartnerMembership
from dealerhub.models.user import User


async def create_user(db, *, role: str, email: str | None = None) -> dict:
    user = User(
        id=gen_id("usr"),
        email=email or f"{gen_id(role)}@test.com",
        role=role,
        created_by="test",
        updated_by="test",
    )
    db.add(user)
    await db.flush()

    key = generate_api_key()
    db.add(ApiKey(user_id=user.id, key_prefix=key.prefix, key_hash=key.hashed, is_active=True))
    await db.commit()
    return {"user_id": user.id, "api_key": key.plain, "headers": {"X-API-Key": key.plain}}


async def create_dealership(db, *, owner_id: str, name: str = "Dealer Test") -> str:
    row = Dealership(id=gen_id("dlr"), owner_user_id=owner_id, name=name, created_by="test", updated_by="test")
    db.add(row)
    await db.commit()
    return row.id


async def create_membership(
    db,
    *,
    partner_user_id: str,
    dealership_id: str | None,
    is_approved: bool = True,
    commission_rate: Decimal = Decimal("0"),
    membership_id: str | None = None,
) -> str:
    row = PartnerMembership(
        id=membership_id or gen_id("pm"),
        partner_user_id=partner_user_id,
        dealership_id=dealership_id,
        is_approved=is_approved,
        commission_rate=commission_rate,
        created_by="test",
        updated_by="test",
    )
    db.add(row)
    await db.commit()
    return row.id


@pytest_asyncio.fixture
async def seed_admin(db_session):
    return await create_user(db_session, role="admin")


@pytest_asyncio.fixture
async def seed_dealer(db_session):
    dealer = await create_user(db_session, role="dealer")
    dealership_id = await create_dealership(db_session, owner_id=dealer["user_id"], name="Dealer A")
    return {**dealer, "dealership_id": dealership_id}


@pytest_asyncio.fixture
async def seed_other_dealer(db_session):
    dealer = await create_user(db_session, role="dealer")
    dealership_id = await create_dealership(db_session, owner_id=dealer["user_id"], name="Dealer B")
    return {**dealer, "dealership_id": dealership_id}


@pytest_asyncio.fixture
async def seed_tipper(db_session, seed_dealer):
    """Approved partner of dealer A at 7.5%."""
    tipper = await create_user(db_session, role="tipper")
    membership_id = await create_membership(
        db_session,
        partner_user_id=tipper["user_id"],
        dealership_id=seed_dealer["dealership_id"],
        commission_rate=Decimal("0.075"),
    )
    return {**tipper, "membership_id": membership_id, "dealership_id": seed_dealer["dealership_id"]}


@pytest_asyncio.fixture
async def seed_ingest_partner(db_session):
    """Independent approved membership bound to the ingestion token."""
    partner = await create_user(db_session, role="tipper")
    membership_id = await create_membership(
        db_session,
        partner_user_id=partner["user_id"],
        dealership_id=None,
        membership_id=settings.ingest_partner_id,
    )
    return {**partner, "membership_id": membership_id}


def vehicle_payload(**overrides) -> dict:
    body = {
        "make": "Toyota",
        "model": "Corolla",
        "year": 2019,
        "price": 20000,
        "mileage": 45000,
        "fuel_type": "petrol",
        "images": ["https://cdn.test/img/1.jpg"],
        "features": ["abs", "bluetooth"],
    }
    body.update(overrides)
    return body


async def submit_dealer_listing(client, dealer: dict, **overrides) -> dict:
    r = await client.post("/v1/listings/dealer", json=vehicle_payload(**overrides), headers=dealer["headers"])
    assert r.status_code == 201, r.text
    return r.json()


async def approve(client, admin: dict, listing_id: str, **overrides) -> dict:
    body = {"decision": "approved"}
    if overrides:
        body["overrides"] = overrides
    r = await client.post(f"/v1/admin/pending-listings/{listing_id}/decision", json=body, headers=admin["headers"])
    assert r.status_code == 200, r.text
    return r.json()


async def published_car_listing(client, dealer: dict, admin: dict, **overrides) -> str:
    """Dealer submits a public listing, admin approves it; returns the car listing id."""
    listing = await submit_dealer_listing(client, dealer, is_public=True, **overrides)
    decided = await approve(client, admin, listing["id"])
    assert decided["car_listing_id"]
    return decided["car_listing_id"]
