from decimal import Decimal

import pytest
import pytest_asyncio

from dealerhub.services.attribution import commission_amount

from tests.fixtures_seed import create_membership, create_user, published_car_listing


def test_commission_amount_rounds_half_up_to_cents():
    assert commission_amount(Decimal("30000"), Decimal("0.05")) == Decimal("1500.00")
    assert commission_amount(Decimal("999.99"), Decimal("0.075")) == Decimal("75.00")
    assert commission_amount(Decimal("0.10"), Decimal("0.05")) == Decimal("0.01")
    assert commission_amount(Decimal("12345.67"), Decimal("0")) == Decimal("0.00")


@pytest_asyncio.fixture
async def car_id(client, seed_dealer, seed_admin):
    return await published_car_listing(client, seed_dealer, seed_admin, price=30000)


@pytest_asyncio.fixture
async def buyer(db_session):
    return await create_user(db_session, role="buyer")


def lead_body(listing_id: str, **overrides) -> dict:
    body = {"listing_id": listing_id, "name": "Sam Buyer", "email": "sam@example.com", "city": "Oslo"}
    body.update(overrides)
    return body


async def _tipper_lead(client, listing_id: str, membership_id: str, sender: dict) -> dict:
    r = await client.post(
        "/v1/leads",
        json=lead_body(listing_id, source_type="tipper", source_id=membership_id),
        headers=sender["headers"],
    )
    assert r.status_code == 201, r.text
    return r.json()


async def _open(client, buyer: dict, listing_id: str, price=30000, **extra) -> dict:
    r = await client.post(
        "/v1/transactions", json={"listing_id": listing_id, "agreed_price": price, **extra}, headers=buyer["headers"],
    )
    assert r.status_code == 201, r.text
    return r.json()


@pytest.mark.asyncio
async def test_tipper_referral_earns_commission(client, car_id, buyer, seed_dealer, seed_admin, seed_tipper):
    r = await client.patch(
        f"/v1/memberships/{seed_tipper['membership_id']}",
        json={"is_approved": True, "commission_rate": "0.05"},
        headers=seed_dealer["headers"],
    )
    assert r.status_code == 200

    lead = await _tipper_lead(client, car_id, seed_tipper["membership_id"], seed_tipper)
    txn = await _open(client, buyer, car_id, lead_id=lead["id"])
    assert txn["status"] == "pending"
    assert txn["seller_id"] == seed_dealer["dealership_id"]

    r = await client.post(f"/v1/transactions/{txn['id']}/confirm", headers=seed_dealer["headers"])
    assert r.json()["status"] == "confirmed"

    r = await client.post(f"/v1/transactions/{txn['id']}/complete", headers=seed_dealer["headers"])
    assert r.status_code == 200, r.text
    done = r.json()
    assert done["transaction"]["status"] == "completed"
    commission = done["commission"]
    assert commission["partner_id"] == seed_tipper["membership_id"]
    assert commission["lead_id"] == lead["id"]
    assert commission["status"] == "pending"
    assert Decimal(commission["rate"]) == Decimal("0.05")
    assert Decimal(commission["amount"]) == Decimal("1500")

    # sold listings drop off the marketplace
    r = await client.get(f"/v1/marketplace/{car_id}")
    assert r.status_code == 404

    r = await client.post(f"/v1/commissions/{commission['id']}/pay", headers=seed_admin["headers"])
    assert r.status_code == 200
    assert r.json()["status"] == "paid"
    assert r.json()["paid_at"] is not None

    r = await client.post(f"/v1/commissions/{commission['id']}/pay", headers=seed_admin["headers"])
    assert r.status_code == 409
    assert r.json()["code"] == "invalid_state"


@pytest.mark.asyncio
async def test_completing_twice_is_a_conflict(client, car_id, buyer, seed_dealer, seed_tipper):
    await _tipper_lead(client, car_id, seed_tipper["membership_id"], seed_tipper)
    txn = await _open(client, buyer, car_id)

    r = await client.post(f"/v1/transactions/{txn['id']}/complete", headers=seed_dealer["headers"])
    assert r.status_code == 200

    r = await client.post(f"/v1/transactions/{txn['id']}/complete", headers=seed_dealer["headers"])
    assert r.status_code == 409
    assert r.json()["code"] == "conflict"

    r = await client.get("/v1/commissions", headers=seed_tipper["headers"])
    assert len(r.json()) == 1


@pytest.mark.asyncio
async def test_first_tipper_lead_is_attributed_without_lead_id(client, db_session, car_id, buyer, seed_dealer, seed_tipper):
    other = await create_user(db_session, role="tipper")
    other_membership = await create_membership(
        db_session,
        partner_user_id=other["user_id"],
        dealership_id=seed_dealer["dealership_id"],
        commission_rate=Decimal("0.1"),
    )
    r = await client.post("/v1/leads", json=lead_body(car_id), headers=buyer["headers"])
    assert r.status_code == 201
    first = await _tipper_lead(client, car_id, seed_tipper["membership_id"], seed_tipper)
    await _tipper_lead(client, car_id, other_membership, other)

    txn = await _open(client, buyer, car_id)
    r = await client.post(f"/v1/transactions/{txn['id']}/complete", headers=seed_dealer["headers"])
    commission = r.json()["commission"]
    assert commission["lead_id"] == first["id"]
    assert Decimal(commission["amount"]) == Decimal("2250")


@pytest.mark.asyncio
async def test_organic_sale_has_no_commission(client, car_id, buyer, seed_dealer):
    r = await client.post("/v1/leads", json=lead_body(car_id), headers=buyer["headers"])
    assert r.json()["source_type"] == "organic"

    txn = await _open(client, buyer, car_id)
    r = await client.post(f"/v1/transactions/{txn['id']}/complete", headers=seed_dealer["headers"])
    assert r.status_code == 200
    assert r.json()["commission"] is None


@pytest.mark.asyncio
async def test_rate_change_after_completion_keeps_commission(client, car_id, buyer, seed_dealer, seed_tipper):
    await _tipper_lead(client, car_id, seed_tipper["membership_id"], seed_tipper)
    txn = await _open(client, buyer, car_id)
    r = await client.post(f"/v1/transactions/{txn['id']}/complete", headers=seed_dealer["headers"])
    assert Decimal(r.json()["commission"]["amount"]) == Decimal("2250")

    r = await client.patch(
        f"/v1/memberships/{seed_tipper['membership_id']}",
        json={"is_approved": True, "commission_rate": "0.2"},
        headers=seed_dealer["headers"],
    )
    assert r.status_code == 200

    r = await client.get("/v1/commissions", headers=seed_tipper["headers"])
    [row] = r.json()
    assert Decimal(row["rate"]) == Decimal("0.075")
    assert Decimal(row["amount"]) == Decimal("2250")


# ---- leads ------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_lead_source_rules(client, db_session, car_id, buyer, seed_dealer, seed_tipper):
    r = await client.post(
        "/v1/leads", json=lead_body(car_id, source_id=seed_tipper["membership_id"]), headers=buyer["headers"],
    )
    assert r.status_code == 422

    r = await client.post("/v1/leads", json=lead_body(car_id, source_type="tipper"), headers=buyer["headers"])
    assert r.status_code == 422

    applicant = await create_user(db_session, role="tipper")
    pending = await create_membership(
        db_session,
        partner_user_id=applicant["user_id"],
        dealership_id=seed_dealer["dealership_id"],
        is_approved=False,
    )
    r = await client.post(
        "/v1/leads", json=lead_body(car_id, source_type="tipper", source_id=pending), headers=buyer["headers"],
    )
    assert r.status_code == 422

    r = await client.post("/v1/leads", json=lead_body("car_missing"), headers=buyer["headers"])
    assert r.status_code == 404

    r = await client.post("/v1/leads", json=lead_body(car_id, email="not-an-email"), headers=buyer["headers"])
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_signed_in_lead_records_sender(client, car_id, buyer):
    r = await client.post("/v1/leads", json=lead_body(car_id), headers=buyer["headers"])
    assert r.json()["from_user_id"] == buyer["user_id"]

    r = await client.get("/v1/leads", headers=buyer["headers"])
    assert len(r.json()) == 1


@pytest.mark.asyncio
async def test_anonymous_lead_is_rejected(client, car_id, buyer, seed_dealer, seed_tipper):
    r = await client.post(
        "/v1/leads", json=lead_body(car_id, source_type="tipper", source_id=seed_tipper["membership_id"]),
    )
    assert r.status_code == 401
    assert r.json()["code"] == "unauthorized"

    # nothing was recorded, so the sale carries no commission
    txn = await _open(client, buyer, car_id)
    r = await client.post(f"/v1/transactions/{txn['id']}/complete", headers=seed_dealer["headers"])
    assert r.status_code == 200
    assert r.json()["commission"] is None


@pytest.mark.asyncio
async def test_lead_status_moves_forward_only(client, car_id, buyer, seed_dealer, seed_other_dealer):
    r = await client.post("/v1/leads", json=lead_body(car_id), headers=buyer["headers"])
    lead_id = r.json()["id"]

    r = await client.get("/v1/leads", headers=seed_dealer["headers"])
    assert [x["id"] for x in r.json()] == [lead_id]
    r = await client.get("/v1/leads", headers=seed_other_dealer["headers"])
    assert r.json() == []

    r = await client.patch(f"/v1/leads/{lead_id}", json={"status": "contacted"}, headers=seed_other_dealer["headers"])
    assert r.status_code == 403

    r = await client.patch(f"/v1/leads/{lead_id}", json={"status": "contacted"}, headers=seed_dealer["headers"])
    assert r.json()["status"] == "contacted"
    r = await client.patch(f"/v1/leads/{lead_id}", json={"status": "closed"}, headers=seed_dealer["headers"])
    assert r.json()["status"] == "closed"

    r = await client.patch(f"/v1/leads/{lead_id}", json={"status": "contacted"}, headers=seed_dealer["headers"])
    assert r.status_code == 409
    assert r.json()["code"] == "invalid_state"


# ---- transactions -----------------------------------------------------------------

@pytest.mark.asyncio
async def test_one_open_transaction_per_listing(client, db_session, car_id, buyer):
    txn = await _open(client, buyer, car_id)

    other_buyer = await create_user(db_session, role="buyer")
    r = await client.post(
        "/v1/transactions", json={"listing_id": car_id, "agreed_price": 29000}, headers=other_buyer["headers"],
    )
    assert r.status_code == 409
    assert r.json()["code"] == "conflict"

    r = await client.post(f"/v1/transactions/{txn['id']}/cancel", headers=buyer["headers"])
    assert r.json()["status"] == "cancelled"

    await _open(client, other_buyer, car_id, price=29000)


@pytest.mark.asyncio
async def test_cancelled_transaction_cannot_complete(client, car_id, buyer, seed_dealer):
    txn = await _open(client, buyer, car_id)
    await client.post(f"/v1/transactions/{txn['id']}/cancel", headers=seed_dealer["headers"])

    r = await client.post(f"/v1/transactions/{txn['id']}/complete", headers=seed_dealer["headers"])
    assert r.status_code == 409
    assert r.json()["code"] == "invalid_state"


@pytest.mark.asyncio
async def test_only_seller_completes(client, car_id, buyer, seed_other_dealer):
    txn = await _open(client, buyer, car_id)

    r = await client.post(f"/v1/transactions/{txn['id']}/complete", headers=buyer["headers"])
    assert r.status_code == 403
    r = await client.post(f"/v1/transactions/{txn['id']}/confirm", headers=seed_other_dealer["headers"])
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_sold_listing_cannot_be_bought_again(client, db_session, car_id, buyer, seed_dealer):
    txn = await _open(client, buyer, car_id)
    await client.post(f"/v1/transactions/{txn['id']}/complete", headers=seed_dealer["headers"])

    other_buyer = await create_user(db_session, role="buyer")
    r = await client.post(
        "/v1/transactions", json={"listing_id": car_id, "agreed_price": 1}, headers=other_buyer["headers"],
    )
    assert r.status_code == 409
    assert r.json()["code"] == "invalid_state"


@pytest.mark.asyncio
async def test_lead_must_belong_to_listing(client, car_id, buyer, seed_dealer, seed_admin):
    other_car = await published_car_listing(client, seed_dealer, seed_admin, model="Yaris")
    r = await client.post("/v1/leads", json=lead_body(other_car), headers=buyer["headers"])
    r = await client.post(
        "/v1/transactions",
        json={"listing_id": car_id, "agreed_price": 30000, "lead_id": r.json()["id"]},
        headers=buyer["headers"],
    )
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_transaction_visible_to_parties_only(client, db_session, car_id, buyer, seed_dealer, seed_admin):
    txn = await _open(client, buyer, car_id)
    stranger = await create_user(db_session, role="buyer")

    for who, expected in ((buyer, 200), (seed_dealer, 200), (seed_admin, 200), (stranger, 403)):
        r = await client.get(f"/v1/transactions/{txn['id']}", headers=who["headers"])
        assert r.status_code == expected


# ---- commissions ------------------------------------------------------------------

@pytest.mark.asyncio
async def test_commission_listing_permissions(client, db_session, car_id, buyer, seed_dealer, seed_admin, seed_tipper):
    await _tipper_lead(client, car_id, seed_tipper["membership_id"], seed_tipper)
    txn = await _open(client, buyer, car_id)
    await client.post(f"/v1/transactions/{txn['id']}/complete", headers=seed_dealer["headers"])

    r = await client.get("/v1/commissions", headers=seed_admin["headers"])
    assert len(r.json()) == 1

    r = await client.get("/v1/commissions", headers=seed_dealer["headers"])
    assert r.status_code == 200
    assert r.json() == []

    other = await create_user(db_session, role="tipper")
    r = await client.get("/v1/commissions", headers=other["headers"])
    assert r.json() == []

    commission_id = (await client.get("/v1/commissions", headers=seed_tipper["headers"])).json()[0]["id"]
    r = await client.post(f"/v1/commissions/{commission_id}/pay", headers=seed_tipper["headers"])
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_sub_dealer_lists_commissions_from_held_membership(
    client, db_session, car_id, buyer, seed_dealer, seed_other_dealer,
):
    membership_id = await create_membership(
        db_session,
        partner_user_id=seed_other_dealer["user_id"],
        dealership_id=seed_dealer["dealership_id"],
        commission_rate=Decimal("0.05"),
    )
    await _tipper_lead(client, car_id, membership_id, seed_other_dealer)
    txn = await _open(client, buyer, car_id)
    await client.post(f"/v1/transactions/{txn['id']}/complete", headers=seed_dealer["headers"])

    r = await client.get("/v1/commissions", headers=seed_other_dealer["headers"])
    assert r.status_code == 200
    [row] = r.json()
    assert row["partner_id"] == membership_id
    assert Decimal(row["amount"]) == Decimal("1500")
