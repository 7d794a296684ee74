import pytest

INTERNAL = {"X-Internal-Admin-Key": "test-internal-admin"}


@pytest.mark.asyncio
async def test_bootstrap_user_returns_working_key(client):
    r = await client.post(
        "/v1/internal/users", json={"email": "Dana@Example.com", "role": "dealer"}, headers=INTERNAL,
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["role"] == "dealer"
    assert body["api_key"].startswith("dh_")

    r = await client.get("/v1/me", headers={"X-API-Key": body["api_key"]})
    assert r.status_code == 200
    assert r.json()["user_id"] == body["user_id"]
    assert r.json()["dealership_id"] is None


@pytest.mark.asyncio
async def test_bootstrap_requires_internal_key(client):
    r = await client.post("/v1/internal/users", json={"email": "x@example.com"})
    assert r.status_code == 403

    r = await client.post(
        "/v1/internal/users", json={"email": "x@example.com"}, headers={"X-Internal-Admin-Key": "wrong"},
    )
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_duplicate_email_is_conflict(client):
    await client.post("/v1/internal/users", json={"email": "same@example.com"}, headers=INTERNAL)
    r = await client.post("/v1/internal/users", json={"email": "SAME@example.com"}, headers=INTERNAL)
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_rotation_invalidates_old_key(client):
    r = await client.post("/v1/internal/users", json={"email": "rot@example.com"}, headers=INTERNAL)
    user_id, old_key = r.json()["user_id"], r.json()["api_key"]

    r = await client.post(f"/v1/internal/users/{user_id}/rotate-key", headers=INTERNAL)
    assert r.status_code == 200
    new_key = r.json()["api_key"]
    assert new_key != old_key

    assert (await client.get("/v1/me", headers={"X-API-Key": old_key})).status_code == 401
    assert (await client.get("/v1/me", headers={"X-API-Key": new_key})).status_code == 200


@pytest.mark.asyncio
async def test_rotate_unknown_user(client):
    r = await client.post("/v1/internal/users/usr_missing/rotate-key", headers=INTERNAL)
    assert r.status_code == 404
