from __future__ import annotations
import uuid
import pytest
from fastapi import status


@pytest.mark.asyncio
async def test_register_login_me_refresh(client):
    email = f"Test-{uuid.uuid4()}@Example.com"
    r = await client.post("/auth/register", json={"email": email, "password": "supersecret"})
    assert r.status_code == status.HTTP_201_CREATED
    assert r.json()["has_profile"] is False

    # emails are stored lowercased
    r = await client.post("/auth/login", json={"email": email.lower(), "password": "supersecret"})
    assert r.status_code == 200
    tokens = r.json()
    assert "access" in tokens and "refresh" in tokens

    me = await client.get("/auth/me", headers={"Authorization": f"Bearer {tokens['access']}"})
    assert me.status_code == 200
    assert me.json()["email"] == email.lower()

    r = await client.post("/auth/refresh", headers={"Authorization": f"Bearer {tokens['refresh']}"})
    assert r.status_code == 200
    assert r.json()["access"] != tokens["access"]


@pytest.mark.asyncio
async def test_duplicate_email_and_bad_password(client):
    email = f"dup-{uuid.uuid4()}@example.com"
    assert (await client.post("/auth/register", json={"email": email, "password": "password1"})).status_code == 201
    r = await client.post("/auth/register", json={"email": email, "password": "password2"})
    assert r.status_code == 409
    assert "email" in r.json()["detail"].lower()

    r = await client.post("/auth/login", json={"email": email, "password": "wrong-password"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_refresh_token_is_not_an_access_token(client):
    email = f"r-{uuid.uuid4()}@example.com"
    await client.post("/auth/register", json={"email": email, "password": "supersecret"})
    tokens = (await client.post("/auth/login", json={"email": email, "password": "supersecret"})).json()
    r = await client.get("/auth/me", headers={"Authorization": f"Bearer {tokens['refresh']}"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_profile_required_before_using_moments(client):
    email = f"np-{uuid.uuid4()}@example.com"
    await client.post("/auth/register", json={"email": email, "password": "supersecret"})
    tokens = (await client.post("/auth/login", json={"email": email, "password": "supersecret"})).json()
    hdrs = {"Authorization": f"Bearer {tokens['access']}"}

    r = await client.get("/moments/nearby", headers=hdrs, params={"lat": 0, "lng": 0})
    assert r.status_code == 409
    assert r.json()["detail"] == "Profile required"

    r = await client.post("/profiles", headers=hdrs, json={
        "display_name": "Kai", "home_country": "jp", "languages": ["JA", "en", "ja"], "user_type": "traveler",
    })
    assert r.status_code == 201
    body = r.json()
    assert body["home_country"] == "JP"
    assert body["languages"] == ["ja", "en"]

    assert (await client.get("/auth/me", headers=hdrs)).json()["has_profile"] is True
    r = await client.post("/profiles", headers=hdrs, json={
        "display_name": "Kai", "home_country": "JP", "languages": ["ja"], "user_type": "traveler",
    })
    assert r.status_code == 409
    assert r.json()["code"] == "conflict"
