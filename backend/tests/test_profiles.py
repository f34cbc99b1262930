from __future__ import annotations
import io
import uuid
import pytest
from PIL import Image
from conftest import signup


def _png() -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (8, 8), (200, 10, 10)).save(buf, format="PNG")
    return buf.getvalue()


@pytest.mark.asyncio
async def test_update_profile_partially(client):
    me = await signup(client, country="BR", languages=["pt"], user_type="local")
    r = await client.patch("/profiles/me", headers=me["headers"], json={"languages": ["pt", "en"]})
    assert r.status_code == 200
    body = r.json()
    assert body["languages"] == ["pt", "en"]
    assert body["home_country"] == "BR"

    r = await client.patch("/profiles/me", headers=me["headers"], json={"languages": ["a", "b", "c", "d"]})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_get_other_profile_and_missing(client):
    a = await signup(client, name="Alpha")
    b = await signup(client, name="Beta")
    r = await client.get(f"/profiles/{a['id']}", headers=b["headers"])
    assert r.status_code == 200
    assert r.json()["display_name"] == "Alpha"

    r = await client.get(f"/profiles/{uuid.uuid4()}", headers=b["headers"])
    assert r.status_code == 404
    assert r.json()["code"] == "not_found"


@pytest.mark.asyncio
async def test_profile_photo_upload_replaces_previous(client, fake_storage):
    me = await signup(client)
    r = await client.post("/profiles/me/photo", headers=me["headers"], files={"file": ("a.png", _png(), "image/png")})
    assert r.status_code == 200
    first = r.json()
    assert first["profile_photo_url"] == f"/profiles/{me['id']}/photo"
    assert len(fake_storage.objects) == 1
    first_key = next(iter(fake_storage.objects))

    r = await client.get(f"/profiles/{me['id']}/photo", headers=me["headers"])
    assert r.status_code == 200
    assert r.headers["content-type"] == "image/png"

    r = await client.post("/profiles/me/photo", headers=me["headers"], files={"file": ("b.png", _png(), "image/png")})
    assert r.status_code == 200
    assert first_key in fake_storage.removed
    assert len(fake_storage.objects) == 1


@pytest.mark.asyncio
async def test_profile_photo_rejects_non_images(client, fake_storage):
    me = await signup(client)
    r = await client.post("/profiles/me/photo", headers=me["headers"], files={"file": ("a.txt", b"not an image", "text/plain")})
    assert r.status_code == 422
    assert r.json()["code"] == "validation_error"
    assert fake_storage.objects == {}
