from __future__ import annotations
import pytest
from conftest import signup, grant_role
from test_moments import _moment_payload, _random_origin


@pytest.mark.asyncio
async def test_sos_lifecycle(client):
    host = await signup(client)
    outsider = await signup(client)
    mod = await signup(client)
    await grant_role(mod["id"], "admin")
    lat, lng = _random_origin()
    m = (await client.post("/moments", headers=host["headers"], json=_moment_payload(lat, lng, title="Night hike"))).json()

    r = await client.post("/sos-alerts", headers=outsider["headers"], json={"moment_id": m["id"]})
    assert r.status_code == 403

    r = await client.post("/sos-alerts", headers=host["headers"], json={"moment_id": m["id"], "lat": lat, "lng": lng})
    assert r.status_code == 201
    alert = r.json()
    assert alert["resolved_at"] is None

    assert (await client.get("/sos-alerts", headers=host["headers"])).status_code == 403
    active = (await client.get("/sos-alerts", headers=mod["headers"])).json()
    mine = next(a for a in active if a["id"] == alert["id"])
    assert mine["moment_title"] == "Night hike"

    r = await client.post(f"/sos-alerts/{alert['id']}/resolve", headers=mod["headers"])
    assert r.status_code == 200
    resolved = r.json()
    assert resolved["resolved_by"] == mod["id"]

    # resolving again keeps the original resolution
    again = (await client.post(f"/sos-alerts/{alert['id']}/resolve", headers=mod["headers"])).json()
    assert again["resolved_at"] == resolved["resolved_at"]
    active = (await client.get("/sos-alerts", headers=mod["headers"])).json()
    assert all(a["id"] != alert["id"] for a in active)


@pytest.mark.asyncio
async def test_sos_requires_both_coordinates(client):
    host = await signup(client)
    lat, lng = _random_origin()
    m = (await client.post("/moments", headers=host["headers"], json=_moment_payload(lat, lng))).json()
    r = await client.post("/sos-alerts", headers=host["headers"], json={"moment_id": m["id"], "lat": lat})
    assert r.status_code == 422
