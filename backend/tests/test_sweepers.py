from __future__ import annotations
import uuid
from datetime import datetime, timedelta, timezone
import pytest
from sqlalchemy import Select, select
from conftest import make_profile
from app.config import settings
from app.jobs.sweepers import expire_moments, sweep_ephemeral_photos, sweep_stale_content
from app.models.moment import Moment, MomentPhoto
from app.models.user import Profile


async def _moment(session, creator, starts_at, ends_at, status="active") -> Moment:
    m = Moment(
        creator_id=creator.id, title="Sweep test", lat=0.0, lng=0.0,
        starts_at=starts_at, ends_at=ends_at, max_participants=4, status=status,
    )
    session.add(m)
    await session.commit()
    return m


async def _photo(session, moment, uploaded_at, is_preview=False) -> MomentPhoto:
    p = MomentPhoto(
        moment_id=moment.id, uploader_id=moment.creator_id, storage_key=f"moments/{moment.id}/{uuid.uuid4().hex}.jpg",
        mime_type="image/jpeg", is_preview=is_preview, uploaded_at=uploaded_at,
    )
    session.add(p)
    await session.commit()
    return p


async def _exists(session, photo_id) -> bool:
    return (await session.scalar(select(MomentPhoto.id).where(MomentPhoto.id == photo_id))) is not None


@pytest.mark.asyncio
async def test_expire_moments_is_idempotent(session):
    now = datetime.now(timezone.utc)
    creator = await make_profile(session)
    ended = await _moment(session, creator, now - timedelta(hours=3), now - timedelta(minutes=1))
    running = await _moment(session, creator, now - timedelta(hours=1), now + timedelta(hours=1))
    hidden = await _moment(session, creator, now - timedelta(hours=3), now - timedelta(minutes=1), status="hidden")

    assert await expire_moments(session, now) >= 1
    assert await expire_moments(session, now) == 0

    statuses = dict((await session.execute(
        select(Moment.id, Moment.status).where(Moment.id.in_([ended.id, running.id, hidden.id]))
    )).all())
    assert statuses == {ended.id: "expired", running.id: "active", hidden.id: "hidden"}


@pytest.mark.asyncio
async def test_ephemeral_sweep(session):
    now = datetime.now(timezone.utc)
    creator = await make_profile(session)
    live = await _moment(session, creator, now - timedelta(hours=1), now + timedelta(hours=1))
    over = await _moment(session, creator, now - timedelta(hours=2), now - timedelta(minutes=10))

    old = await _photo(session, live, now - timedelta(minutes=6))
    fresh = await _photo(session, live, now - timedelta(minutes=1))
    preview = await _photo(session, live, now - timedelta(hours=1), is_preview=True)
    on_ended = await _photo(session, over, now - timedelta(minutes=1))
    already_gone = await _photo(session, live, now - timedelta(minutes=30))
    unreachable = await _photo(session, live, now - timedelta(minutes=30))

    removed: list[str] = []

    def remove(key: str) -> None:
        if key == already_gone.storage_key:
            raise FileNotFoundError(key)
        if key == unreachable.storage_key:
            raise RuntimeError("storage timeout")
        removed.append(key)

    report = await sweep_ephemeral_photos(session, now, remove=remove)
    assert report.errors == 1
    assert report.deleted == report.processed - 1
    assert {old.storage_key, on_ended.storage_key} <= set(removed)

    assert not await _exists(session, old.id)
    assert not await _exists(session, on_ended.id)
    assert not await _exists(session, already_gone.id)
    assert await _exists(session, unreachable.id)
    assert await _exists(session, fresh.id)
    assert await _exists(session, preview.id)

    # a second pass only retries what failed
    second = await sweep_ephemeral_photos(session, now, remove=lambda key: None)
    assert second.errors == 0
    assert not await _exists(session, unreachable.id)

    # re-running on unchanged data touches none of these photos again
    third: list[str] = []
    await sweep_ephemeral_photos(session, now, remove=third.append)
    swept = [old, on_ended, already_gone, unreachable]
    assert not {p.storage_key for p in swept} & set(third)
    for p in swept:
        assert not await _exists(session, p.id)
    assert await _exists(session, fresh.id)
    assert await _exists(session, preview.id)


@pytest.mark.asyncio
async def test_stale_sweep(session):
    now = datetime.now(timezone.utc)
    creator = await make_profile(session)
    long_ended = await _moment(session, creator, now - timedelta(days=4), now - timedelta(days=3))
    recently_ended = await _moment(session, creator, now - timedelta(days=2), now - timedelta(days=1))
    stale_preview = await _photo(session, long_ended, now - timedelta(days=4), is_preview=True)
    recent_preview = await _photo(session, recently_ended, now - timedelta(days=2), is_preview=True)

    old_photo_at = now - timedelta(days=settings.profile_photo_inactivity_days + 1)
    quiet = await make_profile(session, profile_photo_key=f"profiles/{uuid.uuid4().hex}.jpg", profile_photo_uploaded_at=old_photo_at)
    busy = await make_profile(session, profile_photo_key=f"profiles/{uuid.uuid4().hex}.jpg", profile_photo_uploaded_at=old_photo_at)
    # a moment created just now keeps busy's photo
    await _moment(session, busy, now, now + timedelta(hours=1))

    stale_key, quiet_key, busy_key = stale_preview.storage_key, quiet.profile_photo_key, busy.profile_photo_key

    removed: list[str] = []
    report = await sweep_stale_content(session, now, remove=removed.append)
    assert report.errors == 0
    assert report.moment_photos_deleted >= 1
    assert report.profile_photos_cleared >= 1

    assert not await _exists(session, stale_preview.id)
    assert await _exists(session, recent_preview.id)
    assert stale_key in removed
    assert busy_key not in removed

    quiet_row = await session.get(Profile, quiet.id, populate_existing=True)
    busy_row = await session.get(Profile, busy.id, populate_existing=True)
    assert quiet_row.profile_photo_key is None and quiet_row.profile_photo_uploaded_at is None
    assert busy_row.profile_photo_key == busy_key

    # idempotent: nothing of ours is left to do
    again: list[str] = []
    await sweep_stale_content(session, now, remove=again.append)
    assert stale_key not in again
    assert quiet_key not in again


@pytest.mark.asyncio
async def test_sweeps_over_http_need_the_token(client, fake_storage, monkeypatch):
    monkeypatch.setattr(settings, "sweep_token", "s3cret")
    r = await client.post("/internal/sweeps/expire", headers={"Authorization": "Bearer wrong"})
    assert r.status_code == 403

    r = await client.post("/internal/sweeps/expire", headers={"Authorization": "Bearer s3cret"})
    assert r.status_code == 200
    assert r.json()["sweep"] == "expire"

    r = await client.post("/internal/sweeps/ephemeral", headers={"Authorization": "Bearer s3cret"})
    assert r.status_code == 200
    assert set(r.json()) == {"sweep", "processed", "deleted", "errors"}

    r = await client.post("/internal/sweeps/nope", headers={"Authorization": "Bearer s3cret"})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_sweeps_disabled_without_a_token(client, monkeypatch):
    monkeypatch.setattr(settings, "sweep_token", "")
    r = await client.post("/internal/sweeps/expire", headers={"Authorization": "Bearer "})
    assert r.status_code in (401, 403)


class _Result:
    def __init__(self, rows=(), rowcount=0):
        self._rows = list(rows)
        self.rowcount = rowcount

    def all(self):
        return self._rows


class _FlakySession:
    """Serves queued SELECT results; the writes numbered in `failing` raise."""

    def __init__(self, selects, failing):
        self.selects = list(selects)
        self.failing = set(failing)
        self.writes = 0
        self.rollbacks = 0

    async def execute(self, stmt):
        if isinstance(stmt, Select):
            return _Result(self.selects.pop(0))
        self.writes += 1
        if self.writes in self.failing:
            raise RuntimeError("db timeout")
        return _Result(rowcount=1)

    async def commit(self):
        pass

    async def rollback(self):
        self.rollbacks += 1


@pytest.mark.asyncio
async def test_ephemeral_sweep_survives_a_failed_row_delete():
    rows = [(uuid.uuid4(), "moments/a.jpg"), (uuid.uuid4(), "moments/b.jpg")]
    fake = _FlakySession([rows], failing={1})
    report = await sweep_ephemeral_photos(fake, datetime.now(timezone.utc), remove=lambda key: None)
    assert (report.processed, report.deleted, report.errors) == (2, 1, 1)
    assert fake.rollbacks == 1


@pytest.mark.asyncio
async def test_stale_sweep_survives_a_failed_profile_update():
    photos = [(uuid.uuid4(), "moments/old.jpg")]
    profiles = [(uuid.uuid4(), "profiles/p1.jpg"), (uuid.uuid4(), "profiles/p2.jpg")]
    # writes: the photo delete, then one update per profile; the first update fails
    fake = _FlakySession([photos, profiles], failing={2})
    report = await sweep_stale_content(fake, datetime.now(timezone.utc), remove=lambda key: None)
    assert report.moment_photos_deleted == 1
    assert report.profile_photos_cleared == 1
    assert report.errors == 1
