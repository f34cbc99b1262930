from __future__ import annotations
import asyncio
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta, timezone as dt_tz
from typing import Callable
import structlog
from sqlalchemy import select, update, delete, or_, exists
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db import SessionLocal, engine
from app.models.moment import Moment, MomentPhoto
from app.models.user import Profile
from app.services import storage

log = structlog.get_logger()

Remover = Callable[[str], None]


@dataclass
class SweepReport:
    processed: int = 0
    deleted: int = 0
    errors: int = 0


@dataclass
class StaleSweepReport:
    moment_photos_deleted: int = 0
    profile_photos_cleared: int = 0
    errors: int = 0


def _now(now: datetime | None) -> datetime:
    return now or datetime.now(dt_tz.utc)


def _remove(remove: Remover, key: str, **ctx) -> bool:
    """True when the object is gone afterwards, whether or not it was there."""
    try:
        remove(key)
    except FileNotFoundError:
        return True
    except Exception as e:
        log.warning("sweep_item_failed", key=key, error=str(e), **ctx)
        return False
    return True


async def _apply(session: AsyncSession, stmt, **ctx) -> int | None:
    """Run one row's write in its own commit. None when it failed and was rolled back."""
    try:
        res = await session.execute(stmt.execution_options(synchronize_session=False))
        await session.commit()
    except Exception as e:
        await session.rollback()
        log.warning("sweep_item_failed", error=str(e), **ctx)
        return None
    return res.rowcount or 0


async def expire_moments(session: AsyncSession, now: datetime | None = None) -> int:
    """Mark active moments whose end has passed as expired. Re-running is a no-op."""
    now = _now(now)
    res = await session.execute(
        update(Moment)
        .where(Moment.status == "active", Moment.ends_at < now)
        .values(status="expired")
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    count = res.rowcount or 0
    log.info("sweep_completed", sweep="expire", expired=count)
    return count


async def sweep_ephemeral_photos(
    session: AsyncSession, now: datetime | None = None, remove: Remover | None = None
) -> SweepReport:
    """
    Purge non-preview photos older than the ephemeral window, or whose
    moment has ended. A row is deleted only after its object is gone.
    """
    now = _now(now)
    remove = remove or storage.remove_object
    cutoff = now - timedelta(seconds=settings.ephemeral_ttl_seconds)
    rows = (await session.execute(
        select(MomentPhoto.id, MomentPhoto.storage_key)
        .join(Moment, Moment.id == MomentPhoto.moment_id)
        .where(
            MomentPhoto.is_preview.is_(False),
            or_(MomentPhoto.uploaded_at < cutoff, Moment.ends_at < now),
        )
        .order_by(MomentPhoto.uploaded_at.asc())
    )).all()

    report = SweepReport()
    for (photo_id, key) in rows:
        report.processed += 1
        if not _remove(remove, key, sweep="ephemeral", photo_id=str(photo_id)):
            report.errors += 1
            continue
        n = await _apply(session, delete(MomentPhoto).where(MomentPhoto.id == photo_id), sweep="ephemeral", photo_id=str(photo_id))
        if n is None:
            report.errors += 1
            continue
        report.deleted += n
    log.info("sweep_completed", sweep="ephemeral", **asdict(report))
    return report


async def sweep_stale_content(
    session: AsyncSession, now: datetime | None = None, remove: Remover | None = None
) -> StaleSweepReport:
    """
    Daily cleanup: every photo of moments that ended more than the retention
    period ago, and profile photos of users who have gone quiet.
    """
    now = _now(now)
    remove = remove or storage.remove_object
    report = StaleSweepReport()

    ended_before = now - timedelta(days=settings.ended_moment_photo_retention_days)
    photos = (await session.execute(
        select(MomentPhoto.id, MomentPhoto.storage_key)
        .join(Moment, Moment.id == MomentPhoto.moment_id)
        .where(Moment.ends_at < ended_before)
    )).all()
    for (photo_id, key) in photos:
        if not _remove(remove, key, sweep="stale", photo_id=str(photo_id)):
            report.errors += 1
            continue
        n = await _apply(session, delete(MomentPhoto).where(MomentPhoto.id == photo_id), sweep="stale", photo_id=str(photo_id))
        if n is None:
            report.errors += 1
            continue
        report.moment_photos_deleted += n

    inactive_since = now - timedelta(days=settings.profile_photo_inactivity_days)
    recent_moment = exists().where(Moment.creator_id == Profile.id, Moment.created_at >= inactive_since)
    profiles = (await session.execute(
        select(Profile.id, Profile.profile_photo_key).where(
            Profile.profile_photo_key.is_not(None),
            Profile.profile_photo_uploaded_at < inactive_since,
            ~recent_moment,
        )
    )).all()
    for (profile_id, key) in profiles:
        if not _remove(remove, key, sweep="stale", profile_id=str(profile_id)):
            report.errors += 1
            continue
        # only clear the key we removed; a fresh upload in between wins
        n = await _apply(
            session,
            update(Profile)
            .where(Profile.id == profile_id, Profile.profile_photo_key == key)
            .values(profile_photo_key=None, profile_photo_uploaded_at=None),
            sweep="stale", profile_id=str(profile_id),
        )
        if n is None:
            report.errors += 1
            continue
        report.profile_photos_cleared += n

    log.info("sweep_completed", sweep="stale", **asdict(report))
    return report


async def _run(sweep):
    try:
        async with SessionLocal() as session:
            return await sweep(session)
    finally:
        # each job runs on a fresh event loop; pooled connections can't be reused across loops
        await engine.dispose()


# RQ entry points (sync); run the async sweeps

def run_expire_moments() -> int:
    return asyncio.run(_run(expire_moments))


def run_ephemeral_sweep() -> dict:
    return asdict(asyncio.run(_run(sweep_ephemeral_photos)))


def run_stale_sweep() -> dict:
    return asdict(asyncio.run(_run(sweep_stale_content)))


SWEEPS = {
    "expire": expire_moments,
    "ephemeral": sweep_ephemeral_photos,
    "stale": sweep_stale_content,
}
