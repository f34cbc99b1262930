from __future__ import annotations
from datetime import datetime, timezone as dt_tz
from typing import Iterable
from uuid import UUID
import structlog
from sqlalchemy import select, func, delete, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import ValidationError, NotFound, Forbidden
from app.models.moment import Moment, MomentParticipant, MomentMessage, MomentPhoto, MOMENT_STATUSES
from app.models.safety import Flag
from app.schemas.moment import MomentPublic, MomentListing
from app.services.geo import bounding_box, haversine_m, validate_coordinates
from app.services.storage import remove_quietly

log = structlog.get_logger()

MAX_LISTING_LIMIT = 100


def as_utc(dt: datetime) -> datetime:
    """Naive datetimes from clients are taken as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=dt_tz.utc)
    return dt.astimezone(dt_tz.utc)


def _escape_like(q: str) -> str:
    return q.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


async def participant_count(session: AsyncSession, moment_id: UUID) -> int:
    n = await session.scalar(
        select(func.count()).select_from(MomentParticipant).where(MomentParticipant.moment_id == moment_id)
    )
    return int(n or 0)


async def participant_counts(session: AsyncSession, moment_ids: Iterable[UUID]) -> dict[UUID, int]:
    ids = list(moment_ids)
    if not ids:
        return {}
    rows = (await session.execute(
        select(MomentParticipant.moment_id, func.count())
        .where(MomentParticipant.moment_id.in_(ids))
        .group_by(MomentParticipant.moment_id)
    )).all()
    counts = {mid: int(n) for (mid, n) in rows}
    return {mid: counts.get(mid, 0) for mid in ids}


async def hydrate_public(session: AsyncSession, m: Moment) -> MomentPublic:
    return MomentPublic(
        id=m.id, creator_id=m.creator_id, title=m.title, lat=m.lat, lng=m.lng,
        city_code=m.city_code, starts_at=m.starts_at, ends_at=m.ends_at,
        max_participants=m.max_participants, status=m.status, created_at=m.created_at,
        participant_count=await participant_count(session, m.id),
    )


async def create_moment(
    session: AsyncSession,
    *,
    creator_id: UUID,
    title: str,
    lat: float,
    lng: float,
    starts_at: datetime,
    ends_at: datetime,
    max_participants: int,
    city_code: str | None = None,
) -> Moment:
    """Insert a moment and its creator as participant #1 in one transaction."""
    title = (title or "").strip()
    if not title:
        raise ValidationError("title must not be empty")
    if not validate_coordinates(lat, lng):
        raise ValidationError("Invalid coordinates")
    starts_at, ends_at = as_utc(starts_at), as_utc(ends_at)
    if ends_at <= starts_at:
        raise ValidationError("ends_at must be after starts_at")
    if max_participants < 1:
        raise ValidationError("max_participants must be at least 1")

    m = Moment(
        creator_id=creator_id,
        title=title,
        lat=lat,
        lng=lng,
        city_code=(city_code or "UNKNOWN").upper(),
        starts_at=starts_at,
        ends_at=ends_at,
        max_participants=max_participants,
        status="active",
    )
    session.add(m)
    await session.flush()  # get m.id without commit
    session.add(MomentParticipant(moment_id=m.id, user_id=creator_id))
    await session.commit()
    await session.refresh(m)
    log.info("moment_created", moment_id=str(m.id), creator_id=str(creator_id), max_participants=max_participants)
    return m


async def get_moment(session: AsyncSession, moment_id: UUID) -> Moment:
    m = await session.get(Moment, moment_id)
    if not m:
        raise NotFound("Moment not found")
    return m


async def _discover(
    session: AsyncSession,
    lat: float,
    lng: float,
    radius_m: float,
    limit: int,
    query: str | None = None,
    now: datetime | None = None,
) -> list[MomentListing]:
    if not validate_coordinates(lat, lng):
        raise ValidationError("Invalid coordinates")
    if radius_m <= 0:
        raise ValidationError("radius must be positive")
    if limit < 1:
        raise ValidationError("limit must be at least 1")
    limit = min(limit, MAX_LISTING_LIMIT)
    now = now or datetime.now(dt_tz.utc)

    box = bounding_box(lat, lng, radius_m)
    q = select(Moment).where(
        Moment.status == "active",
        Moment.ends_at > now,
        Moment.lat >= box.min_lat,
        Moment.lat <= box.max_lat,
        Moment.lng >= box.min_lng,
        Moment.lng <= box.max_lng,
    )
    if query:
        q = q.where(Moment.title.ilike(f"%{_escape_like(query)}%", escape="\\"))
    candidates = (await session.execute(q)).scalars().all()

    # the box over-approximates the circle; exact distance decides membership and order
    ranked: list[tuple[float, Moment]] = []
    for m in candidates:
        d = haversine_m(lat, lng, m.lat, m.lng)
        if d <= radius_m:
            ranked.append((d, m))
    ranked.sort(key=lambda pair: pair[0])
    ranked = ranked[:limit]

    counts = await participant_counts(session, [m.id for (_, m) in ranked])
    return [
        MomentListing(
            id=m.id, title=m.title, lat=m.lat, lng=m.lng,
            starts_at=m.starts_at, ends_at=m.ends_at,
            max_participants=m.max_participants, status=m.status,
            participant_count=counts.get(m.id, 0),
            distance_m=round(d, 1),
        )
        for (d, m) in ranked
    ]


async def nearby_moments(
    session: AsyncSession, lat: float, lng: float, radius_m: float, limit: int, now: datetime | None = None
) -> list[MomentListing]:
    return await _discover(session, lat, lng, radius_m, limit, now=now)


async def search_moments(
    session: AsyncSession, query: str, lat: float, lng: float, radius_m: float, limit: int, now: datetime | None = None
) -> list[MomentListing]:
    return await _discover(session, lat, lng, radius_m, limit, query=(query or "").strip(), now=now)


async def set_status(session: AsyncSession, moment_id: UUID, status: str) -> Moment:
    if status not in MOMENT_STATUSES:
        raise ValidationError(f"Unknown moment status: {status}")
    m = await get_moment(session, moment_id)
    if m.status == status:
        return m
    prev = m.status
    m.status = status
    await session.commit()
    log.info("moment_status_changed", moment_id=str(moment_id), old=prev, new=status)
    return m


async def purge_moments(session: AsyncSession, moment_ids: list[UUID]) -> list[str]:
    """
    Delete moments and every flag that points at them or at their messages.
    FK cascades take participants, messages and photos. Does not commit.
    Returns the storage keys of the photos that went with them.
    """
    if not moment_ids:
        return []
    keys = list((await session.execute(
        select(MomentPhoto.storage_key).where(MomentPhoto.moment_id.in_(moment_ids))
    )).scalars().all())
    message_ids = select(MomentMessage.id).where(MomentMessage.moment_id.in_(moment_ids))
    await session.execute(
        delete(Flag).where(or_(
            and_(Flag.target_type == "moment", Flag.target_id.in_(moment_ids)),
            and_(Flag.target_type == "message", Flag.target_id.in_(message_ids)),
        ))
    )
    await session.execute(delete(Moment).where(Moment.id.in_(moment_ids)))
    return keys


async def delete_moment(session: AsyncSession, moment_id: UUID, actor_id: UUID | None = None) -> None:
    """Delete a moment; with `actor_id` set only its creator may do so."""
    m = await get_moment(session, moment_id)
    if actor_id is not None and m.creator_id != actor_id:
        raise Forbidden("Only the creator can delete this moment")
    keys = await purge_moments(session, [m.id])
    await session.commit()
    log.info("moment_deleted", moment_id=str(moment_id), photos=len(keys))
    remove_quietly(keys)
