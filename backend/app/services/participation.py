from __future__ import annotations
from datetime import datetime, timezone as dt_tz
from uuid import UUID
import structlog
from sqlalchemy import select, exists, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import advisory_xact_lock
from app.errors import NotFound, Conflict, Full, NotJoinable
from app.models.moment import Moment, MomentParticipant
from app.models.user import Profile
from app.schemas.moment import ParticipantWithProfile, MomentContext
from app.services.moments import participant_count, get_moment

log = structlog.get_logger()


async def is_participant(session: AsyncSession, moment_id: UUID, user_id: UUID) -> bool:
    found = await session.scalar(
        select(exists().where(MomentParticipant.moment_id == moment_id, MomentParticipant.user_id == user_id))
    )
    return bool(found)


async def join_moment(
    session: AsyncSession, moment_id: UUID, user_id: UUID, now: datetime | None = None
) -> MomentParticipant:
    """
    Admit `user_id` into a moment.

    The count check and the insert run under a per-moment advisory lock held
    until commit, so concurrent joins are serialized and cannot overshoot
    `max_participants`. The unique (moment_id, user_id) constraint backs up
    the duplicate check.
    """
    now = now or datetime.now(dt_tz.utc)
    try:
        await advisory_xact_lock(session, f"moment:{moment_id}")

        m = await session.get(Moment, moment_id, populate_existing=True)
        if not m:
            raise NotFound("Moment not found")
        if await is_participant(session, moment_id, user_id):
            raise Conflict("Already joined")
        if m.status != "active" or m.ends_at <= now:
            raise NotJoinable("Cannot join this moment")
        count = await participant_count(session, moment_id)
        if count >= m.max_participants:
            log.info("moment_join_rejected", moment_id=str(moment_id), user_id=str(user_id), reason="full", count=count)
            raise Full("Moment is full")

        p = MomentParticipant(moment_id=moment_id, user_id=user_id)
        session.add(p)
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise Conflict("Already joined")
    except Exception:
        # releases the advisory lock
        await session.rollback()
        raise
    await session.commit()
    await session.refresh(p)
    log.info("moment_joined", moment_id=str(moment_id), user_id=str(user_id), count=count + 1)
    return p


async def leave_moment(session: AsyncSession, moment_id: UUID, user_id: UUID) -> bool:
    """Idempotent: returns False when there was nothing to remove."""
    res = await session.execute(
        delete(MomentParticipant).where(
            MomentParticipant.moment_id == moment_id,
            MomentParticipant.user_id == user_id,
        )
    )
    await session.commit()
    removed = (res.rowcount or 0) > 0
    if removed:
        log.info("moment_left", moment_id=str(moment_id), user_id=str(user_id))
    return removed


async def list_participants(session: AsyncSession, moment_id: UUID) -> list[ParticipantWithProfile]:
    await get_moment(session, moment_id)
    q = (
        select(
            MomentParticipant.id, MomentParticipant.user_id, MomentParticipant.joined_at,
            Profile.display_name, Profile.user_type, Profile.home_country, Profile.profile_photo_key,
        )
        .outerjoin(Profile, Profile.id == MomentParticipant.user_id)
        .where(MomentParticipant.moment_id == moment_id)
        .order_by(MomentParticipant.joined_at.asc(), MomentParticipant.id.asc())
    )
    rows = (await session.execute(q)).all()
    return [
        ParticipantWithProfile(
            participant_id=pid, user_id=uid, joined_at=joined_at,
            display_name=name, user_type=utype, home_country=country, profile_photo_key=photo,
        )
        for (pid, uid, joined_at, name, utype, country, photo) in rows
    ]


def compute_badges(members: list[tuple[str | None, list[str] | None, str | None]]) -> list[str]:
    """
    Derive context badges from (home_country, languages, user_type) tuples.
    Pure so it can be recomputed for every request.
    """
    if not members:
        return []
    badges: list[str] = []
    countries = {c.upper() for (c, _, _) in members if c}
    if len(countries) >= 2:
        badges.append("International")

    lang_sets = [{lang.lower() for lang in (langs or [])} for (_, langs, _) in members]
    shared = set.intersection(*lang_sets) if lang_sets else set()
    if "en" in shared:
        badges.append("English-friendly")
    if len(members) >= 2:
        for lang in sorted(shared - {"en"}):
            badges.append(f"Shared language: {lang.upper()}")

    types = {t.lower() for (_, _, t) in members if t}
    if len(types) >= 2:
        badges.append("Locals & visitors")
    return badges


async def moment_context(session: AsyncSession, moment_id: UUID) -> MomentContext:
    m = await get_moment(session, moment_id)
    rows = (await session.execute(
        select(Profile.home_country, Profile.languages, Profile.user_type)
        .join(MomentParticipant, MomentParticipant.user_id == Profile.id)
        .where(MomentParticipant.moment_id == moment_id)
    )).all()
    members = [(c, list(langs or []), t) for (c, langs, t) in rows]
    count = len(members)
    return MomentContext(
        participant_count=count,
        max_participants=m.max_participants,
        is_full=count >= m.max_participants,
        badges=compute_badges(members),
    )
