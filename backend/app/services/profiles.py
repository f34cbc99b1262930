from __future__ import annotations
from datetime import datetime, timezone as dt_tz
from uuid import UUID
import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import Conflict, NotFound
from app.models.user import Profile
from app.schemas.profile import ProfileCreate, ProfileUpdate, ProfilePublic
from app.services.storage import remove_quietly

log = structlog.get_logger()


async def get_profile(session: AsyncSession, user_id: UUID) -> Profile:
    p = await session.get(Profile, user_id)
    if not p:
        raise NotFound("Profile not found")
    return p


async def create_profile(session: AsyncSession, user_id: UUID, data: ProfileCreate) -> Profile:
    if await session.get(Profile, user_id) is not None:
        raise Conflict("Profile already exists")
    p = Profile(id=user_id, **data.model_dump())
    session.add(p)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise Conflict("Profile already exists")
    await session.refresh(p)
    log.info("profile_created", user_id=str(user_id), user_type=p.user_type)
    return p


async def update_profile(session: AsyncSession, user_id: UUID, data: ProfileUpdate) -> Profile:
    p = await get_profile(session, user_id)
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    for field, value in changes.items():
        setattr(p, field, value)
    if changes:
        await session.commit()
        await session.refresh(p)
        log.info("profile_updated", user_id=str(user_id), fields=sorted(changes))
    return p


async def set_profile_photo(
    session: AsyncSession, user_id: UUID, key: str, now: datetime | None = None
) -> Profile:
    """Point the profile at a new photo and drop the previous object."""
    p = await get_profile(session, user_id)
    previous = p.profile_photo_key
    p.profile_photo_key = key
    p.profile_photo_uploaded_at = now or datetime.now(dt_tz.utc)
    await session.commit()
    await session.refresh(p)
    if previous and previous != key:
        remove_quietly([previous])
    log.info("profile_photo_set", user_id=str(user_id))
    return p


def to_public(p: Profile, photo_url: str | None = None) -> ProfilePublic:
    return ProfilePublic(
        id=p.id, display_name=p.display_name, home_country=p.home_country,
        languages=list(p.languages or []), user_type=p.user_type,
        profile_photo_url=photo_url, profile_photo_uploaded_at=p.profile_photo_uploaded_at,
        created_at=p.created_at,
    )
