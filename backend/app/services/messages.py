from __future__ import annotations
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone as dt_tz
from uuid import UUID
import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.errors import Forbidden, ValidationError
from app.models.moment import MomentMessage
from app.models.user import Profile
from app.schemas.message import MessageWithAuthor
from app.services.participation import is_participant

log = structlog.get_logger()

# Content prefix marking a chat message that carries a photo storage key
IMAGE_SENTINEL = "[IMAGE]"
EXPIRED_PLACEHOLDER = "[Image expired]"
MAX_MESSAGES = 500


@dataclass(frozen=True)
class ImageDisplay:
    key: str
    expires_at: datetime
    time_left_minutes: int
    expired: bool


def image_key(content: str) -> str | None:
    if content.startswith(IMAGE_SENTINEL):
        key = content[len(IMAGE_SENTINEL):].strip()
        return key or None
    return None


def image_display(content: str, created_at: datetime, now: datetime, ttl_seconds: int | None = None) -> ImageDisplay | None:
    """
    Display-time state of an image message, a pure function of `now - created_at`.

    This does not say whether the stored object still exists; the photo
    sweep purges storage on its own schedule.
    """
    key = image_key(content)
    if key is None:
        return None
    ttl = settings.ephemeral_ttl_seconds if ttl_seconds is None else ttl_seconds
    expires_at = created_at + timedelta(seconds=ttl)
    remaining = (expires_at - now).total_seconds()
    return ImageDisplay(
        key=key,
        expires_at=expires_at,
        time_left_minutes=max(0, math.floor(remaining / 60)),
        expired=remaining <= 0,
    )


def to_message_with_author(
    msg: MomentMessage, display_name: str | None, photo_key: str | None, now: datetime
) -> MessageWithAuthor:
    img = image_display(msg.content, msg.created_at, now)
    if img is None:
        return MessageWithAuthor(
            id=msg.id, moment_id=msg.moment_id, user_id=msg.user_id, content=msg.content,
            created_at=msg.created_at, display_name=display_name, profile_photo_key=photo_key,
            display_content=msg.content,
        )
    return MessageWithAuthor(
        id=msg.id, moment_id=msg.moment_id, user_id=msg.user_id, content=msg.content,
        created_at=msg.created_at, display_name=display_name, profile_photo_key=photo_key,
        is_image=True,
        image_key=img.key,
        image_expires_at=img.expires_at,
        time_left_minutes=img.time_left_minutes,
        image_expired=img.expired,
        display_content=EXPIRED_PLACEHOLDER if img.expired else msg.content,
    )


async def list_messages(
    session: AsyncSession, moment_id: UUID, viewer_id: UUID, limit: int = 100, now: datetime | None = None
) -> list[MessageWithAuthor]:
    if not await is_participant(session, moment_id, viewer_id):
        raise Forbidden("Must be participant to view messages")
    limit = max(1, min(limit, MAX_MESSAGES))
    now = now or datetime.now(dt_tz.utc)
    q = (
        select(MomentMessage, Profile.display_name, Profile.profile_photo_key)
        .outerjoin(Profile, Profile.id == MomentMessage.user_id)
        .where(MomentMessage.moment_id == moment_id)
        .order_by(MomentMessage.created_at.asc(), MomentMessage.id.asc())
        .limit(limit)
    )
    rows = (await session.execute(q)).all()
    return [to_message_with_author(msg, name, photo, now) for (msg, name, photo) in rows]


async def send_message(
    session: AsyncSession, moment_id: UUID, user_id: UUID, content: str, now: datetime | None = None
) -> MessageWithAuthor:
    if not await is_participant(session, moment_id, user_id):
        raise Forbidden("Must be participant to send messages")
    if content is None or not content.strip():
        raise ValidationError("Message content must not be empty")
    if content.startswith(IMAGE_SENTINEL) and image_key(content) is None:
        raise ValidationError("Image message is missing its photo reference")

    msg = MomentMessage(moment_id=moment_id, user_id=user_id, content=content)
    session.add(msg)
    await session.commit()
    await session.refresh(msg)
    log.info("message_sent", moment_id=str(moment_id), message_id=str(msg.id), is_image=content.startswith(IMAGE_SENTINEL))

    author = await session.get(Profile, user_id)
    return to_message_with_author(
        msg,
        author.display_name if author else None,
        author.profile_photo_key if author else None,
        now or datetime.now(dt_tz.utc),
    )
