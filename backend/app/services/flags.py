from __future__ import annotations
from uuid import UUID
import structlog
from sqlalchemy import select, func, delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import ValidationError, NotFound, Gone
from app.models.moment import Moment, MomentMessage, MomentPhoto
from app.models.safety import Flag, FLAG_TARGET_TYPES, FLAG_REASONS
from app.models.user import Profile
from app.schemas.safety import FlagGroup, AdminActionResult
from app.services.moderation import insert_flag_once
from app.services.moments import purge_moments, set_status
from app.services.storage import remove_quietly

log = structlog.get_logger()

CONTENT_DELETED = "[Content deleted]"
PREVIEW_CHARS = 100


def _check_target_type(target_type: str) -> None:
    if target_type not in FLAG_TARGET_TYPES:
        raise ValidationError(f"Unknown target type: {target_type}")


async def _load_target(session: AsyncSession, target_type: str, target_id: UUID):
    if target_type == "moment":
        return await session.get(Moment, target_id)
    return await session.get(MomentMessage, target_id)


async def _drop_flags(session: AsyncSession, target_type: str, target_id: UUID) -> int:
    res = await session.execute(
        delete(Flag).where(Flag.target_type == target_type, Flag.target_id == target_id)
    )
    return res.rowcount or 0


async def create_flag(
    session: AsyncSession, *, reporter_id: UUID, target_type: str, target_id: UUID, reason: str
) -> bool:
    """Record a report. Returns False when this reporter already flagged the target."""
    _check_target_type(target_type)
    if reason not in FLAG_REASONS:
        raise ValidationError(f"Unknown flag reason: {reason}")
    if await _load_target(session, target_type, target_id) is None:
        raise NotFound(f"{target_type.capitalize()} not found")
    created = await insert_flag_once(
        session, reporter_id=reporter_id, target_type=target_type, target_id=target_id, reason=reason
    )
    await session.commit()
    if created:
        log.info("flag_created", target_type=target_type, target_id=str(target_id), reason=reason)
    return created


def _describe(target_type: str, target) -> tuple[dict | None, str]:
    if target is None:
        return None, CONTENT_DELETED
    if target_type == "moment":
        content = {"title": target.title, "status": target.status, "creator_id": str(target.creator_id)}
        return content, target.title
    content = {"content": target.content, "user_id": str(target.user_id)}
    text = target.content
    if len(text) > PREVIEW_CHARS:
        text = text[:PREVIEW_CHARS] + "..."
    return content, text


async def list_grouped(
    session: AsyncSession, target_type: str | None = None, reason: str | None = None, limit: int = 50
) -> list[FlagGroup]:
    """
    Flags grouped per target, most recently flagged first.
    Content is looked up per group; a target that is gone still lists.
    """
    if target_type is not None:
        _check_target_type(target_type)
    q = (
        select(
            Flag.target_type,
            Flag.target_id,
            func.count(Flag.id),
            func.array_agg(Flag.reason.distinct()),
            func.min(Flag.created_at),
            func.max(Flag.created_at),
        )
        .group_by(Flag.target_type, Flag.target_id)
        .order_by(func.max(Flag.created_at).desc())
        .limit(max(1, min(limit, 200)))
    )
    if target_type is not None:
        q = q.where(Flag.target_type == target_type)
    if reason is not None:
        q = q.where(Flag.reason == reason)
    rows = (await session.execute(q)).all()

    groups: list[FlagGroup] = []
    for (ttype, tid, n, reasons, first_at, last_at) in rows:
        target = await _load_target(session, ttype, tid)
        content, preview = _describe(ttype, target)
        groups.append(FlagGroup(
            target_type=ttype, target_id=tid, flag_count=int(n),
            reasons=sorted(reasons or []),
            first_flagged_at=first_at, last_flagged_at=last_at,
            content=content, preview=preview,
        ))
    return groups


async def hide_target(session: AsyncSession, target_type: str, target_id: UUID) -> AdminActionResult:
    _check_target_type(target_type)
    if target_type == "message":
        raise ValidationError("Messages cannot be hidden, only deleted")
    try:
        await set_status(session, target_id, "hidden")
    except NotFound:
        raise Gone("Moment no longer exists")
    log.info("admin_hide", target_type=target_type, target_id=str(target_id))
    return AdminActionResult(action="hide", target_type=target_type, target_id=target_id)


async def delete_target(session: AsyncSession, target_type: str, target_id: UUID) -> AdminActionResult:
    _check_target_type(target_type)
    keys: list[str] = []
    removed = False
    if target_type == "moment":
        if await session.get(Moment, target_id) is not None:
            keys = await purge_moments(session, [target_id])
            removed = True
    else:
        res = await session.execute(delete(MomentMessage).where(MomentMessage.id == target_id))
        removed = (res.rowcount or 0) > 0
    flags_removed = await _drop_flags(session, target_type, target_id)
    await session.commit()
    remove_quietly(keys)
    log.info("admin_delete", target_type=target_type, target_id=str(target_id), removed=removed, flags=flags_removed)
    return AdminActionResult(
        action="delete", target_type=target_type, target_id=target_id,
        flags_removed=flags_removed, content_removed=removed,
    )


async def dismiss_target(session: AsyncSession, target_type: str, target_id: UUID) -> AdminActionResult:
    _check_target_type(target_type)
    flags_removed = await _drop_flags(session, target_type, target_id)
    await session.commit()
    log.info("admin_dismiss", target_type=target_type, target_id=str(target_id), flags=flags_removed)
    return AdminActionResult(action="dismiss", target_type=target_type, target_id=target_id, flags_removed=flags_removed)


async def ban_user(session: AsyncSession, target_type: str, target_id: UUID) -> AdminActionResult:
    """
    Remove the author of the flagged content along with everything they posted.
    The profile delete cascades to participations, uploads, reports and alerts.
    """
    _check_target_type(target_type)
    target = await _load_target(session, target_type, target_id)
    if target is None:
        raise Gone("Content no longer exists; cannot resolve its author")
    user_id = target.creator_id if target_type == "moment" else target.user_id
    flags_removed = await _drop_flags(session, target_type, target_id)

    moment_ids = list((await session.execute(
        select(Moment.id).where(Moment.creator_id == user_id)
    )).scalars().all())
    keys = await purge_moments(session, moment_ids)

    message_ids = select(MomentMessage.id).where(MomentMessage.user_id == user_id)
    await session.execute(
        delete(Flag).where(Flag.target_type == "message", Flag.target_id.in_(message_ids))
    )
    res = await session.execute(delete(MomentMessage).where(MomentMessage.user_id == user_id))
    messages_deleted = res.rowcount or 0

    # uploads into other people's moments go with the profile cascade
    keys += list((await session.execute(
        select(MomentPhoto.storage_key).where(MomentPhoto.uploader_id == user_id)
    )).scalars().all())
    profile = await session.get(Profile, user_id)
    if profile is not None:
        if profile.profile_photo_key:
            keys.append(profile.profile_photo_key)
        await session.delete(profile)
    await session.commit()
    remove_quietly(keys)

    log.warning(
        "admin_ban", user_id=str(user_id), moments=len(moment_ids), messages=messages_deleted,
        target_type=target_type, target_id=str(target_id),
    )
    return AdminActionResult(
        action="ban", target_type=target_type, target_id=target_id,
        flags_removed=flags_removed, content_removed=True,
        moments_deleted=len(moment_ids), messages_deleted=messages_deleted,
        banned_user_id=user_id,
    )
