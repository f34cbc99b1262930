from __future__ import annotations
import uuid
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
import structlog
from app.auth_deps import get_current_profile
from app.config import settings
from app.db import get_session
from app.models.user import Profile
from app.schemas.message import MessageCreate, MessageWithAuthor, MessageSent, ModerationOutcome
from app.services.messages import list_messages, send_message, MAX_MESSAGES
from app.services.moderation import moderate_message

router = APIRouter(prefix="/moments", tags=["messages"])
log = structlog.get_logger()

@router.get("/{moment_id}/messages", response_model=list[MessageWithAuthor])
async def get_messages(
    moment_id: uuid.UUID,
    limit: int = Query(default=100, ge=1, le=MAX_MESSAGES),
    session: AsyncSession = Depends(get_session),
    profile: Profile = Depends(get_current_profile),
):
    return await list_messages(session, moment_id, profile.id, limit=limit)

@router.post("/{moment_id}/messages", response_model=MessageSent, status_code=201)
async def post_message(
    moment_id: uuid.UUID,
    payload: MessageCreate,
    session: AsyncSession = Depends(get_session),
    profile: Profile = Depends(get_current_profile),
):
    msg = await send_message(session, moment_id, profile.id, payload.content)
    outcome = None
    # image messages carry only a storage key; there is no text to classify
    if settings.moderation_enabled and not msg.is_image:
        try:
            result = await moderate_message(session, msg.id, msg.content, profile.id)
            if result.flagged:
                outcome = ModerationOutcome(flagged=True, reason=result.reason, matched=result.matched, action="deleted")
            else:
                outcome = ModerationOutcome(flagged=False)
        except Exception:
            await session.rollback()
            log.exception("moderation_failed", target_type="message", target_id=str(msg.id))
    return MessageSent(message=msg, moderation=outcome)
