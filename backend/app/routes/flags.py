from __future__ import annotations
import uuid
from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession
from app.auth_deps import get_current_profile, require_moderator
from app.db import get_session
from app.models.user import Profile
from app.schemas.safety import FlagCreate, FlagReceipt, FlagGroup, AdminActionResult, FlagTargetType, FlagReason, AdminAction
from app.services.flags import create_flag, list_grouped, hide_target, delete_target, dismiss_target, ban_user

router = APIRouter(tags=["flags"])

ADMIN_ACTIONS = {
    "hide": hide_target,
    "delete": delete_target,
    "dismiss": dismiss_target,
    "ban": ban_user,
}

@router.post("/flags", response_model=FlagReceipt, status_code=201)
async def report(
    payload: FlagCreate,
    response: Response,
    session: AsyncSession = Depends(get_session),
    profile: Profile = Depends(get_current_profile),
):
    created = await create_flag(
        session, reporter_id=profile.id, target_type=payload.target_type,
        target_id=payload.target_id, reason=payload.reason,
    )
    if not created:
        response.status_code = 200
        return FlagReceipt(created=False, detail="already flagged")
    return FlagReceipt(created=True, detail="flagged")

@router.get("/admin/flags", response_model=list[FlagGroup])
async def flagged_content(
    target_type: FlagTargetType | None = Query(default=None),
    reason: FlagReason | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    session: AsyncSession = Depends(get_session),
    moderator: Profile = Depends(require_moderator),
):
    return await list_grouped(session, target_type=target_type, reason=reason, limit=limit)

@router.post("/admin/flags/{target_type}/{target_id}/{action}", response_model=AdminActionResult)
async def act_on_flagged(
    target_type: FlagTargetType,
    target_id: uuid.UUID,
    action: AdminAction,
    session: AsyncSession = Depends(get_session),
    moderator: Profile = Depends(require_moderator),
):
    return await ADMIN_ACTIONS[action](session, target_type, target_id)
