from __future__ import annotations
import uuid
from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession
import structlog
from app.auth_deps import get_current_profile
from app.config import settings
from app.db import get_session
from app.models.user import Profile
from app.schemas.moment import (
    MomentCreate, MomentPublic, MomentListing, ParticipantPublic, ParticipantWithProfile,
    ParticipationStatus, MomentContext, LeaveResult,
)
from app.services.moderation import moderate_moment_title
from app.services.moments import (
    create_moment, get_moment, hydrate_public, nearby_moments, search_moments, delete_moment,
)
from app.services.participation import (
    join_moment, leave_moment, list_participants, is_participant, moment_context,
)

router = APIRouter(prefix="/moments", tags=["moments"])
log = structlog.get_logger()

@router.post("", response_model=MomentPublic, status_code=201)
async def create(
    payload: MomentCreate,
    session: AsyncSession = Depends(get_session),
    profile: Profile = Depends(get_current_profile),
):
    m = await create_moment(
        session,
        creator_id=profile.id,
        title=payload.title,
        lat=payload.lat,
        lng=payload.lng,
        starts_at=payload.starts_at,
        ends_at=payload.ends_at,
        max_participants=payload.max_participants,
        city_code=payload.city_code,
    )
    if settings.moderation_enabled:
        # the moment is already committed; a moderation failure must not undo it
        try:
            await moderate_moment_title(session, m.id, m.title)
        except Exception:
            await session.rollback()
            log.exception("moderation_failed", target_type="moment", target_id=str(m.id))
    return await hydrate_public(session, await get_moment(session, m.id))

@router.get("/nearby", response_model=list[MomentListing])
async def nearby(
    lat: float = Query(...),
    lng: float = Query(...),
    radius_m: float = Query(default=settings.nearby_default_radius_m, gt=0),
    limit: int = Query(default=settings.nearby_default_limit, ge=1),
    session: AsyncSession = Depends(get_session),
    profile: Profile = Depends(get_current_profile),
):
    return await nearby_moments(session, lat, lng, radius_m, limit)

@router.get("/search", response_model=list[MomentListing])
async def search(
    q: str = Query(..., min_length=1),
    lat: float = Query(...),
    lng: float = Query(...),
    radius_m: float = Query(default=settings.search_default_radius_m, gt=0),
    limit: int = Query(default=settings.search_default_limit, ge=1),
    session: AsyncSession = Depends(get_session),
    profile: Profile = Depends(get_current_profile),
):
    return await search_moments(session, q, lat, lng, radius_m, limit)

@router.get("/{moment_id}", response_model=MomentPublic)
async def get_one(
    moment_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    profile: Profile = Depends(get_current_profile),
):
    return await hydrate_public(session, await get_moment(session, moment_id))

@router.delete("/{moment_id}", status_code=204)
async def delete_one(
    moment_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    profile: Profile = Depends(get_current_profile),
):
    await delete_moment(session, moment_id, actor_id=profile.id)
    return Response(status_code=204)

@router.get("/{moment_id}/context", response_model=MomentContext)
async def context(
    moment_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    profile: Profile = Depends(get_current_profile),
):
    return await moment_context(session, moment_id)

@router.post("/{moment_id}/join", response_model=ParticipantPublic, status_code=201)
async def join(
    moment_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    profile: Profile = Depends(get_current_profile),
):
    p = await join_moment(session, moment_id, profile.id)
    return ParticipantPublic(id=p.id, moment_id=p.moment_id, user_id=p.user_id, joined_at=p.joined_at)

@router.post("/{moment_id}/leave", response_model=LeaveResult)
async def leave(
    moment_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    profile: Profile = Depends(get_current_profile),
):
    return LeaveResult(removed=await leave_moment(session, moment_id, profile.id))

@router.get("/{moment_id}/participants", response_model=list[ParticipantWithProfile])
async def participants(
    moment_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    profile: Profile = Depends(get_current_profile),
):
    return await list_participants(session, moment_id)

@router.get("/{moment_id}/participation", response_model=ParticipationStatus)
async def participation(
    moment_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    profile: Profile = Depends(get_current_profile),
):
    return ParticipationStatus(is_participant=await is_participant(session, moment_id, profile.id))
