from __future__ import annotations
import uuid
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from app.auth_deps import get_current_profile, require_moderator
from app.db import get_session
from app.models.safety import SosAlert
from app.models.user import Profile
from app.schemas.safety import SosAlertCreate, SosAlertPublic, SosAlertWithMoment
from app.services.sos import create_alert, list_active, resolve_alert

router = APIRouter(prefix="/sos-alerts", tags=["sos"])

def _to_public(a: SosAlert) -> SosAlertPublic:
    return SosAlertPublic(
        id=a.id, user_id=a.user_id, moment_id=a.moment_id, lat=a.lat, lng=a.lng,
        created_at=a.created_at, resolved_at=a.resolved_at, resolved_by=a.resolved_by,
    )

@router.post("", response_model=SosAlertPublic, status_code=201)
async def raise_alert(
    payload: SosAlertCreate,
    session: AsyncSession = Depends(get_session),
    profile: Profile = Depends(get_current_profile),
):
    return _to_public(await create_alert(session, profile.id, payload.moment_id, payload.lat, payload.lng))

@router.get("", response_model=list[SosAlertWithMoment])
async def active_alerts(
    session: AsyncSession = Depends(get_session),
    moderator: Profile = Depends(require_moderator),
):
    return await list_active(session)

@router.post("/{alert_id}/resolve", response_model=SosAlertPublic)
async def resolve(
    alert_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    moderator: Profile = Depends(require_moderator),
):
    return _to_public(await resolve_alert(session, alert_id, moderator.id))
