from __future__ import annotations
from datetime import datetime, timezone as dt_tz
from uuid import UUID
import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import NotFound, Forbidden, ValidationError
from app.models.moment import Moment
from app.models.safety import SosAlert
from app.schemas.safety import SosAlertWithMoment
from app.services.geo import validate_coordinates
from app.services.moments import get_moment
from app.services.participation import is_participant

log = structlog.get_logger()


async def create_alert(
    session: AsyncSession, user_id: UUID, moment_id: UUID, lat: float | None = None, lng: float | None = None
) -> SosAlert:
    await get_moment(session, moment_id)
    if not await is_participant(session, moment_id, user_id):
        raise Forbidden("Only participants can raise an SOS for this moment")
    if (lat is None) != (lng is None):
        raise ValidationError("lat and lng must be given together")
    if lat is not None and not validate_coordinates(lat, lng):
        raise ValidationError("Invalid coordinates")

    alert = SosAlert(user_id=user_id, moment_id=moment_id, lat=lat, lng=lng)
    session.add(alert)
    await session.commit()
    await session.refresh(alert)
    log.warning("sos_alert_created", alert_id=str(alert.id), moment_id=str(moment_id), user_id=str(user_id))
    return alert


async def list_active(session: AsyncSession, limit: int = 100) -> list[SosAlertWithMoment]:
    q = (
        select(SosAlert, Moment.title)
        .outerjoin(Moment, Moment.id == SosAlert.moment_id)
        .where(SosAlert.resolved_at.is_(None))
        .order_by(SosAlert.created_at.desc())
        .limit(limit)
    )
    rows = (await session.execute(q)).all()
    return [
        SosAlertWithMoment(
            id=a.id, user_id=a.user_id, moment_id=a.moment_id, moment_title=title,
            lat=a.lat, lng=a.lng, created_at=a.created_at,
        )
        for (a, title) in rows
    ]


async def resolve_alert(
    session: AsyncSession, alert_id: UUID, resolver_id: UUID, now: datetime | None = None
) -> SosAlert:
    """Resolving twice keeps the first resolver and timestamp."""
    alert = await session.get(SosAlert, alert_id)
    if not alert:
        raise NotFound("SOS alert not found")
    if alert.resolved_at is not None:
        return alert
    alert.resolved_at = now or datetime.now(dt_tz.utc)
    alert.resolved_by = resolver_id
    await session.commit()
    log.info("sos_alert_resolved", alert_id=str(alert_id), resolver_id=str(resolver_id))
    return alert
