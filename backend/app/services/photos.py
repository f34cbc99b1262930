from __future__ import annotations
from uuid import UUID
import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import Forbidden, NotFound
from app.models.moment import MomentPhoto
from app.services.moments import get_moment
from app.services.participation import is_participant

log = structlog.get_logger()


def photo_key(moment_id: UUID, photo_id: UUID, ext: str) -> str:
    return f"moments/{moment_id}/{photo_id}.{ext}"


async def add_photo(
    session: AsyncSession,
    *,
    moment_id: UUID,
    uploader_id: UUID,
    storage_key: str,
    mime_type: str,
    is_preview: bool = False,
    caption: str | None = None,
    photo_id: UUID | None = None,
) -> MomentPhoto:
    await get_moment(session, moment_id)
    if not await is_participant(session, moment_id, uploader_id):
        raise Forbidden("Must be participant to upload photos")
    p = MomentPhoto(
        moment_id=moment_id, uploader_id=uploader_id, storage_key=storage_key,
        mime_type=mime_type, is_preview=is_preview, caption=caption,
    )
    if photo_id is not None:
        p.id = photo_id
    session.add(p)
    await session.commit()
    await session.refresh(p)
    log.info("photo_added", moment_id=str(moment_id), photo_id=str(p.id), is_preview=is_preview)
    return p


async def list_photos(session: AsyncSession, moment_id: UUID, preview: bool | None = None) -> list[MomentPhoto]:
    await get_moment(session, moment_id)
    q = select(MomentPhoto).where(MomentPhoto.moment_id == moment_id)
    if preview is not None:
        q = q.where(MomentPhoto.is_preview == preview)
    q = q.order_by(MomentPhoto.uploaded_at.asc(), MomentPhoto.id.asc())
    return list((await session.execute(q)).scalars().all())


async def get_photo(session: AsyncSession, moment_id: UUID, photo_id: UUID) -> MomentPhoto:
    p = await session.get(MomentPhoto, photo_id)
    if not p or p.moment_id != moment_id:
        raise NotFound("Photo not found")
    return p
