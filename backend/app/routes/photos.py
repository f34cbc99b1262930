from __future__ import annotations
import uuid
from fastapi import APIRouter, Depends, HTTPException, Query, UploadFile, File, Form
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession
from app.auth_deps import get_current_profile
from app.db import get_session
from app.errors import Forbidden
from app.models.moment import MomentPhoto
from app.models.user import Profile
from app.schemas.photo import PhotoPublic
from app.services.media import validate_upload, ext_for_mime, media_url
from app.services.moments import get_moment
from app.services.participation import is_participant
from app.services.photos import add_photo, list_photos, get_photo, photo_key
from app.services.storage import put_bytes, get_bytes, remove_quietly

router = APIRouter(prefix="/moments", tags=["photos"])

def _to_public(p: MomentPhoto) -> PhotoPublic:
    return PhotoPublic(
        id=p.id, moment_id=p.moment_id, uploader_id=p.uploader_id, caption=p.caption,
        is_preview=p.is_preview, mime_type=p.mime_type, uploaded_at=p.uploaded_at,
        storage_key=p.storage_key,
        media_url=media_url(p.storage_key, f"/moments/{p.moment_id}/photos/{p.id}/image"),
    )

@router.get("/{moment_id}/photos", response_model=list[PhotoPublic])
async def get_photos(
    moment_id: uuid.UUID,
    preview: bool | None = Query(default=None),
    session: AsyncSession = Depends(get_session),
    profile: Profile = Depends(get_current_profile),
):
    await get_moment(session, moment_id)
    # outsiders only see the previews
    if not await is_participant(session, moment_id, profile.id):
        if preview is False:
            return []
        preview = True
    return [_to_public(p) for p in await list_photos(session, moment_id, preview)]

@router.post("/{moment_id}/photos", response_model=PhotoPublic, status_code=201)
async def upload_photo(
    moment_id: uuid.UUID,
    file: UploadFile = File(..., description="JPEG, PNG or WebP, up to 5MB"),
    is_preview: bool = Form(default=False),
    caption: str | None = Form(default=None, max_length=280),
    session: AsyncSession = Depends(get_session),
    profile: Profile = Depends(get_current_profile),
):
    await get_moment(session, moment_id)
    if not await is_participant(session, moment_id, profile.id):
        raise Forbidden("Must be participant to upload photos")
    data = await file.read()
    mime = validate_upload(data)

    photo_id = uuid.uuid4()
    key = photo_key(moment_id, photo_id, ext_for_mime(mime))
    put_bytes(key, data, mime)
    try:
        p = await add_photo(
            session, moment_id=moment_id, uploader_id=profile.id, storage_key=key,
            mime_type=mime, is_preview=is_preview, caption=caption, photo_id=photo_id,
        )
    except Exception:
        remove_quietly([key])
        raise
    return _to_public(p)

@router.get("/{moment_id}/photos/{photo_id}/image")
async def get_photo_image(
    moment_id: uuid.UUID,
    photo_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    profile: Profile = Depends(get_current_profile),
):
    """Preview photos are public to signed-in users; the rest need participation."""
    p = await get_photo(session, moment_id, photo_id)
    if not p.is_preview and not await is_participant(session, moment_id, profile.id):
        raise Forbidden("Must be participant to view photos")
    try:
        data, content_type = get_bytes(p.storage_key)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="Image file not found in storage")
    return Response(content=data, media_type=content_type)
