from __future__ import annotations
import uuid
from fastapi import APIRouter, Depends, HTTPException, UploadFile, File
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession
from app.auth_deps import get_current_user
from app.db import get_session
from app.models.user import User, Profile
from app.schemas.profile import ProfileCreate, ProfileUpdate, ProfilePublic
from app.services.media import validate_upload, ext_for_mime, media_url
from app.services.profiles import create_profile, get_profile, update_profile, set_profile_photo, to_public
from app.services.storage import put_bytes, get_bytes

router = APIRouter(prefix="/profiles", tags=["profiles"])

def _public(p: Profile) -> ProfilePublic:
    return to_public(p, media_url(p.profile_photo_key, f"/profiles/{p.id}/photo"))

@router.post("", response_model=ProfilePublic, status_code=201)
async def create_my_profile(
    payload: ProfileCreate,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    return _public(await create_profile(session, user.id, payload))

@router.get("/me", response_model=ProfilePublic)
async def get_my_profile(session: AsyncSession = Depends(get_session), user: User = Depends(get_current_user)):
    return _public(await get_profile(session, user.id))

@router.patch("/me", response_model=ProfilePublic)
async def update_my_profile(
    payload: ProfileUpdate,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    return _public(await update_profile(session, user.id, payload))

@router.post("/me/photo", response_model=ProfilePublic)
async def upload_my_photo(
    file: UploadFile = File(..., description="JPEG, PNG or WebP, up to 5MB"),
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    await get_profile(session, user.id)
    data = await file.read()
    mime = validate_upload(data)
    key = f"profiles/{user.id}/{uuid.uuid4().hex}.{ext_for_mime(mime)}"
    put_bytes(key, data, mime)
    return _public(await set_profile_photo(session, user.id, key))

@router.get("/{profile_id}", response_model=ProfilePublic)
async def get_profile_by_id(
    profile_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    return _public(await get_profile(session, profile_id))

@router.get("/{profile_id}/photo")
async def get_profile_photo(
    profile_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    p = await get_profile(session, profile_id)
    if not p.profile_photo_key:
        raise HTTPException(status_code=404, detail="No profile photo")
    try:
        data, content_type = get_bytes(p.profile_photo_key)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="Image file not found in storage")
    return Response(content=data, media_type=content_type)
