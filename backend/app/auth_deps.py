from __future__ import annotations
import hmac
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select, exists
from sqlalchemy.ext.asyncio import AsyncSession
from app.config import settings
from app.db import get_session
from app.security import subject_of, TokenError
from app.models.user import User, Profile, UserRole

security = HTTPBearer()

MODERATOR_ROLES = ("admin", "moderator")

async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    session: AsyncSession = Depends(get_session)
) -> User:
    try:
        user_id = subject_of(credentials.credentials, "access")
    except TokenError as e:
        raise HTTPException(status_code=401, detail=str(e))
    user = await session.get(User, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user

async def get_current_profile(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Profile:
    """Everything past sign-up acts as a profile; banned users lose theirs."""
    profile = await session.get(Profile, user.id)
    if not profile:
        raise HTTPException(status_code=409, detail="Profile required")
    return profile

async def has_moderator_role(session: AsyncSession, user_id) -> bool:
    found = await session.scalar(
        select(exists().where(UserRole.user_id == user_id, UserRole.role.in_(MODERATOR_ROLES)))
    )
    return bool(found)

async def require_moderator(
    profile: Profile = Depends(get_current_profile),
    session: AsyncSession = Depends(get_session),
) -> Profile:
    if not await has_moderator_role(session, profile.id):
        raise HTTPException(status_code=403, detail="Moderator role required")
    return profile

async def require_sweep_token(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> None:
    # an unset token disables the endpoint
    if not settings.sweep_token or not hmac.compare_digest(credentials.credentials, settings.sweep_token):
        raise HTTPException(status_code=403, detail="Invalid sweep token")
