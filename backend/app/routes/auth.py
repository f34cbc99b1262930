from __future__ import annotations
from fastapi import APIRouter, Depends, HTTPException, Header
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog
from app.auth_deps import get_current_user
from app.db import get_session
from app.models.user import User, Profile
from app.schemas.auth import RegisterRequest, LoginRequest, UserPublic, TokenPair
from app.security import hash_password, verify_password, make_token_pair, subject_of, TokenError

router = APIRouter(prefix="/auth", tags=["auth"])
log = structlog.get_logger()

@router.post("/register", status_code=201, response_model=UserPublic)
async def register(payload: RegisterRequest, session: AsyncSession = Depends(get_session)):
    if await session.scalar(select(User.id).where(User.email == payload.email)):
        raise HTTPException(status_code=409, detail="Email already registered")
    user = User(email=payload.email, password_hash=hash_password(payload.password))
    session.add(user)
    try:
        await session.commit()
    except IntegrityError:
        # lost a race with a concurrent registration
        await session.rollback()
        raise HTTPException(status_code=409, detail="Email already registered")
    await session.refresh(user)
    log.info("user_registered", user_id=str(user.id))
    return UserPublic(id=user.id, email=user.email, created_at=user.created_at)

@router.post("/login", response_model=TokenPair)
async def login(payload: LoginRequest, session: AsyncSession = Depends(get_session)):
    user = await session.scalar(select(User).where(User.email == payload.email))
    if not user or not verify_password(payload.password, user.password_hash):
        log.info("login_failed")
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return TokenPair(**make_token_pair(str(user.id)))

@router.post("/refresh", response_model=TokenPair)
async def refresh(authorization: str | None = Header(None), session: AsyncSession = Depends(get_session)):
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Missing refresh token")
    try:
        user_id = subject_of(authorization.split(" ", 1)[1], "refresh")
    except TokenError as e:
        raise HTTPException(status_code=401, detail=str(e))
    # refresh tokens outlive accounts; don't mint for a deleted user
    if not await session.get(User, user_id):
        raise HTTPException(status_code=401, detail="User not found")
    return TokenPair(**make_token_pair(str(user_id)))

@router.get("/me", response_model=UserPublic)
async def me(user: User = Depends(get_current_user), session: AsyncSession = Depends(get_session)):
    has_profile = await session.get(Profile, user.id) is not None
    return UserPublic(id=user.id, email=user.email, created_at=user.created_at, has_profile=has_profile)
