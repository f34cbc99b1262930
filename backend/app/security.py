from __future__ import annotations
from datetime import datetime, timedelta, timezone
from typing import Any
import uuid
import jwt
from passlib.context import CryptContext
from app.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

JWT_ALG = "HS256"


class TokenError(Exception):
    """Token is malformed, expired, or of the wrong type."""


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def make_token(sub: str, token_type: str) -> str:
    ttl_min = settings.access_ttl_min if token_type == "access" else settings.refresh_ttl_min
    now = datetime.now(timezone.utc)
    payload = {
        "sub": sub,
        "type": token_type,
        "iat": now.timestamp(),  # float keeps two tokens minted in one second distinct
        "exp": int((now + timedelta(minutes=ttl_min)).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALG)


def make_token_pair(sub: str) -> dict[str, Any]:
    return {
        "access": make_token(sub, "access"),
        "refresh": make_token(sub, "refresh"),
        "expires_in": settings.access_ttl_min * 60,
    }


def subject_of(token: str, token_type: str) -> uuid.UUID:
    """Decode `token`, check its type and return the user id it was issued for."""
    try:
        data = jwt.decode(token, settings.jwt_secret, algorithms=[JWT_ALG])
    except jwt.PyJWTError:
        raise TokenError("Invalid token")
    if data.get("type") != token_type:
        raise TokenError("Wrong token type")
    try:
        return uuid.UUID(str(data.get("sub")))
    except ValueError:
        raise TokenError("Invalid token")
