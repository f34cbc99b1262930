from __future__ import annotations
from pydantic import BaseModel, EmailStr, Field, field_validator
from uuid import UUID
from datetime import datetime

class Credentials(BaseModel):
    email: EmailStr
    password: str

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str):
        return v.lower()

class RegisterRequest(Credentials):
    password: str = Field(min_length=8, max_length=128)

class LoginRequest(Credentials):
    pass

class UserPublic(BaseModel):
    id: UUID
    email: EmailStr
    created_at: datetime
    # clients route to profile setup until this is true
    has_profile: bool = False

class TokenPair(BaseModel):
    access: str
    refresh: str
    # access token lifetime, seconds
    expires_in: int
