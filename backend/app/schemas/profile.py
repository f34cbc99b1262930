from __future__ import annotations
from pydantic import BaseModel, Field, field_validator
from uuid import UUID
from datetime import datetime


def _norm_languages(v: list[str] | None) -> list[str] | None:
    if v is None:
        return v
    out: list[str] = []
    for code in v:
        c = code.strip().lower()
        if c and c not in out:
            out.append(c)
    if not 1 <= len(out) <= 3:
        raise ValueError("languages must contain 1 to 3 distinct codes")
    return out


class ProfileCreate(BaseModel):
    display_name: str = Field(min_length=1, max_length=60)
    home_country: str = Field(min_length=2, max_length=2)
    languages: list[str]
    user_type: str = Field(min_length=1, max_length=32)

    @field_validator("home_country")
    @classmethod
    def upper_country(cls, v: str):
        if not v.isalpha():
            raise ValueError("home_country must be a 2-letter country code")
        return v.upper()

    @field_validator("languages")
    @classmethod
    def check_languages(cls, v: list[str]):
        return _norm_languages(v)


class ProfileUpdate(BaseModel):
    display_name: str | None = Field(default=None, min_length=1, max_length=60)
    home_country: str | None = Field(default=None, min_length=2, max_length=2)
    languages: list[str] | None = None
    user_type: str | None = Field(default=None, min_length=1, max_length=32)

    @field_validator("home_country")
    @classmethod
    def upper_country(cls, v: str | None):
        if v is not None and not v.isalpha():
            raise ValueError("home_country must be a 2-letter country code")
        return v.upper() if v else v

    @field_validator("languages")
    @classmethod
    def check_languages(cls, v: list[str] | None):
        return _norm_languages(v)


class ProfilePublic(BaseModel):
    id: UUID
    display_name: str
    home_country: str
    languages: list[str]
    user_type: str
    profile_photo_url: str | None = None
    profile_photo_uploaded_at: datetime | None = None
    created_at: datetime
