from __future__ import annotations
from pydantic import BaseModel, Field
from typing import Literal
from uuid import UUID
from datetime import datetime

MomentStatus = Literal["active", "hidden", "expired"]

class MomentCreate(BaseModel):
    title: str = Field(min_length=1, max_length=120)
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    starts_at: datetime
    ends_at: datetime
    max_participants: int
    city_code: str | None = Field(default=None, max_length=16)

class MomentPublic(BaseModel):
    id: UUID
    creator_id: UUID
    title: str
    lat: float
    lng: float
    city_code: str
    starts_at: datetime
    ends_at: datetime
    max_participants: int
    status: MomentStatus
    created_at: datetime
    participant_count: int

class MomentListing(BaseModel):
    """Discovery row: a moment ranked by exact distance from the query point."""
    id: UUID
    title: str
    lat: float
    lng: float
    starts_at: datetime
    ends_at: datetime
    max_participants: int
    status: MomentStatus
    participant_count: int
    distance_m: float

class ParticipantPublic(BaseModel):
    id: UUID
    moment_id: UUID
    user_id: UUID
    joined_at: datetime

class ParticipantWithProfile(BaseModel):
    participant_id: UUID
    user_id: UUID
    joined_at: datetime
    display_name: str | None
    user_type: str | None
    home_country: str | None
    profile_photo_key: str | None = None

class ParticipationStatus(BaseModel):
    is_participant: bool

class MomentContext(BaseModel):
    participant_count: int
    max_participants: int
    is_full: bool
    badges: list[str]

class LeaveResult(BaseModel):
    success: bool = True
    removed: bool
