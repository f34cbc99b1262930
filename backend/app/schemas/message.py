from __future__ import annotations
from pydantic import BaseModel, Field
from uuid import UUID
from datetime import datetime


class MessageCreate(BaseModel):
    content: str = Field(min_length=1)


class MessageWithAuthor(BaseModel):
    id: UUID
    moment_id: UUID
    user_id: UUID
    content: str
    created_at: datetime
    display_name: str | None
    profile_photo_key: str | None = None
    # Derived at read time from created_at; never stored
    is_image: bool = False
    image_key: str | None = None
    image_expires_at: datetime | None = None
    time_left_minutes: int | None = None
    image_expired: bool = False
    display_content: str


class ModerationOutcome(BaseModel):
    flagged: bool
    reason: str | None = None
    matched: str | None = None
    action: str | None = None  # deleted|hidden


class MessageSent(BaseModel):
    message: MessageWithAuthor
    moderation: ModerationOutcome | None = None
