from __future__ import annotations
from pydantic import BaseModel, Field
from typing import Literal
from uuid import UUID
from datetime import datetime

FlagTargetType = Literal["moment", "message"]
FlagReason = Literal["inappropriate", "spam", "harassment", "safety", "other"]
AdminAction = Literal["hide", "delete", "dismiss", "ban"]

class FlagCreate(BaseModel):
    target_type: FlagTargetType
    target_id: UUID
    reason: FlagReason = "other"

class FlagReceipt(BaseModel):
    created: bool
    detail: str

class FlagGroup(BaseModel):
    target_type: FlagTargetType
    target_id: UUID
    flag_count: int
    reasons: list[str]
    first_flagged_at: datetime
    last_flagged_at: datetime
    # None when the target no longer exists
    content: dict | None = None
    preview: str

class AdminActionResult(BaseModel):
    action: AdminAction
    target_type: FlagTargetType
    target_id: UUID
    flags_removed: int = 0
    content_removed: bool = False
    moments_deleted: int = 0
    messages_deleted: int = 0
    banned_user_id: UUID | None = None

class SosAlertCreate(BaseModel):
    moment_id: UUID
    lat: float | None = Field(default=None, ge=-90, le=90)
    lng: float | None = Field(default=None, ge=-180, le=180)

class SosAlertPublic(BaseModel):
    id: UUID
    user_id: UUID
    moment_id: UUID
    lat: float | None
    lng: float | None
    created_at: datetime
    resolved_at: datetime | None = None
    resolved_by: UUID | None = None

class SosAlertWithMoment(BaseModel):
    id: UUID
    user_id: UUID
    moment_id: UUID
    moment_title: str | None
    lat: float | None
    lng: float | None
    created_at: datetime
