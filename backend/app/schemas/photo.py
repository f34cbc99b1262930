from __future__ import annotations
from pydantic import BaseModel
from uuid import UUID
from datetime import datetime


class PhotoPublic(BaseModel):
    id: UUID
    moment_id: UUID
    uploader_id: UUID
    caption: str | None = None
    is_preview: bool
    mime_type: str
    uploaded_at: datetime
    # storage key is exposed because chat image messages reference it
    storage_key: str
    media_url: str | None = None
