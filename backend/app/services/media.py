from __future__ import annotations
import io
from PIL import Image, UnidentifiedImageError
from app.config import settings
from app.errors import ValidationError
from app.services.storage import presign_get


ALLOWED_MIME = {"image/jpeg", "image/png", "image/webp"}
EXT_FOR_MIME = {"image/jpeg": "jpg", "image/png": "png", "image/webp": "webp"}
_FORMAT_TO_MIME = {"JPEG": "image/jpeg", "PNG": "image/png", "WEBP": "image/webp"}

def sniff_mime(data: bytes) -> str | None:
    try:
        with Image.open(io.BytesIO(data)) as img:
            return _FORMAT_TO_MIME.get(img.format or "")
    except (UnidentifiedImageError, OSError):
        return None

def validate_upload(data: bytes) -> str:
    """
    Size/type gate for uploaded photos. Returns the detected mime type.
    Content moderation of images is out of scope; this only rejects files
    that are not a supported, decodable image.
    """
    if not data:
        raise ValidationError("Empty upload")
    if len(data) > settings.max_upload_bytes:
        raise ValidationError(f"File too large. Maximum size is {settings.max_upload_bytes // (1024 * 1024)}MB")
    mime = sniff_mime(data)
    if mime not in ALLOWED_MIME:
        raise ValidationError("Invalid file type. Please use JPG, PNG, or WebP")
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()  # basic integrity
    except (UnidentifiedImageError, OSError, SyntaxError):
        raise ValidationError("Invalid image file")
    return mime

def ext_for_mime(mime: str) -> str:
    return EXT_FOR_MIME.get(mime, "bin")

def media_url(key: str | None, api_path: str) -> str | None:
    """Where a client should fetch a stored object from, per the media exposure settings."""
    if not key:
        return None
    if settings.serve_media_via_api:
        return api_path
    if settings.s3_presign_downloads:
        return presign_get(key)
    return None
