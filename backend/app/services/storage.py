from __future__ import annotations
import io
from datetime import timedelta
from functools import lru_cache
import urllib3
import structlog
from minio import Minio
from minio.error import S3Error
from app.config import settings

log = structlog.get_logger()

_MISSING_CODES = ("NoSuchKey", "NoSuchObject")

def _parse_endpoint(ep: str) -> tuple[str, bool]:
    # Return (host:port, secure)
    secure = ep.startswith("https://")
    host = ep.replace("http://", "").replace("https://", "")
    return host, secure

@lru_cache(maxsize=1)
def _client() -> Minio:
    host, secure = _parse_endpoint(settings.s3_endpoint)
    timeout = urllib3.Timeout(connect=settings.s3_timeout_seconds, read=settings.s3_timeout_seconds)
    http = urllib3.PoolManager(timeout=timeout, retries=urllib3.Retry(total=2, backoff_factor=0.2))
    client = Minio(
        host, access_key=settings.s3_access_key, secret_key=settings.s3_secret_key,
        secure=secure, http_client=http,
    )
    # Ensure bucket exists (idempotent)
    try:
        if not client.bucket_exists(settings.s3_bucket_uploads):
            client.make_bucket(settings.s3_bucket_uploads)
    except S3Error as e:
        # concurrent creators race on make_bucket; anything else is real
        if e.code not in ("BucketAlreadyOwnedByYou", "BucketAlreadyExists"):
            raise
    return client

def put_bytes(key: str, data: bytes, content_type: str) -> None:
    _client().put_object(
        settings.s3_bucket_uploads, key, io.BytesIO(data), length=len(data), content_type=content_type
    )

def get_bytes(key: str) -> tuple[bytes, str]:
    """
    Retrieve object from storage.
    Returns (data, content_type).
    """
    try:
        response = _client().get_object(settings.s3_bucket_uploads, key)
        try:
            data = response.read()
            content_type = response.headers.get('Content-Type', 'application/octet-stream')
        finally:
            response.close()
            response.release_conn()
        return data, content_type
    except S3Error as e:
        if e.code in _MISSING_CODES:
            raise FileNotFoundError(f"Object not found: {key}")
        raise

def remove_object(key: str) -> None:
    """
    Delete an object. Raises FileNotFoundError when it is already gone so
    callers can decide whether that counts as success.
    """
    client = _client()
    try:
        client.stat_object(settings.s3_bucket_uploads, key)
    except S3Error as e:
        if e.code in _MISSING_CODES:
            raise FileNotFoundError(f"Object not found: {key}")
        raise
    client.remove_object(settings.s3_bucket_uploads, key)

def remove_quietly(keys: list[str]) -> int:
    """Best-effort removal after a committed delete. Returns the failure count."""
    failures = 0
    for key in keys:
        try:
            remove_object(key)
        except FileNotFoundError:
            continue
        except Exception as e:
            failures += 1
            log.warning("storage_remove_failed", key=key, error=str(e))
    return failures

def presign_get(key: str) -> str:
    return _client().presigned_get_object(
        settings.s3_bucket_uploads, key, expires=timedelta(seconds=settings.s3_presign_expiry_seconds)
    )
