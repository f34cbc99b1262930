from __future__ import annotations
import os
from pydantic import BaseModel

class Settings(BaseModel):
    environment: str = os.getenv("ENVIRONMENT", "dev")
    app_name: str = os.getenv("APP_NAME", "moments-api")
    app_display_name: str = os.getenv("APP_DISPLAY_NAME", "Moments")
    app_version: str = os.getenv("APP_VERSION", "0.1.0")
    git_sha: str = os.getenv("GIT_SHA", "dev")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    cors_origins: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")

    database_url: str = os.getenv("DATABASE_URL", "postgresql+asyncpg://postgres:postgres@db:5432/moments_dev")
    db_command_timeout_seconds: float = float(os.getenv("DB_COMMAND_TIMEOUT_SECONDS", "10"))
    redis_url: str = os.getenv("REDIS_URL", "redis://redis:6379/0")

    s3_endpoint: str = os.getenv("S3_ENDPOINT", "http://minio:9000")
    s3_access_key: str = os.getenv("S3_ACCESS_KEY", "minioadmin")
    s3_secret_key: str = os.getenv("S3_SECRET_KEY", "minioadmin")
    s3_bucket_uploads: str = os.getenv("S3_BUCKET_UPLOADS", "moments-uploads-dev")
    s3_timeout_seconds: float = float(os.getenv("S3_TIMEOUT_SECONDS", "10"))
    # Media exposure controls
    serve_media_via_api: bool = os.getenv("SERVE_MEDIA_VIA_API", "1") == "1"
    s3_presign_downloads: bool = os.getenv("S3_PRESIGN_DOWNLOADS", "0") == "1"
    s3_presign_expiry_seconds: int = int(os.getenv("S3_PRESIGN_EXPIRY_SECONDS", "300"))
    max_upload_bytes: int = int(os.getenv("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))

    jwt_secret: str = os.getenv("JWT_SECRET", "dev-secret-change-me")
    access_ttl_min: int = int(os.getenv("ACCESS_TTL_MIN", "15"))
    refresh_ttl_min: int = int(os.getenv("REFRESH_TTL_MIN", "10080"))  # 7d

    # Discovery defaults
    nearby_default_radius_m: int = int(os.getenv("NEARBY_DEFAULT_RADIUS_M", "5000"))
    nearby_default_limit: int = int(os.getenv("NEARBY_DEFAULT_LIMIT", "50"))
    search_default_radius_m: int = int(os.getenv("SEARCH_DEFAULT_RADIUS_M", "10000"))
    search_default_limit: int = int(os.getenv("SEARCH_DEFAULT_LIMIT", "20"))

    # Moderation
    moderation_enabled: bool = os.getenv("MODERATION_ENABLED", "1") == "1"
    moderation_extra_terms: list[str] = [t.strip() for t in os.getenv("MODERATION_EXTRA_TERMS", "").split(",") if t.strip()]

    # Ephemeral content & sweeps
    ephemeral_ttl_seconds: int = int(os.getenv("EPHEMERAL_TTL_SECONDS", "300"))  # 5 min
    ended_moment_photo_retention_days: int = int(os.getenv("ENDED_MOMENT_PHOTO_RETENTION_DAYS", "2"))
    profile_photo_inactivity_days: int = int(os.getenv("PROFILE_PHOTO_INACTIVITY_DAYS", "60"))
    sweep_expire_seconds: int = int(os.getenv("SWEEP_EXPIRE_SECONDS", "300"))
    sweep_ephemeral_seconds: int = int(os.getenv("SWEEP_EPHEMERAL_SECONDS", "300"))
    sweep_stale_seconds: int = int(os.getenv("SWEEP_STALE_SECONDS", "86400"))
    sweep_token: str = os.getenv("SWEEP_TOKEN", "")

settings = Settings()
