"""
Application configuration using Pydantic Settings.
All environment variables are loaded here with sensible defaults.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "File Gateway"
    environment: str = "dev"
    log_level: str = "INFO"
    cors_origins: List[str] = ["*"]

    # Storage backend selection: "local", "s3" or "memory"
    storage_backend: str = "local"

    # Local filesystem backend (development)
    local_storage_root: str = "./storage"

    # S3-compatible storage (AWS S3, Cloudflare R2, MinIO)
    s3_endpoint: Optional[str] = None  # e.g., https://<account_id>.r2.cloudflarestorage.com
    s3_bucket: str = ""
    s3_access_key: Optional[str] = None
    s3_secret_key: Optional[str] = None
    s3_region: str = "auto"  # R2 uses "auto" for region
    s3_addressing_style: str = "path"  # "path", "virtual" or "auto"
    s3_connect_timeout: float = 5.0
    s3_read_timeout: float = 60.0

    # Upload policies
    # Signing secret; the s3 backend falls back to s3_secret_key when unset
    policy_secret: Optional[str] = None
    # Policy lifetime in seconds. Keep short: a leaked policy is usable until it expires
    policy_ttl_seconds: int = 300
    policy_max_upload_bytes: Optional[int] = None

    # Per-request deadline for storage operations (seconds)
    storage_operation_timeout: float = 30.0

    # Where multipart uploads are spooled before being sent to the backend
    upload_tmp_dir: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Global settings instance
settings = Settings()
