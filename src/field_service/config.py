"""Application configuration."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseModel):
    """Database configuration."""

    url: str = "sqlite+aiosqlite:///data/field_service.db"
    echo: bool = False


class PhotoSettings(BaseModel):
    """Visit photo quota configuration."""

    # Confirmed photos allowed per visit
    max_ready_per_visit: int = 20

    # Outstanding (unconfirmed) uploads allowed per visit
    max_pending_per_visit: int = 5

    # Pending rows older than this are garbage-collected
    stale_pending_minutes: int = 15

    max_file_size_bytes: int = 10 * 1024 * 1024
    upload_url_ttl_seconds: int = 900
    download_url_ttl_seconds: int = 3600


class StorageSettings(BaseModel):
    """Object storage configuration."""

    provider: str = "mock"  # mock, s3
    bucket: str = ""
    region: str = "us-east-1"
    endpoint_url: str = ""  # For S3-compatible stores (R2, MinIO)
    access_key_id: str = ""
    secret_access_key: str = ""


class SMTPSettings(BaseModel):
    """SMTP email configuration."""

    host: str = ""
    port: int = 587
    username: str = ""
    password: str = ""
    use_tls: bool = True
    use_ssl: bool = False


class EmailSettings(BaseModel):
    """Email gateway configuration."""

    enabled: bool = False
    provider: str = "smtp"  # smtp, mock
    from_email: str = ""
    from_name: str = ""
    smtp: SMTPSettings = Field(default_factory=SMTPSettings)


class NotificationSettings(BaseModel):
    """Owner notification configuration."""

    enabled: bool = False
    app_base_url: str = "http://localhost:5173"

    # Fallback recipient when no owner lookup is wired in
    owner_email: str = ""


class JobSettings(BaseModel):
    """Job creation configuration."""

    default_visit_duration_minutes: int = 60


class Settings(BaseSettings):
    """Application settings.

    Loaded from:
    1. Environment variables (FS_*)
    2. configs/{environment}.yaml
    3. configs/default.yaml
    """

    model_config = SettingsConfigDict(
        env_prefix="FS_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Environment
    environment: str = "development"
    debug: bool = True

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # Subsystems
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    photos: PhotoSettings = Field(default_factory=PhotoSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    email: EmailSettings = Field(default_factory=EmailSettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    jobs: JobSettings = Field(default_factory=JobSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings object loaded from config files and environment.
    """
    import os
    from dynaconf import Dynaconf

    # Determine paths
    config_dir = Path("configs")
    env = os.getenv("FS_ENV", "development")

    # Build settings file list
    settings_files = []
    if (config_dir / "default.yaml").exists():
        settings_files.append(str(config_dir / "default.yaml"))
    if (config_dir / f"{env}.yaml").exists():
        settings_files.append(str(config_dir / f"{env}.yaml"))

    # Load with Dynaconf
    dynaconf = Dynaconf(
        envvar_prefix="FS",
        settings_files=settings_files,
        load_dotenv=True,
    )

    # Convert to dict
    config_dict: dict[str, Any] = {}
    for key in dynaconf.keys():
        if not key.startswith("_"):
            config_dict[key.lower()] = dynaconf[key]

    config_dict["environment"] = env

    return Settings(**config_dict)


def validate_production_settings(settings: Settings) -> list[str]:
    """Validate settings for production readiness.

    Args:
        settings: Application settings to validate.

    Returns:
        List of validation error messages (empty if all valid).
    """
    errors: list[str] = []

    if settings.environment not in ("production", "staging", "prod"):
        return errors

    if settings.database.url.startswith("sqlite"):
        errors.append("FS_DATABASE__URL must point at PostgreSQL in production")

    if settings.storage.provider == "s3" and not settings.storage.bucket:
        errors.append("FS_STORAGE__BUCKET must be set when the S3 provider is enabled")

    if settings.notifications.enabled and not settings.email.enabled:
        errors.append("FS_EMAIL__ENABLED must be true when notifications are enabled")

    return errors
