"""Application settings and configuration."""

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from vetbackup.core.error_handling import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Vet Clinic Backup Service")
    debug: bool = Field(default=False)

    # Logging
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = Field(default=None)

    # Datastore
    mongo_uri: Optional[str] = Field(default=None)
    mongo_database: Optional[str] = Field(default=None)
    use_transactions: bool = Field(default=False)

    # Storage layout
    app_root: Path = Field(default=Path("."))

    # Retention
    retention_window: int = Field(default=7, ge=0)
    snapshot_retention_window: Optional[int] = Field(default=None, ge=0)

    # Scheduling
    backup_schedule: str = Field(default="0 0 * * *")
    schedule_timezone: Optional[str] = Field(default=None)
    scheduler_enabled: bool = Field(default=True)

    # External tools
    dump_command: str = Field(default="mongodump")
    restore_command: str = Field(default="mongorestore")
    process_timeout_seconds: Optional[float] = Field(default=3600.0)

    # Workers and archives
    worker_threads: int = Field(default=2, ge=1)
    archive_compression_level: int = Field(default=9)

    # API
    admin_api_token: Optional[str] = Field(default=None)
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=5000)

    @field_validator("archive_compression_level")
    @classmethod
    def _check_compression_level(cls, value: int) -> int:
        if not 0 <= value <= 9:
            raise ValueError(f"archive_compression_level must be between 0 and 9, got {value}")
        return value

    @property
    def backups_dir(self) -> Path:
        return self.app_root / "backups"

    @property
    def exports_dir(self) -> Path:
        return self.app_root / "exports"

    def require_mongo_uri(self) -> str:
        """Return the datastore connection string or fail as a misconfiguration."""
        if not self.mongo_uri:
            raise ConfigurationError(
                "MONGO_URI is not set; the backup service cannot reach the datastore",
                config_key="MONGO_URI",
            )
        return self.mongo_uri

    def create_directories(self):
        """Create necessary directories. Should be called at application startup."""
        self.backups_dir.mkdir(parents=True, exist_ok=True)
        self.exports_dir.mkdir(parents=True, exist_ok=True)


# Global settings instance
settings = Settings()
