"""
Configuration management for ClinicFlow.

This module provides centralized configuration using Pydantic Settings
for environment-based configuration management.
"""

from typing import List, Optional

import json
import os
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Database configuration settings."""

    model_config = SettingsConfigDict(env_prefix="MONGO_")

    uri: str = Field(
        default="mongodb://localhost:27017", description="MongoDB connection URI"
    )
    db_name: str = Field(default="clinicflow", description="MongoDB database name")
    server_selection_timeout_ms: int = Field(
        default=15000, description="Motor server selection timeout in milliseconds"
    )

    @field_validator("uri")
    @classmethod
    def validate_mongo_uri(cls, v: str) -> str:
        """Validate MongoDB URI format."""
        if not v:
            raise ValueError("MongoDB URI is required. Please set MONGO_URI environment variable.")
        if not v.startswith(("mongodb://", "mongodb+srv://")):
            raise ValueError(
                "MongoDB URI must start with 'mongodb://' or 'mongodb+srv://'"
            )
        return v


class CORSSettings(BaseSettings):
    """CORS configuration settings."""

    model_config = SettingsConfigDict(env_prefix="CORS_")

    allowed_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins",
    )
    allowed_methods: List[str] = Field(
        default=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        description="Allowed HTTP methods",
    )
    allowed_headers: List[str] = Field(
        default=["*"], description="Allowed HTTP headers"
    )
    allow_credentials: bool = Field(
        default=True, description="Allow credentials in CORS"
    )

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def parse_allowed_origins(cls, v):
        """Parse allowed origins from string or list."""
        if isinstance(v, str):
            if v.startswith("[") and v.endswith("]"):
                try:
                    return json.loads(v)
                except json.JSONDecodeError:
                    return [v.strip()]
            return [o.strip() for o in v.split(",") if o.strip()]
        return v


class LoggingSettings(BaseSettings):
    """Logging configuration settings."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: str = Field(default="INFO", description="Logging level")
    format: str = Field(default="json", description="Log format (json or text)")
    file_path: Optional[str] = Field(default=None, description="Log file path")

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate logging level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        if v.lower() not in ("json", "text"):
            raise ValueError("Log format must be 'json' or 'text'")
        return v.lower()


class ClinicSettings(BaseSettings):
    """Clinic-wide settings."""

    model_config = SettingsConfigDict(env_prefix="CLINIC_")

    name: str = Field(default="ClinicFlow Clinic", description="Clinic display name")
    timezone: str = Field(
        default="Asia/Manila",
        description="IANA time zone used for the clinic calendar day and appointment wall clock",
    )

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Validate that the time zone is known to zoneinfo."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown clinic time zone: {v}")
        return v


class SweeperSettings(BaseSettings):
    """Background sweep configuration settings."""

    model_config = SettingsConfigDict(env_prefix="SWEEPER_")

    doctor_stale_enabled: bool = Field(
        default=False,
        description="Run the doctor staleness sweep inside the API process",
    )
    doctor_stale_interval_seconds: int = Field(
        default=60, description="Interval in seconds between doctor staleness sweeps"
    )
    doctor_stale_threshold_seconds: int = Field(
        default=300,
        description="Seconds without a heartbeat before an online/busy doctor is forced offline",
    )
    appointment_overdue_enabled: bool = Field(
        default=False,
        description="Run the appointment overdue sweep inside the API process",
    )
    appointment_overdue_interval_seconds: int = Field(
        default=300, description="Interval in seconds between appointment overdue sweeps"
    )

    @field_validator(
        "doctor_stale_interval_seconds",
        "doctor_stale_threshold_seconds",
        "appointment_overdue_interval_seconds",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Sweeper intervals and thresholds must be positive")
        return v


class SyncSettings(BaseSettings):
    """Dashboard synchronizer configuration settings."""

    model_config = SettingsConfigDict(env_prefix="SYNC_")

    base_url: str = Field(default="http://localhost:8000", description="API base URL")
    api_key: str = Field(default="", description="API key sent as X-API-Key")
    debounce_seconds: float = Field(default=1.0, description="Minimum gap between syncs")
    fetch_timeout_seconds: float = Field(default=10.0, description="Per-fetch timeout")
    max_retries: int = Field(default=3, description="Consecutive failures before syncFailed")
    retry_base_seconds: float = Field(default=1.0, description="Exponential backoff base")
    retry_max_seconds: float = Field(default=30.0, description="Exponential backoff cap")
    poll_interval_seconds: float = Field(default=30.0, description="Background poll interval")

    @field_validator("max_retries")
    @classmethod
    def validate_max_retries(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_retries must be at least 1")
        return v

    @field_validator(
        "debounce_seconds",
        "fetch_timeout_seconds",
        "retry_base_seconds",
        "retry_max_seconds",
        "poll_interval_seconds",
    )
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Synchronizer timings cannot be negative")
        return v


class InventorySettings(BaseSettings):
    """Inventory service configuration settings."""

    model_config = SettingsConfigDict(env_prefix="INVENTORY_")

    base_url: str = Field(default="", description="Inventory service base URL (empty disables stock decrements)")
    api_key: str = Field(default="", description="Inventory service API key")
    timeout_seconds: float = Field(default=5.0, description="Inventory request timeout")


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # Application settings
    app_name: str = Field(default="ClinicFlow", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    app_env: str = Field(default="development", description="Application environment")
    debug: bool = Field(default=False, description="Debug mode")
    port: int = Field(default=8000, description="Application port")
    host: str = Field(default="0.0.0.0", description="Application host")

    # Sub-settings
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    clinic: ClinicSettings = Field(default_factory=ClinicSettings)
    sweeper: SweeperSettings = Field(default_factory=SweeperSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    inventory: InventorySettings = Field(default_factory=InventorySettings)

    def __init__(self, **kwargs):
        super().__init__(**kwargs)

        # Override sub-settings with environment variables
        self.database = DatabaseSettings()
        self.cors = CORSSettings()
        self.logging = LoggingSettings()
        self.clinic = ClinicSettings()
        self.sweeper = SweeperSettings()
        self.sync = SyncSettings()
        self.inventory = InventorySettings()

    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Validate application environment."""
        valid_envs = ["development", "staging", "production", "testing"]
        if v.lower() not in valid_envs:
            raise ValueError(f"App environment must be one of: {valid_envs}")
        return v.lower()

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port number."""
        if not 1 <= v <= 65535:
            raise ValueError("Port must be between 1 and 65535")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == "production"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.app_env == "testing"


# Global settings instance (loaded after attempting to read .env)
_settings: Optional[Settings] = None


def _load_env_file_if_available() -> None:
    """Best-effort load of .env by searching current and parent directories.

    Helps when the working directory isn't the project root and pydantic's
    env_file doesn't get resolved as expected.
    """
    from dotenv import load_dotenv

    cwd = Path(os.getcwd()).resolve()
    for parent in [cwd, *cwd.parents]:
        candidate = parent / ".env"
        if candidate.exists():
            # Do not override already-set environment variables
            load_dotenv(dotenv_path=str(candidate), override=False)
            break


def get_settings() -> Settings:
    """Get application settings instance (lazy-init with .env discovery)."""
    global _settings
    if _settings is None:
        _load_env_file_if_available()
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next get_settings() re-reads the environment."""
    global _settings
    _settings = None
