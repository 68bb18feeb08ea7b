"""Configuration management for sitwell."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import AliasChoices, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from sitwell.errors import ConfigurationError

DEFAULT_MODEL = "gemini-2.0-flash"
DEFAULT_API_BASE = "https://generativelanguage.googleapis.com/v1beta"


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="SITWELL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Inference service
    api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("SITWELL_API_KEY", "GEMINI_API_KEY"),
        description="Credential for the inference service",
    )
    model: str = Field(default=DEFAULT_MODEL, description="Vision model identifier")
    api_base: str = Field(default=DEFAULT_API_BASE, description="Inference API base URL")
    max_output_tokens: int = Field(default=150, gt=0)
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    request_timeout_seconds: float = Field(default=20.0, gt=0, description="Timeout for one analysis request")

    # Monitoring
    check_interval_seconds: float = Field(default=30.0, gt=0)
    feedback_display_seconds: float = Field(default=8.0, gt=0)

    # Camera
    camera_index: int = Field(default=0, ge=0)
    frame_width: int = Field(default=640, gt=0)
    frame_height: int = Field(default=480, gt=0)
    jpeg_quality: int = Field(default=75, ge=1, le=100)

    # Logging
    log_level: str = Field(default="INFO", description="Log level")

    @property
    def has_credential(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    def redacted(self) -> dict[str, Any]:
        """Settings as a mapping with the credential masked."""
        data = self.model_dump()
        if self.has_credential:
            data["api_key"] = f"***({len(self.api_key or '')} chars)"
        return data


def load_settings(env_file: Path | None = None, **overrides: Any) -> Settings:
    """Load settings from the environment, an optional .env file and explicit overrides.

    Raises ``ConfigurationError`` when a value fails validation.
    """

    updates = {key: value for key, value in overrides.items() if value is not None}
    try:
        if env_file is not None:
            return Settings(_env_file=env_file, **updates)  # type: ignore[call-arg]
        return Settings(**updates)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'settings'}: {error['msg']}" for error in exc.errors()
        )
        raise ConfigurationError(f"Invalid settings: {problems}") from exc
