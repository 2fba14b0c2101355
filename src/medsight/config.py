"""
MedSight Configuration

Centralized configuration using Pydantic Settings.
All configuration is loaded from environment variables with sensible defaults.
"""

import json
import logging
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMSettings(BaseSettings):
    """Judgment collaborator (LLM provider) configuration."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="", extra="ignore"
    )

    # Gemini (Google AI Studio, OpenAI-compatible endpoint)
    gemini_api_key: str | None = Field(default=None, alias="GEMINI_API_KEY")
    google_api_key: str | None = Field(default=None, alias="GOOGLE_API_KEY")
    gemini_model: str = Field(default="gemini-2.5-flash-lite", alias="GEMINI_MODEL")

    # OpenAI (fallback)
    openai_api_key: str | None = Field(default=None, alias="OPENAI_API_KEY")
    openai_model: str = Field(default="gpt-4o-mini", alias="OPENAI_MODEL")

    temperature: float = Field(default=0.0, ge=0.0, le=2.0)
    max_tokens: int = Field(default=4096, ge=1)

    # No timeout in the reference behaviour; a bounded wait is imposed here.
    judgment_timeout: float = Field(default=60.0, gt=0.0, alias="MEDSIGHT_JUDGMENT_TIMEOUT")

    default_provider: Literal["gemini", "openai"] = Field(
        default="gemini", alias="LLM_DEFAULT_PROVIDER"
    )


class PipelineSettings(BaseSettings):
    """Limits and constants for the analysis pipeline."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="MEDSIGHT_", extra="ignore"
    )

    max_papers: int = Field(default=10, ge=1, le=100)
    dedup_title_chars: int = Field(default=80, ge=10)
    statistics_top_n: int = Field(default=5, ge=1, le=5)
    safety_top_n: int = Field(default=10, ge=1, le=10)
    quality_abstract_chars: int = Field(default=3000, ge=100)
    statistics_abstract_chars: int = Field(default=8000, ge=100)
    safety_abstract_chars: int = Field(default=500, ge=50)
    recency_horizon_years: int = Field(default=15, ge=1)
    default_mode: Literal["clinical", "research"] = Field(default="research")


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="", extra="ignore"
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", alias="LOG_LEVEL"
    )
    log_format: Literal["json", "text"] = Field(default="text", alias="LOG_FORMAT")


class FeatureFlags(BaseSettings):
    """Feature flags for optional functionality."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="", extra="ignore"
    )

    debug: bool = Field(default=False, alias="MEDSIGHT_DEBUG")
    trace_path: Path = Field(default=Path("./traces"), alias="MEDSIGHT_TRACE_PATH")

    @field_validator("trace_path", mode="before")
    @classmethod
    def resolve_path(cls, v: str | Path) -> Path:
        """Resolve path and expand user."""
        return Path(v).expanduser().resolve()


class Settings(BaseSettings):
    """
    Main MedSight settings aggregator.

    Usage:
        from medsight.config import get_settings
        settings = get_settings()
        print(settings.pipeline.max_papers)
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    llm: LLMSettings = Field(default_factory=LLMSettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    features: FeatureFlags = Field(default_factory=FeatureFlags)


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance (singleton)."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings (useful for testing)."""
    global _settings
    _settings = None


class _JsonFormatter(logging.Formatter):
    """One JSON object per log record."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def configure_logging(settings: Settings | None = None) -> None:
    """Install a root handler according to LoggingSettings."""
    settings = settings or get_settings()
    handler = logging.StreamHandler()
    if settings.logging.log_format == "json":
        handler.setFormatter(_JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
        )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(settings.logging.log_level)
