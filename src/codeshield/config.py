from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, conint, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import Limits, Severity


DEFAULT_MODEL = "deepseek-coder"


class CodeShieldSettings(BaseSettings):
    """Process-wide settings loaded from CODESHIELD_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CODESHIELD_",
        env_file=".env.local",
        env_file_encoding="utf-8",
        frozen=True,
        extra="ignore",
    )

    # AI verification service (local Ollama)
    ollama_url: str = Field(default="http://127.0.0.1:11434")
    default_model: str = Field(default=DEFAULT_MODEL)
    ai_request_timeout_seconds: conint(ge=1) = Field(
        default=120, description="Upper bound for a single verification call"
    )
    ai_health_timeout_seconds: conint(ge=1) = Field(
        default=5, description="Upper bound for the availability probe"
    )
    default_max_concurrent_ai: conint(ge=1, le=Limits.MAX_CONCURRENT_AI) = Field(default=2)

    # Static stage
    yield_every_files: conint(ge=1) = Field(
        default=10, description="Static stage yields to the event loop every N files"
    )
    max_file_size_bytes: conint(ge=1) = Field(default=Limits.MAX_FILE_SIZE)

    # API
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    @field_validator("ollama_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith(("http://", "https://")):
            raise ValueError("ollama_url must be an http(s) URL")
        return value.rstrip("/")


@lru_cache
def get_settings() -> CodeShieldSettings:
    return CodeShieldSettings()


class ScanConfig(BaseModel):
    """Immutable configuration a scan is started with."""

    model_config = ConfigDict(frozen=True, extra="forbid", protected_namespaces=())

    enable_static: bool = True
    enable_ai: bool = False
    model: str = DEFAULT_MODEL
    max_concurrent_ai: conint(ge=1, le=Limits.MAX_CONCURRENT_AI) = 2
    languages: Optional[List[str]] = None
    exclude_paths: List[str] = Field(default_factory=list)
    severity_threshold: Optional[Severity] = None

    @field_validator("languages", mode="before")
    @classmethod
    def _normalize_languages(cls, value):
        if value is None:
            return None
        if isinstance(value, str):
            value = [value]
        return [str(item).strip().lower() for item in value if str(item).strip()]

    @field_validator("exclude_paths", mode="before")
    @classmethod
    def _normalize_exclude_paths(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        return [str(item).strip().replace("\\", "/") for item in value if str(item).strip()]

    @field_validator("severity_threshold", mode="before")
    @classmethod
    def _normalize_threshold(cls, value):
        if isinstance(value, str):
            trimmed = value.strip().lower()
            if trimmed in ("", "none"):
                return None
            return trimmed
        return value

    @field_validator("model")
    @classmethod
    def _require_model(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("model must not be empty")
        return value

    @classmethod
    def from_settings(cls, settings: CodeShieldSettings, **overrides) -> "ScanConfig":
        """Build a config whose defaults come from process settings."""
        values = {
            "model": settings.default_model,
            "max_concurrent_ai": settings.default_max_concurrent_ai,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def includes_severity(self, severity: Severity) -> bool:
        if self.severity_threshold is None:
            return True
        return severity.rank >= self.severity_threshold.rank
