"""
Configuration management with environment variable support and validation.

Design principles:
- Environment-specific configs (dev, staging, prod)
- Validation at startup (fail fast)
- Type safety with Pydantic
- Secure defaults (no API keys in code)
"""

import os
from functools import lru_cache
from typing import Literal, cast

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

# Load environment variables from .env file
load_dotenv()

CoverageBackend = Literal["static", "agent"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class CoverageConfig(BaseModel):
    """Coverage analysis service configuration."""

    backend: CoverageBackend = Field(
        default="static", description="'static' for the canned analyzer, 'agent' for the LLM"
    )
    model_name: str = Field(
        default="openai:gpt-4o-mini", description="Model used by the agent backend"
    )
    api_key: str | None = Field(default=None, description="Provider API key for the agent backend")

    timeout_seconds: float = Field(default=30.0, gt=0.0, description="Timeout per analysis")
    max_retries: int = Field(default=2, ge=0, description="Output validation retries")
    temperature: float = Field(default=0.1, ge=0.0, le=1.0)
    mock_delay_seconds: float = Field(
        default=2.0, ge=0.0, description="Simulated latency of the static analyzer"
    )

    @field_validator("api_key")
    def validate_api_key(cls, v):
        if v is None or v == "":
            return None
        if v == "your-openai-api-key-here":
            raise ValueError("Coverage API key must be set in environment or .env file")
        if not v.startswith("sk-"):
            raise ValueError("Coverage API key must start with 'sk-'")
        return v

    @model_validator(mode="after")
    def agent_requires_key(self) -> "CoverageConfig":
        if self.backend == "agent" and not self.api_key:
            raise ValueError("agent coverage backend requires an API key")
        return self


class AppealConfig(BaseModel):
    """Appeal composition defaults."""

    response_window_days: int = Field(
        default=30, gt=0, description="Days the plan has to answer an appeal"
    )
    default_member_id: str = Field(default="", description="Member ID printed on appeal letters")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(default="INFO", description="Logging level")
    format: Literal["json", "console"] = Field(default="json", description="Logging format")


class AppConfig(BaseModel):
    """Main application configuration combining all subsystems."""

    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    coverage: CoverageConfig = Field(default_factory=CoverageConfig)
    appeals: AppealConfig = Field(default_factory=AppealConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        """Ensure debug mode is only allowed in development environment."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""

    def _env_to_literal(val: str) -> Literal["development", "staging", "production"]:
        v = val.strip().lower()
        if v in {"dev", "development"}:
            return "development"
        if v in {"stage", "staging"}:
            return "staging"
        return "production"

    def _level_to_literal(val: str) -> LogLevel:
        v = val.strip().upper()
        known = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        return cast(LogLevel, v if v in known else "INFO")

    def _backend_to_literal(val: str) -> CoverageBackend:
        return "agent" if val.strip().lower() == "agent" else "static"

    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    coverage_config = CoverageConfig(
        backend=_backend_to_literal(os.getenv("COVERAGE_BACKEND", "static")),
        model_name=os.getenv("COVERAGE_MODEL", "openai:gpt-4o-mini"),
        api_key=os.getenv("OPENAI_API_KEY") or None,
        timeout_seconds=float(os.getenv("COVERAGE_TIMEOUT_SECONDS", "30.0")),
        mock_delay_seconds=float(os.getenv("COVERAGE_MOCK_DELAY_SECONDS", "2.0")),
    )

    appeal_config = AppealConfig(
        response_window_days=int(os.getenv("APPEAL_RESPONSE_WINDOW_DAYS", "30")),
        default_member_id=os.getenv("MEMBER_ID", ""),
    )

    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="console" if debug else "json",
    )

    return AppConfig(
        environment=environment,
        debug=debug,
        coverage=coverage_config,
        appeals=appeal_config,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()
