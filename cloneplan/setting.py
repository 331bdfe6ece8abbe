"""Runtime settings for cloneplan.

Values are resolved in order of increasing precedence:
1. Field defaults below
2. Optional YAML file (config/cloneplan.yaml or $CLONEPLAN_CONFIG)
3. .env file, then CLONEPLAN_* environment variables
4. Keyword arguments

Nested fields use a double underscore, e.g. CLONEPLAN_RETRY__MAX_ATTEMPTS=5.
"""

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import AliasChoices, BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict, YamlConfigSettingsSource

load_dotenv()

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "cloneplan.yaml"


class RetrySettings(BaseModel):
    """Backoff policy for stage generation."""
    max_attempts: int = Field(3, description="Total attempts including the first", ge=1)
    delay_ms: int = Field(2000, description="Initial wait between attempts", ge=0)
    backoff_multiplier: float = Field(2.0, description="Wait multiplier per retry", ge=1.0)
    max_delay_ms: int = Field(10000, description="Upper bound for a single wait", ge=0)


class ValidationSettings(BaseModel):
    """Content validator thresholds."""
    actionable_threshold: float = Field(0.7, description="Min ratio of actionable items")
    estimates_threshold: float = Field(0.8, description="Min ratio of realistic estimates")
    overall_threshold: float = Field(0.7, description="Min mean score for acceptance")


class ProviderSettings(BaseModel):
    """One AI provider slot."""
    provider: str = Field(..., description="openai | anthropic | gemini | groq | ollama")
    model: str = Field(..., description="Model name passed to the provider SDK")


class PlanSettings(BaseSettings):
    """Top-level application settings."""

    model_config = SettingsConfigDict(
        env_prefix="CLONEPLAN_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    max_concurrent_analyses: int = Field(5, description="Admission cap for distinct analyses", ge=1)
    ai_timeout_seconds: float = Field(120.0, description="Budget for one provider's analysis call", gt=0)
    tech_detection_timeout_seconds: float = Field(15.0, description="Budget for technology detection")
    first_party_timeout_seconds: float = Field(6.0, description="Budget for first-party page extraction")
    # ENABLE_TECH_DETECTION is the unprefixed name existing deployments set
    enable_tech_detection: bool = Field(
        True,
        description="Run the technology detection branch",
        validation_alias=AliasChoices("enable_tech_detection", "cloneplan_enable_tech_detection"),
    )
    cache_ttl_seconds: float = Field(24 * 3600, description="Insights cache entry lifetime")
    cache_sweep_interval_seconds: float = Field(3600, description="Period of the expiry sweep")
    warm_insights_cache: bool = Field(True, description="Precompute insights for common stacks at startup")
    primary: ProviderSettings = Field(
        default_factory=lambda: ProviderSettings(provider="openai", model="gpt-4o-mini"),
        description="Provider tried first",
    )
    secondary: ProviderSettings = Field(
        default_factory=lambda: ProviderSettings(provider="anthropic", model="claude-3-5-sonnet-20241022"),
        description="Fallback provider",
    )
    retry: RetrySettings = Field(default_factory=RetrySettings)
    validation: ValidationSettings = Field(default_factory=ValidationSettings)
    env: str = Field("production", description="Deployment environment (CLONEPLAN_ENV)")
    debug: bool = Field(False, description="Expose internal error messages in responses")

    @model_validator(mode="after")
    def _development_enables_debug(self) -> "PlanSettings":
        if self.env.lower() == "development" and "debug" not in self.model_fields_set:
            self.debug = True
        return self

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )


def load_settings(config_path: Optional[Path] = None) -> PlanSettings:
    """Build settings from the YAML file and environment without caching."""
    if config_path is None:
        config_path = Path(os.getenv("CLONEPLAN_CONFIG", _DEFAULT_CONFIG_PATH))
    config_path = Path(config_path)
    if config_path.exists():
        logger.info(f"Loading settings from {config_path}")
    else:
        logger.debug(f"No settings file at {config_path}, using defaults")

    class FileSettings(PlanSettings):
        model_config = SettingsConfigDict(yaml_file=config_path)

    return FileSettings()


@lru_cache(maxsize=1)
def get_settings() -> PlanSettings:
    """Process-wide settings instance."""
    return load_settings()
