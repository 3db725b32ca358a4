"""
Amped - Configuration and settings.

Values come from the environment or a .env file, e.g. AMPED_ENV=production,
GOAL_DIAL_MAX_MINUTES=90.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from onboarding.questions import Question, build_question_table
from onboarding.selector import validate_dial
from onboarding.steps import Step


class AmpedSettings(BaseSettings):
    """Application settings for the onboarding hosts."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    amped_env: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Local settings store (flat JSON file)
    settings_path: Path = Path(".amped/settings.json")

    # Dial input stays disabled this long after a dial step is shown
    interaction_delay_seconds: float = 0.5

    # Relaunch later than this after the last save counts as a hard close
    hard_close_threshold_seconds: float = 5.0

    # Daily goal dial
    goal_dial_max_minutes: int = 60
    goal_dial_step_minutes: int = 5
    goal_default_minutes: int = 10

    @field_validator("interaction_delay_seconds", "hard_close_threshold_seconds")
    @classmethod
    def _non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("must not be negative")
        return v

    @field_validator("goal_default_minutes")
    @classmethod
    def _default_on_dial(cls, v: int, info: ValidationInfo) -> int:
        max_minutes = info.data.get("goal_dial_max_minutes")
        step = info.data.get("goal_dial_step_minutes")
        if max_minutes is not None and step is not None:
            validate_dial(max_minutes, step)
            if v < 0 or v > max_minutes or v % step:
                raise ValueError(f"{v} is not a {step}-minute value in 0..{max_minutes}")
        return v

    @property
    def is_development(self) -> bool:
        return self.amped_env == "development"

    @property
    def is_production(self) -> bool:
        return self.amped_env == "production"

    def question_table(self) -> dict[Step, Question]:
        """Onboarding question table with the configured goal dial."""
        return build_question_table(
            goal_max_minutes=self.goal_dial_max_minutes,
            goal_step_minutes=self.goal_dial_step_minutes,
            goal_default_minutes=self.goal_default_minutes,
        )


@lru_cache
def get_settings() -> AmpedSettings:
    """Get cached settings instance."""
    return AmpedSettings()


# Convenience singleton - lazy loaded
class _SettingsProxy:
    """Lazy proxy for settings to avoid loading .env at import time."""

    _instance: AmpedSettings | None = None

    def __getattr__(self, name: str):
        if self._instance is None:
            self._instance = get_settings()
        return getattr(self._instance, name)


settings = _SettingsProxy()
