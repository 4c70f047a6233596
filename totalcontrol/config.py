"""
TotalControl - Configuration

Settings come from TOTALCONTROL_* environment variables or a .env file.
Data files default into ~/.totalcontrol.
"""
import os
from datetime import timedelta
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def default_data_dir() -> Path:
    return Path(os.path.expanduser("~")) / ".totalcontrol"


class Settings(BaseSettings):
    data_dir: Path = Field(default_factory=default_data_dir)
    rules_file: str = ""
    pending_file: str = ""
    progress_file: str = ""
    weakening_delay_seconds: int = 3600
    tick_interval_seconds: int = 60
    log_level: str = "INFO"
    log_file: str = ""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="TOTALCONTROL_",
        extra="ignore",
    )

    @field_validator("weakening_delay_seconds", "tick_interval_seconds")
    @classmethod
    def validate_non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("Durations must not be negative")
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        value = value.upper()
        if value not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level {value!r}")
        return value

    @property
    def weakening_delay(self) -> timedelta:
        return timedelta(seconds=self.weakening_delay_seconds)

    def path_for(self, name: str) -> str:
        """Configured path for rules/pending/progress, defaulting into data_dir"""
        configured = getattr(self, f"{name}_file")
        return configured or str(self.data_dir / f"{name}.json")


def get_settings() -> Settings:
    return Settings()
