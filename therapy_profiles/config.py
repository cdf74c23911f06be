"""Library configuration using Pydantic Settings."""

from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_PROFILES_DIRECTORY = Path.home() / "Documents" / "LoopProfile"
_LOG_FORMATS = {"json", "text"}


class Settings(BaseSettings):
    """Settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Storage
    profiles_directory: Path = _DEFAULT_PROFILES_DIRECTORY

    # Logging
    log_format: str = "json"  # 'json' or 'text'
    log_level: str = "INFO"
    service_name: str = "therapy-profiles"

    # Testing
    testing: bool = False

    @field_validator("profiles_directory")
    @classmethod
    def expand_profiles_directory(cls, v: Path) -> Path:
        return v.expanduser()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in _LOG_FORMATS:
            msg = f"log_format must be one of {sorted(_LOG_FORMATS)}"
            raise ValueError(msg)
        return v


settings = Settings()
