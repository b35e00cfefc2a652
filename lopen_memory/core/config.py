"""Configuration management for lopen-memory."""

import logging
from pathlib import Path
from typing import Optional, Union

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DB_RELATIVE = Path(".lopen-memory") / "lopen-memory.db"
DEFAULT_SKILLS_RELATIVE = Path(".agents") / "skills"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class Settings(BaseSettings):
    """Global lopen-memory configuration loaded from environment variables."""

    # Database location (--db flag takes precedence)
    db_path: Optional[str] = Field(None, alias="LOPEN_MEMORY_DB")

    # Seconds to wait on a locked database before giving up
    busy_timeout: float = Field(5.0, alias="LOPEN_MEMORY_BUSY_TIMEOUT")

    # Logging configuration
    log_level: str = Field("WARNING", alias="LOPEN_MEMORY_LOG_LEVEL")

    # Agent skill installation target
    skills_dir: Optional[str] = Field(None, alias="AGENTS_SKILLS_DIR")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the allowed values."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"LOPEN_MEMORY_LOG_LEVEL must be one of {allowed}, got: {v}")
        return v_upper

    @field_validator("busy_timeout")
    @classmethod
    def validate_busy_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"LOPEN_MEMORY_BUSY_TIMEOUT must be positive, got: {v}")
        return v

    def resolve_db_path(self, override: Optional[Union[str, Path]] = None) -> Path:
        """Pick the database file: explicit override, then env, then ~/.lopen-memory."""
        if override:
            return Path(override).expanduser()
        if self.db_path:
            return Path(self.db_path).expanduser()
        return Path.home() / DEFAULT_DB_RELATIVE

    def resolve_skills_dir(self, override: Optional[Union[str, Path]] = None) -> Path:
        """Pick the skills directory: explicit override, then env, then ~/.agents/skills."""
        if override:
            return Path(override).expanduser()
        if self.skills_dir:
            return Path(self.skills_dir).expanduser()
        return Path.home() / DEFAULT_SKILLS_RELATIVE


def load_settings() -> Settings:
    """Load settings from the environment (and .env in the current directory)."""
    return Settings()


def configure_logging(level: str = "WARNING") -> None:
    """Send log records to stderr so command output stays clean."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )
