"""Configuration for the DBF engine using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DbfSettings(BaseSettings):
    """Engine defaults, overridable through DBF_* environment variables."""

    model_config = SettingsConfigDict(env_prefix="DBF_")

    default_encoding: str = Field(
        default="latin-1",
        description="Codec for Character fields when the language driver byte is unmapped",
    )
    default_version: int = Field(default=0x03, ge=0, le=0xFF, description="Version byte for new files")
    default_language_driver: int = Field(default=0x00, ge=0, le=0xFF)
    write_eof_marker: bool = True
    log_level: str = "WARNING"
    log_format: Literal["console", "json"] = "console"


@lru_cache
def get_settings() -> DbfSettings:
    """Get cached settings instance."""
    return DbfSettings()
