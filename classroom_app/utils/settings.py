"""Deployment settings read from the environment or a ``.env`` file."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from classroom_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT


class ClassroomSettings(BaseSettings):
    """Settings with the ``CLASSROOM_`` prefix, e.g. ``CLASSROOM_PORT=9000``."""

    model_config = SettingsConfigDict(env_prefix="CLASSROOM_", env_file=".env", extra="ignore")

    host: str = Field(default=DEFAULT_HOST, description="Interface the API server binds to")
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535, description="API server port")
    log_level: str = Field(default="INFO", description="Root logging level")
    shuffle_seed: int | None = Field(default=None, description="Seed for question shuffling; random when unset")


@lru_cache()
def get_settings() -> ClassroomSettings:
    """Return a cached ``ClassroomSettings`` instance."""
    return ClassroomSettings()
