"""
Configuration for the disaster preparedness API.
"""

from __future__ import annotations

from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_JWT_SECRET = "your-secret-key-here"


class Settings(BaseSettings):
    """Environment-backed settings, read once at startup."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", frozen=True
    )

    port: int = Field(default=5000)

    # MongoDB
    mongodb_uri: str = Field(default="mongodb://localhost:27017")
    database_name: str = Field(default="disaster_preparedness")

    # Bearer tokens
    jwt_secret: str = Field(default=DEFAULT_JWT_SECRET)
    jwt_algorithm: str = Field(default="HS256")
    jwt_expires_hours: int = Field(default=24)

    # Password hashing work factor
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    @property
    def uses_default_secret(self) -> bool:
        return self.jwt_secret == DEFAULT_JWT_SECRET


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
