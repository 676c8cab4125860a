"""
Configuration and settings for the school portal backend.
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[1]


class DeploymentMode(str, Enum):
    """How the process is driven: its own listener or an on-demand host."""

    LISTENING = "listening"
    EXPORTED = "exported"


class Settings(BaseSettings):
    """Environment-backed settings, resolved once and never mutated."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    # Listener
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=5000)
    idle_timeout_seconds: float = Field(default=120)

    # Runtime environment
    node_env: str = Field(default="production")
    deployment_mode: Optional[DeploymentMode] = Field(default=None)
    vercel: bool = Field(default=False)
    log_level: str = Field(default="info")

    # Database (MongoDB)
    mongodb_uri: Optional[str] = Field(default=None)
    mongodb_db_name: str = Field(default="school_portal")
    mongodb_timeout_ms: int = Field(default=5000)

    # Auth
    jwt_secret: Optional[str] = Field(default=None)
    jwt_expires_hours: int = Field(default=168)

    # Pages and static assets
    project_root: Path = Field(default=PROJECT_ROOT)

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, validation_alias="PORTAL_USE_IN_MEMORY_BACKENDS"
    )

    @property
    def mode(self) -> DeploymentMode:
        if self.deployment_mode is not None:
            return self.deployment_mode
        return DeploymentMode.EXPORTED if self.vercel else DeploymentMode.LISTENING

    @property
    def is_development(self) -> bool:
        return self.node_env == "development"

    @property
    def static_roots(self) -> list[Path]:
        """Directories searched for static assets, in order."""
        roots = [self.project_root]
        if self.mode is DeploymentMode.EXPORTED:
            roots.insert(0, self.project_root / "public")
        return roots


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
