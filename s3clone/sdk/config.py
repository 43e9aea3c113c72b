"""Configuration management for the s3clone SDK."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field


class ClientConfig(BaseModel):
    """Connection settings for one storage client.

    A dispatcher owns the config it was built with and never mutates it,
    so instances are frozen.
    """

    model_config = ConfigDict(frozen=True)

    base_url: str = Field(default="http://localhost:8080")
    api_key: Optional[str] = Field(default=None)
    timeout_seconds: float = Field(default=30.0, gt=0)

    # Connection pool bounds
    max_connections: int = Field(default=100, ge=1)
    max_connections_per_route: int = Field(default=20, ge=1)
    idle_eviction_seconds: float = Field(default=30.0, gt=0)

    @classmethod
    def from_environment(cls, **overrides) -> "ClientConfig":
        """Create configuration from ``S3CLONE_*`` environment variables.

        Keyword arguments take precedence over the environment.
        """
        config_data: dict[str, object] = {}
        for field_name, env_key in _ENV_KEYS.items():
            if (value := os.getenv(env_key)) not in (None, ""):
                config_data[field_name] = value
        config_data.update(overrides)
        return cls(**config_data)

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)


_ENV_KEYS = {
    "base_url": "S3CLONE_BASE_URL",
    "api_key": "S3CLONE_API_KEY",
    "timeout_seconds": "S3CLONE_TIMEOUT",
    "max_connections": "S3CLONE_MAX_CONNECTIONS",
    "max_connections_per_route": "S3CLONE_MAX_CONNECTIONS_PER_ROUTE",
    "idle_eviction_seconds": "S3CLONE_IDLE_EVICTION",
}


def load_dotenv_for_sdk(path: Optional[Path] = None, *, override: bool = False) -> None:
    """Load environment variables from a .env file.

    Without an explicit path, ``.env.<S3CLONE_ENV>`` in the working directory
    is tried first, then plain ``.env``.
    """
    if path is None:
        mode = os.getenv("S3CLONE_ENV", "").lower()
        path = Path.cwd() / (f".env.{mode}" if mode else ".env")

        # If the environment-specific file doesn't exist, try the default .env file
        if not path.exists():
            default_env = Path.cwd() / ".env"
            if default_env.exists():
                path = default_env

    if path.exists():
        load_dotenv(path, override=override)
