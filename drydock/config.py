"""Drydock configuration management.

Configuration sources (in priority order):
1. Environment variables (DRYDOCK_ prefix)
2. Config file (config.yaml)
3. Defaults
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

import pydantic
import yaml
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from drydock.errors import ConfigError


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    host: str = "0.0.0.0"
    port: int = 8000


class DatabaseConfig(BaseModel):
    """Database configuration."""

    # Any async SQLAlchemy URL works, e.g. postgresql+asyncpg://
    url: str = "sqlite+aiosqlite:///./drydock.db"
    echo: bool = False


class PoolConfig(BaseModel):
    """Pool sizing and lifecycle limits."""

    min_pool_size: int = Field(default=3, ge=0)
    max_pool_size: int = Field(default=10, ge=1)
    provisioning_timeout_seconds: int = Field(default=600, gt=0)  # 10 minutes
    max_batch_size: int = Field(default=5, ge=1)
    failed_retention_seconds: int = Field(default=86400, ge=0)
    claim_max_attempts: int = Field(default=3, ge=1)

    @model_validator(mode="after")
    def _check_bounds(self) -> "PoolConfig":
        if self.min_pool_size > self.max_pool_size:
            raise ValueError(
                f"min_pool_size ({self.min_pool_size}) must not exceed "
                f"max_pool_size ({self.max_pool_size})"
            )
        return self


class ProviderConfig(BaseModel):
    """Cloud provider configuration."""

    type: Literal["hetzner"] = "hetzner"
    api_url: str = "https://api.hetzner.cloud/v1"
    api_token: str | None = None
    server_type: str = "cx23"
    image: str = "ubuntu-24.04"
    location: str = "nbg1"
    ssh_key_ids: list[str] = Field(default_factory=list)
    # Cloud-init script handed to every pool server, opaque to drydock
    user_data_file: str | None = None
    labels: dict[str, str] = Field(default_factory=lambda: {"service": "drydock"})
    request_timeout: float = 30.0
    max_concurrency: int = Field(default=4, ge=1)


class HealthProbeConfig(BaseModel):
    """Application-level health check run against booted pool servers."""

    enabled: bool = True
    scheme: Literal["http", "https"] = "http"
    port: int = 18789
    path: str = "/health"
    timeout: float = 5.0


class SecurityConfig(BaseModel):
    """Security configuration."""

    # Shared bearer secret for /internal endpoints; unset disables them
    internal_secret: str | None = None
    admin_api_keys: list[str] = Field(default_factory=list)
    api_keys: list[str] = Field(default_factory=list)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    json_output: bool = False


class Settings(BaseSettings):
    """Drydock application settings."""

    model_config = SettingsConfigDict(
        env_prefix="DRYDOCK_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    server: ServerConfig = Field(default_factory=ServerConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    pool: PoolConfig = Field(default_factory=PoolConfig)
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    health_probe: HealthProbeConfig = Field(default_factory=HealthProbeConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _load_config_file() -> dict:
    """Load configuration from YAML file if exists.

    Looks for config file in order:
    1. DRYDOCK_CONFIG_FILE environment variable
    2. ./config.yaml
    3. /etc/drydock/config.yaml
    """
    import os

    config_paths = [
        os.environ.get("DRYDOCK_CONFIG_FILE"),
        Path("config.yaml"),
        Path("/etc/drydock/config.yaml"),
    ]

    for path in config_paths:
        if path is None:
            continue
        path = Path(path)
        if path.exists():
            with open(path) as f:
                return yaml.safe_load(f) or {}

    return {}


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Raises:
        ConfigError: If the merged configuration is invalid
            (for example min_pool_size > max_pool_size).
    """
    file_config = _load_config_file()

    try:
        return Settings(**file_config)
    except pydantic.ValidationError as exc:
        raise ConfigError(
            "Invalid drydock configuration",
            details={"errors": exc.errors(include_url=False, include_context=False)},
        ) from exc
