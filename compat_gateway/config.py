"""Gateway configuration management.

Configuration sources (in priority order):
1. Config file (config.yaml)
2. Environment variables (GATEWAY_ prefix, ``__`` for nesting)
3. Defaults
"""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    host: str = "0.0.0.0"
    port: int = 8000


class DatabaseConfig(BaseModel):
    """Database configuration."""

    # Any async SQLAlchemy URL works, e.g. postgresql+asyncpg://
    url: str = "sqlite+aiosqlite:///./compat_gateway.db"
    echo: bool = False


class LoggingConfig(BaseModel):
    """structlog configuration."""

    level: str = "info"
    json_format: bool = True


class SecurityConfig(BaseModel):
    """Credential and operator access configuration."""

    # Every issued credential starts with this prefix
    credential_prefix: str = "imei_"

    # Operator endpoints are disabled while this is unset
    admin_token: str | None = None

    # Reverse proxies in front of the app; 0 ignores X-Forwarded-For
    trusted_proxy_hops: int = Field(default=0, ge=0)


class RateLimitTier(BaseModel):
    """A (window, max requests) pair."""

    window_seconds: int = 3600
    max_requests: int = 100

    @property
    def window(self) -> timedelta:
        return timedelta(seconds=self.window_seconds)


class RateLimitConfig(BaseModel):
    """Rate limiting configuration.

    strategy:
    - memory: in-process sliding window, seeded from the usage ledger
    - ledger: one count query against the usage ledger per request
    """

    strategy: Literal["memory", "ledger"] = "memory"
    default_tier: str = "standard"
    tiers: dict[str, RateLimitTier] = Field(
        default_factory=lambda: {
            "standard": RateLimitTier(window_seconds=3600, max_requests=100),
            "elevated": RateLimitTier(window_seconds=3600, max_requests=500),
            "premium": RateLimitTier(window_seconds=3600, max_requests=1000),
        }
    )

    # Fixed window per origin address for requests without credentials
    address: RateLimitTier = Field(
        default_factory=lambda: RateLimitTier(window_seconds=3600, max_requests=100)
    )

    def tier_for(self, name: str | None) -> RateLimitTier:
        """Resolve a tier by name, falling back to the default tier."""
        if name and name in self.tiers:
            return self.tiers[name]
        return self.tiers.get(self.default_tier, RateLimitTier())


class CacheConfig(BaseModel):
    """Lookup cache configuration."""

    carriers_ttl_hours: int = 720  # 30 days
    pricing_ttl_hours: int = 24
    isp_ttl_hours: int = 24
    voice_ttl_hours: int = 720

    # Share one compute() between concurrent misses on the same key
    dedupe_inflight: bool = False


class UpstreamConfig(BaseModel):
    """External collaborator endpoints.

    A collaborator without a URL falls back to its static implementation.
    """

    timeout_seconds: float = 15.0
    api_key: str | None = None

    carriers_url: str | None = None
    pricing_url: str | None = None
    isp_url: str | None = None
    voice_url: str | None = None
    device_url: str | None = None


class UsageConfig(BaseModel):
    """Usage recorder configuration."""

    queue_size: int = 10_000  # events beyond this are dropped
    workers: int = 1
    batch_size: int = 100


class AbuseConfig(BaseModel):
    """Abuse monitor configuration."""

    enabled: bool = True
    error_threshold: int = 50
    window_seconds: int = 3600


class MaintenanceConfig(BaseModel):
    """Periodic maintenance configuration."""

    enabled: bool = True
    run_on_startup: bool = False
    interval_seconds: int = 300
    usage_retention_days: int = 90


class Settings(BaseSettings):
    """Gateway application settings."""

    model_config = SettingsConfigDict(
        env_prefix="GATEWAY_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    server: ServerConfig = Field(default_factory=ServerConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    upstream: UpstreamConfig = Field(default_factory=UpstreamConfig)
    usage: UsageConfig = Field(default_factory=UsageConfig)
    abuse: AbuseConfig = Field(default_factory=AbuseConfig)
    maintenance: MaintenanceConfig = Field(default_factory=MaintenanceConfig)


def _load_config_file() -> dict:
    """Load configuration from YAML file if exists.

    Looks for config file in order:
    1. GATEWAY_CONFIG_FILE environment variable
    2. ./config.yaml
    3. /etc/compat-gateway/config.yaml
    """
    import os

    config_paths = [
        os.environ.get("GATEWAY_CONFIG_FILE"),
        Path("config.yaml"),
        Path("/etc/compat-gateway/config.yaml"),
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
    """Get cached settings instance."""
    file_config = _load_config_file()
    return Settings(**file_config)
