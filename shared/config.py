"""
Shared configuration management for the CO2 Data Proxy.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="CO2PROXY_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Key-value store
    store_backend: str = Field(default="redis")  # "redis" or "memory"
    redis_url: str = Field(default="redis://localhost:6379/0")

    # Upstream feed
    upstream_url: str = Field(default="https://gml.noaa.gov/webdata/ccgg/trends/co2/co2_daily_mlo.txt")
    upstream_timeout_seconds: float = Field(default=5.0)
    upstream_user_agent: str = Field(default="CO2 Data Proxy Service")

    # Rate limiting
    rate_limit_requests: int = Field(default=100)
    rate_limit_window_seconds: int = Field(default=15 * 60)
    rate_limit_key_prefix: str = Field(default="ratelimit_")

    # Response cache
    cache_duration_seconds: int = Field(default=60 * 60)
    cache_key: str = Field(default="co2_cache")

    # Resilience
    circuit_breaker_failure_threshold: int = Field(default=5)
    circuit_breaker_recovery_timeout: float = Field(default=30.0)
    single_flight_enabled: bool = Field(default=False)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
