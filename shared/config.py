"""
Shared configuration management for the Unit Query gateway.
"""

from typing import Optional, Tuple

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


PLACEHOLDER_API_KEY = "REPLACE_WITH_A_LONG_RANDOM_SECRET"


def _env(*names: str) -> AliasChoices:
    return AliasChoices(*names)


def _split_csv(value: Optional[str]) -> Tuple[str, ...]:
    if not value:
        return ()
    seen = []
    for item in value.split(","):
        item = item.strip()
        if item and item not in seen:
            seen.append(item)
    return tuple(seen)


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local", validation_alias=_env("ACCESS_ENV", "env"))
    log_level: str = Field(default="info", validation_alias=_env("ACCESS_LOG_LEVEL", "log_level"))

    # External services
    redis_url: str = Field(default="redis://localhost:6379/0", validation_alias=_env("ACCESS_REDIS_URL", "redis_url"))


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str = "unit_query"
    port: int = 8000
    host: str = "0.0.0.0"


class UnitQuerySettings(ServiceConfig):
    """Settings for the Unit query endpoint."""

    # Inbound credential
    api_key: Optional[str] = Field(default=None, validation_alias=_env("UNIT_QUERY_API_KEY", "api_key"))

    # Upstream Salesforce
    token_file: str = Field(
        default="./.secrets/sf_bearer_token",
        validation_alias=_env("SF_BEARER_TOKEN_FILE", "token_file"),
    )
    instance_url: str = Field(
        default="https://nosoftware-platform-1391.my.salesforce.com",
        validation_alias=_env("SF_INSTANCE_URL", "instance_url"),
    )
    api_version: str = Field(default="v61.0", validation_alias=_env("SF_API_VERSION", "api_version"))
    sobject: str = Field(default="Unit__c", validation_alias=_env("UNIT_QUERY_SOBJECT", "sobject"))
    upstream_timeout: float = Field(default=30.0, validation_alias=_env("UNIT_QUERY_UPSTREAM_TIMEOUT", "upstream_timeout"))

    # Response cache
    cache_backend: str = Field(default="file", validation_alias=_env("UNIT_QUERY_CACHE_BACKEND", "cache_backend"))
    cache_dir: str = Field(default="./.cache", validation_alias=_env("UNIT_QUERY_CACHE_DIR", "cache_dir"))
    cache_ttl_seconds: int = Field(default=300, validation_alias=_env("UNIT_QUERY_CACHE_TTL", "cache_ttl_seconds"))

    # Pagination
    max_limit: int = Field(default=200, validation_alias=_env("UNIT_QUERY_MAX_LIMIT", "max_limit"))
    max_offset: int = Field(default=2000, validation_alias=_env("UNIT_QUERY_MAX_OFFSET", "max_offset"))

    # Filter policy, comma-separated; empty means "no default" / "no gating"
    default_status: str = Field(default="", validation_alias=_env("UNIT_QUERY_DEFAULT_STATUS", "default_status"))
    status_allowlist: str = Field(default="", validation_alias=_env("UNIT_QUERY_STATUS_ALLOWLIST", "status_allowlist"))
    sub_status_allowlist: str = Field(
        default="",
        validation_alias=_env("UNIT_QUERY_SUB_STATUS_ALLOWLIST", "sub_status_allowlist"),
    )
    unit_model_allowlist: str = Field(
        default="",
        validation_alias=_env("UNIT_QUERY_MODEL_ALLOWLIST", "unit_model_allowlist"),
    )

    @property
    def default_status_values(self) -> Tuple[str, ...]:
        return _split_csv(self.default_status)

    @property
    def allowlists(self) -> dict:
        """Configured enum allow-lists keyed by query parameter."""
        return {
            "status": _split_csv(self.status_allowlist),
            "sub_status": _split_csv(self.sub_status_allowlist),
            "model": _split_csv(self.unit_model_allowlist),
        }


def get_config(service_name: str = "unit_query", port: int = 8000, **overrides) -> UnitQuerySettings:
    """Get configuration for the service."""
    return UnitQuerySettings(service_name=service_name, port=port, **overrides)
