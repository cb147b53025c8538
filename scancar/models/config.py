"""Configuration management for the listing aggregator."""

import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h|d)?\s*$", re.IGNORECASE)
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0, "d": 86400.0}

# Environment variable overrides
ENV_MAPPINGS = {
    "CACHE_TTL_MS": "snapshot_ttl",
    "CACHE_TTL": "snapshot_ttl",
    "SCANCAR_SNAPSHOT_TTL": "snapshot_ttl",
    "SCANCAR_DETAIL_TTL": "detail_ttl",
    "SCANCAR_REFRESH_SCHEDULE": "refresh_schedule",
    "SCANCAR_REFRESH_TIMEZONE": "refresh_timezone",
    "SCANCAR_SCHEDULER_ENABLED": "scheduler_enabled",
    "SCANCAR_SNAPSHOT_PATH": "snapshot_path",
    "SCANCAR_NEW_CAR_SNAPSHOT_PATH": "new_car_snapshot_path",
    "SCANCAR_SOURCES": "sources",
    "SCANCAR_HOST": "host",
    "PORT": "port",
    "SCANCAR_PORT": "port",
    "SCANCAR_LOG_LEVEL": "log_level",
    "SCANCAR_CONNECT_TIMEOUT": "connect_timeout",
    "SCANCAR_READ_TIMEOUT": "read_timeout",
}
LIST_FIELDS = frozenset({"sources", "new_car_sources"})
# Bare numbers in these variables are milliseconds
MILLISECOND_VARS = frozenset({"CACHE_TTL_MS"})


def parse_duration(value: Union[int, float, str]) -> float:
    """
    Parse a duration into seconds.

    Accepts plain numbers (seconds) or strings with a unit suffix:
    ``"900"``, ``"15m"``, ``"2h"``, ``"1.5d"``, ``"250ms"``.

    Raises:
        ValueError: If the value cannot be parsed
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    match = _DURATION_RE.match(str(value))
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    return float(amount) * _DURATION_UNITS[(unit or "s").lower()]


class ProviderConfig(BaseModel):
    """Per-provider override of origin settings."""
    id: str = Field(description="Provider identifier, e.g. 'bonbanh'")
    base_url: Optional[str] = Field(default=None, description="Base URL for relative links")
    allowed_hosts: Optional[List[str]] = Field(
        default=None,
        description="Hosts detail fetches may target; '*.example.com' matches subdomains",
    )

    @field_validator('base_url')
    @classmethod
    def validate_base_url(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.startswith(('http://', 'https://')):
            raise ValueError(f"URL must start with http:// or https://, got: {v}")
        return v

    @field_validator('allowed_hosts')
    @classmethod
    def normalize_hosts(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        hosts = [host.strip().lower() for host in v if host and host.strip()]
        if not hosts:
            raise ValueError("allowed_hosts must not be empty")
        return hosts


class AppConfig(BaseModel):
    """Main service configuration."""

    model_config = ConfigDict(extra="forbid")

    # Snapshot freshness
    snapshot_ttl: float = Field(default=900.0, description="Seconds before a snapshot is stale")
    stale_retry_interval: float = Field(
        default=60.0, description="Seconds to wait after a failed background refresh"
    )

    # Detail cache
    detail_ttl: float = Field(default=1800.0, description="Seconds a detail record stays cached")
    detail_cache_size: int = Field(default=256, description="Maximum cached detail records")

    # Scheduled refresh
    scheduler_enabled: bool = Field(default=True, description="Run the periodic refresh job")
    refresh_schedule: str = Field(default="*/30 * * * *", description="Crontab expression")
    refresh_timezone: str = Field(default="Asia/Ho_Chi_Minh", description="Timezone for the schedule")

    # Durable storage
    snapshot_path: Optional[str] = Field(default="data/snapshot.json")
    new_car_snapshot_path: Optional[str] = Field(default="data/new-cars.json")

    # Sources
    sources: List[str] = Field(
        default=["xeluottoantrung", "otoanhluong", "bonbanh", "chotot"],
        description="Providers feeding the used-car snapshot, in registry order",
    )
    new_car_sources: List[str] = Field(default=["vcar"], description="Providers feeding the price list")
    providers: List[ProviderConfig] = Field(default_factory=list)

    # HTTP client
    connect_timeout: float = Field(default=5.0, description="HTTP connect timeout in seconds")
    read_timeout: float = Field(default=20.0, description="HTTP read timeout in seconds")
    max_retries: int = Field(default=2, description="Retries after the first attempt")
    retry_base_delay: float = Field(default=0.5, description="Base delay for exponential backoff")
    retry_max_delay: float = Field(default=4.0, description="Maximum retry delay")
    retry_jitter_max: float = Field(default=0.5, description="Maximum jitter for retry delay")
    retryable_status_codes: List[int] = Field(default=[429, 502, 503, 504])

    # Per-host politeness
    requests_per_second: float = Field(default=5.0, description="Requests per second per host")
    rate_limit_tokens: int = Field(default=5, description="Token bucket size per host")

    # Secondary request pool
    enrichment_workers: int = Field(default=4, description="Workers for secondary page fetches")
    enrichment_timeout: float = Field(default=15.0, description="Per-request timeout in the pool")

    # Web server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000)

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator(
        'snapshot_ttl', 'stale_retry_interval', 'detail_ttl', 'enrichment_timeout', mode='before'
    )
    @classmethod
    def validate_duration(cls, v: Any) -> float:
        seconds = parse_duration(v)
        if seconds <= 0:
            raise ValueError(f"duration must be positive, got: {v}")
        return seconds

    @field_validator('detail_cache_size', 'enrichment_workers', 'rate_limit_tokens')
    @classmethod
    def validate_positive_int(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"value must be positive, got: {v}")
        return v

    @field_validator('requests_per_second')
    @classmethod
    def validate_rate(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"requests_per_second must be positive, got: {v}")
        return v

    @field_validator('max_retries')
    @classmethod
    def validate_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"max_retries must not be negative, got: {v}")
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level: {v}")
        return level

    @field_validator('snapshot_path', 'new_car_snapshot_path')
    @classmethod
    def empty_path_disables(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v

    def provider_override(self, provider_id: str) -> Optional[ProviderConfig]:
        """Return the configured override for a provider, if any."""
        for provider in self.providers:
            if provider.id == provider_id:
                return provider
        return None

    @classmethod
    def env_overrides(cls, environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """Collect raw field values from environment variables.

        Later entries in ``ENV_MAPPINGS`` win when two variables map to the
        same field, so ``SCANCAR_PORT`` beats the generic ``PORT``.
        """
        environ = os.environ if environ is None else environ
        overrides: Dict[str, Any] = {}
        for env_var, field_name in ENV_MAPPINGS.items():
            if env_var not in environ:
                continue
            value: Any = environ[env_var]
            if field_name in LIST_FIELDS:
                value = [item.strip() for item in value.split(",") if item.strip()]
            elif env_var in MILLISECOND_VARS:
                match = _DURATION_RE.match(value)
                if match and match.group(2) is None:
                    value = f"{match.group(1)}ms"
            overrides[field_name] = value
        return overrides

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create configuration from defaults plus environment overrides."""
        return cls(**cls.env_overrides())


class ConfigManager:
    """Manages configuration loading with override precedence."""

    def __init__(self, config_file: Optional[Path] = None):
        self.config_file = Path(config_file) if config_file else Path("config/config.yaml")
        self._config: Optional[AppConfig] = None

    def load_config(self, cli_overrides: Optional[Dict] = None) -> AppConfig:
        """
        Load configuration with override precedence: CLI > ENV > YAML > defaults.

        Args:
            cli_overrides: Optional dictionary of CLI flag overrides; ``None``
                values are ignored

        Returns:
            Fully merged AppConfig instance

        Raises:
            pydantic.ValidationError: If the merged configuration is invalid
        """
        merged: Dict[str, Any] = {}

        if self.config_file.exists():
            with open(self.config_file, 'r', encoding='utf-8') as f:
                yaml_config = yaml.safe_load(f)
            if yaml_config:
                merged.update(yaml_config)

        merged.update(AppConfig.env_overrides())

        if cli_overrides:
            merged.update({k: v for k, v in cli_overrides.items() if v is not None})

        self._config = AppConfig(**merged)
        return self._config

    @property
    def config(self) -> AppConfig:
        """Get the loaded configuration."""
        if self._config is None:
            self._config = self.load_config()
        return self._config
