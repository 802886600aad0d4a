"""
Data Acquisition Layer - Configuration.

============================================================
CONFIGURATION SOURCES
============================================================

Loaded in order, later sources override earlier ones:
- Default values
- YAML config file (global section + one section per bridge)
- Environment variables (a .env file is honoured)

============================================================
ENVIRONMENT VARIABLES
============================================================
- POLYPATH_UPDATE_INTERVAL
- POLYPATH_CACHE_TTL
- POLYPATH_LOG_LEVEL
- POLYPATH_REQUEST_TIMEOUT
- POLYPATH_DATABASE_URL

============================================================
"""

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from dotenv import load_dotenv

from polypath_dal.exceptions import ConfigurationError
from polypath_dal.models import ProviderConfig, QuotePair


logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Bridge section keys mapped onto ProviderConfig fields; anything else lands in extra
_BRIDGE_KEYS = {"base_url", "chains", "fees", "fee_rate", "quote_endpoint", "guardian_count", "cache_ttl", "pairs"}


@dataclass(frozen=True)
class DALSettings:
    """
    Global settings plus the provider set.

    update_interval and cache_ttl come straight from the global section.
    request_timeout is the per-provider deadline inside one refresh batch.
    """
    update_interval: float = 60.0
    cache_ttl: float = 120.0
    log_level: str = "INFO"
    request_timeout: float = 10.0
    max_retries: int = 0
    failure_alert_threshold: int = 3
    database_url: Optional[str] = None
    providers: tuple[ProviderConfig, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        for key in ("update_interval", "cache_ttl", "request_timeout"):
            if getattr(self, key) <= 0:
                raise ConfigurationError(
                    message=f"{key} must be positive, got {getattr(self, key)}",
                    config_key=key,
                )
        if self.max_retries < 0:
            raise ConfigurationError(message="max_retries must be >= 0", config_key="max_retries")
        if self.failure_alert_threshold < 1:
            raise ConfigurationError(
                message="failure_alert_threshold must be >= 1",
                config_key="failure_alert_threshold",
            )
        if self.log_level.upper() not in LOG_LEVELS:
            raise ConfigurationError(
                message=f"Unknown log_level '{self.log_level}'",
                config_key="log_level",
            )
        object.__setattr__(self, "log_level", self.log_level.upper())

    def get_provider(self, name: str) -> Optional[ProviderConfig]:
        for provider in self.providers:
            if provider.name == name:
                return provider
        return None

    def provider_names(self) -> list[str]:
        return [provider.name for provider in self.providers]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DALSettings":
        """
        Build settings from a parsed config document.

        Raises:
            ConfigurationError: Missing or malformed keys
        """
        if not isinstance(data, dict):
            raise ConfigurationError(message="Config document must be a mapping")

        global_section = data.get("global") or {}
        bridges = data.get("bridges") or {}
        if not isinstance(global_section, dict):
            raise ConfigurationError(message="'global' must be a mapping", config_key="global")
        if not isinstance(bridges, dict):
            raise ConfigurationError(message="'bridges' must be a mapping", config_key="bridges")

        providers = tuple(
            _parse_provider(name, section)
            for name, section in bridges.items()
        )

        try:
            return cls(
                update_interval=float(global_section.get("update_interval", cls.update_interval)),
                cache_ttl=float(global_section.get("cache_ttl", cls.cache_ttl)),
                log_level=str(global_section.get("log_level", cls.log_level)),
                request_timeout=float(global_section.get("request_timeout", cls.request_timeout)),
                max_retries=int(global_section.get("max_retries", cls.max_retries)),
                failure_alert_threshold=int(
                    global_section.get("failure_alert_threshold", cls.failure_alert_threshold)
                ),
                database_url=global_section.get("database_url"),
                providers=providers,
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                message=f"Invalid value in global section: {e}",
                config_key="global",
                original_error=e,
            )

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "DALSettings":
        """Load settings from a YAML file."""
        path = Path(path)
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigurationError(
                message=f"Cannot read config file {path}: {e}",
                original_error=e,
            )
        except yaml.YAMLError as e:
            raise ConfigurationError(
                message=f"Malformed YAML in {path}: {e}",
                original_error=e,
            )

        settings = cls.from_dict(data or {})
        logger.info(f"Loaded {len(settings.providers)} providers from {path}")
        return settings

    def with_env_overrides(self, environ: Optional[dict[str, str]] = None) -> "DALSettings":
        """
        Apply POLYPATH_* environment overrides.

        Args:
            environ: Mapping to read instead of os.environ (loads .env first when omitted)
        """
        if environ is None:
            load_dotenv()
            environ = dict(os.environ)

        overrides: dict[str, Any] = {}
        try:
            if environ.get("POLYPATH_UPDATE_INTERVAL"):
                overrides["update_interval"] = float(environ["POLYPATH_UPDATE_INTERVAL"])
            if environ.get("POLYPATH_CACHE_TTL"):
                overrides["cache_ttl"] = float(environ["POLYPATH_CACHE_TTL"])
            if environ.get("POLYPATH_REQUEST_TIMEOUT"):
                overrides["request_timeout"] = float(environ["POLYPATH_REQUEST_TIMEOUT"])
        except ValueError as e:
            raise ConfigurationError(
                message=f"Invalid numeric environment override: {e}",
                original_error=e,
            )
        if environ.get("POLYPATH_LOG_LEVEL"):
            overrides["log_level"] = environ["POLYPATH_LOG_LEVEL"]
        if environ.get("POLYPATH_DATABASE_URL"):
            overrides["database_url"] = environ["POLYPATH_DATABASE_URL"]

        if not overrides:
            return self

        logger.debug(f"Applying environment overrides: {sorted(overrides)}")
        return replace(self, **overrides)


def load_settings(path: Union[str, Path], use_env: bool = True) -> DALSettings:
    """Load settings from YAML, then apply environment overrides."""
    settings = DALSettings.from_yaml(path)
    if use_env:
        settings = settings.with_env_overrides()
    return settings


def _parse_provider(name: str, section: Any) -> ProviderConfig:
    """Build a ProviderConfig from one bridge section."""
    if not isinstance(section, dict):
        raise ConfigurationError(
            message=f"Bridge section '{name}' must be a mapping",
            provider=name,
            config_key=f"bridges.{name}",
        )

    base_url = section.get("base_url")
    if not base_url:
        raise ConfigurationError(
            message=f"Bridge '{name}' is missing base_url",
            provider=name,
            config_key=f"bridges.{name}.base_url",
        )

    chains = section.get("chains")
    if not chains or not isinstance(chains, list):
        raise ConfigurationError(
            message=f"Bridge '{name}' needs a non-empty chains list",
            provider=name,
            config_key=f"bridges.{name}.chains",
        )

    # "fees" is the historical key
    fee_rate = section.get("fee_rate", section.get("fees"))

    try:
        pairs = tuple(QuotePair.from_dict(pair) for pair in section.get("pairs") or [])
        provider = ProviderConfig(
            name=str(name),
            base_url=str(base_url),
            chains=frozenset(str(chain) for chain in chains),
            fee_rate=float(fee_rate) if fee_rate is not None else None,
            quote_endpoint=section.get("quote_endpoint"),
            guardian_count=int(section["guardian_count"]) if section.get("guardian_count") is not None else None,
            cache_ttl=float(section["cache_ttl"]) if section.get("cache_ttl") is not None else None,
            pairs=pairs,
            extra={key: value for key, value in section.items() if key not in _BRIDGE_KEYS},
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigurationError(
            message=f"Invalid value in bridge '{name}': {e}",
            provider=name,
            config_key=f"bridges.{name}",
            original_error=e,
        )

    if provider.fee_rate is not None and not 0.0 <= provider.fee_rate < 1.0:
        raise ConfigurationError(
            message=f"Bridge '{name}' fee rate must be a fraction in [0, 1)",
            provider=name,
            config_key=f"bridges.{name}.fees",
        )
    if provider.cache_ttl is not None and provider.cache_ttl <= 0:
        raise ConfigurationError(
            message=f"Bridge '{name}' cache_ttl must be positive",
            provider=name,
            config_key=f"bridges.{name}.cache_ttl",
        )
    return provider
