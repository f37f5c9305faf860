"""ics2gcal.config_loader

Config loader for ics2gcal.

- Reads YAML with PyYAML ``safe_load`` (JSON files load as well, being YAML).
- Environment variables override values from the file.
- Exposes a typed dataclass ``Config`` and a ``load_config()`` helper that
  accepts an optional path override.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .core.timezone_utils import normalize_timezone_name
from .destination.gcal_client import DEFAULT_API_BASE_URL
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = "ics2gcal.yaml"
DEFAULT_REQUEST_TIMEOUT = 30.0

# Environment variable -> config key
ENV_OVERRIDES = {
    "ICS2GCAL_CALENDAR_ID": "calendar_id",
    "ICS2GCAL_ACCESS_TOKEN": "access_token",
    "ICS2GCAL_TIMEZONE": "timezone",
    "ICS2GCAL_LOG_LEVEL": "log_level",
}


@dataclass
class Config:
    """Typed configuration for ics2gcal.

    Fields:
        calendar_id: destination Google calendar id
        access_token: OAuth 2.0 bearer token for the Calendar API
        api_base_url: Calendar API root
        timezone: IANA zone for imported timed events (local zone if unset)
        request_timeout: HTTP read timeout in seconds
        log_level: logging level name
    """

    calendar_id: str | None = None
    access_token: str | None = None
    api_base_url: str = DEFAULT_API_BASE_URL
    timezone: str | None = None
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Config:
        """Create Config from a plain mapping, applying defaults and validation.

        Numeric values are coerced, unknown timezones are dropped with a
        warning, and empty strings count as unset.
        """
        if data is None:
            data = {}

        def _optional_str(key: str) -> str | None:
            raw = data.get(key)
            if raw is None:
                return None
            text = str(raw).strip()
            return text or None

        raw_timeout = data.get("request_timeout", DEFAULT_REQUEST_TIMEOUT)
        try:
            request_timeout = float(raw_timeout)
        except (TypeError, ValueError):
            logger.warning(
                "Config request_timeout=%r is not a number; using default %s", raw_timeout, DEFAULT_REQUEST_TIMEOUT
            )
            request_timeout = DEFAULT_REQUEST_TIMEOUT
        if request_timeout <= 0:
            logger.warning("request_timeout %s must be positive; using default %s", request_timeout, DEFAULT_REQUEST_TIMEOUT)
            request_timeout = DEFAULT_REQUEST_TIMEOUT

        timezone = _optional_str("timezone")
        if timezone is not None:
            normalized = normalize_timezone_name(timezone)
            if normalized is None:
                logger.warning("Config timezone %r is not a known zone; using the local zone", timezone)
            timezone = normalized

        return cls(
            calendar_id=_optional_str("calendar_id"),
            access_token=_optional_str("access_token"),
            api_base_url=_optional_str("api_base_url") or DEFAULT_API_BASE_URL,
            timezone=timezone,
            request_timeout=request_timeout,
            log_level=(_optional_str("log_level") or "INFO").upper(),
        )

    def require_access_token(self) -> str:
        """Return the access token or raise ConfigurationError."""
        if not self.access_token:
            raise ConfigurationError(
                "No access token configured; set access_token, ICS2GCAL_ACCESS_TOKEN or --token"
            )
        return self.access_token

    def require_calendar_id(self) -> str:
        """Return the destination calendar id or raise ConfigurationError."""
        if not self.calendar_id:
            raise ConfigurationError(
                "No destination calendar configured; set calendar_id, ICS2GCAL_CALENDAR_ID or --calendar-id"
            )
        return self.calendar_id


def _load_yaml(path: Path) -> Any:
    try:
        loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Unable to parse config file {path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Unable to read config file {path}: {e}") from e
    # safe_load returns None for empty files
    return {} if loaded is None else loaded


def apply_env_overrides(data: dict[str, Any], environ: dict[str, str] | None = None) -> dict[str, Any]:
    """Return a copy of ``data`` with ``ICS2GCAL_*`` environment values applied."""
    env = os.environ if environ is None else environ
    merged = dict(data)
    for env_name, key in ENV_OVERRIDES.items():
        value = env.get(env_name)
        if value:
            logger.debug("Config %s overridden by %s", key, env_name)
            merged[key] = value
    return merged


def load_config(path: str | Path | None = None, environ: dict[str, str] | None = None) -> Config:
    """Load configuration from a YAML file and the environment.

    Args:
        path: Config file; ``./ics2gcal.yaml`` when omitted
        environ: Environment mapping, ``os.environ`` when omitted

    Returns:
        Config with file values, overridden by environment variables

    Raises:
        ConfigurationError: File cannot be read or parsed, or is not a mapping
    """
    p = Path(path) if path else Path.cwd() / DEFAULT_CONFIG_FILENAME
    logger.debug("Attempting to load config from %s", p)

    raw: Any = {}
    if p.exists():
        raw = _load_yaml(p)
        if not isinstance(raw, dict):
            raise ConfigurationError(f"Config file {p} must contain a mapping at top level")
        logger.info("Loaded configuration from %s", p)
    elif path:
        raise ConfigurationError(f"Config file {p} not found")
    else:
        logger.debug("Config file %s not found; using defaults", p)

    return Config.from_dict(apply_env_overrides(raw, environ))
