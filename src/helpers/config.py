"""Configuration management and environment variable utilities."""

import os
from datetime import datetime
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from src.helpers.config_models import WatchdogConfig
from src.helpers.constants import (
    DEFAULT_CONFIG_PATH,
    DEFAULT_PASSWORD,
    DEFAULT_USERNAME,
    MAX_SCRAPE_INTERVAL,
    MAX_TOKEN_EXPIRY_HOURS,
    MIN_SCRAPE_INTERVAL,
    REDACTED,
)
from src.helpers.errors import ConfigError


# Load environment variables from .env file
load_dotenv()

REPLACEABLE_KEYS = ("hosts", "scrapeInterval", "alert")
"""Top-level keys rewritten when the configuration is replaced"""


def get_required_env(key: str) -> str:
    """Get a required environment variable.

    Args:
        key: Environment variable name

    Returns:
        Environment variable value

    Raises:
        ValueError: If the environment variable is not set

    Example:
        ```python
        from src.helpers.config import get_required_env

        path = get_required_env("WATCHDOG_CONFIG_PATH")
        ```
    """
    value = os.getenv(key)
    if not value:
        msg = f"{key} environment variable is not set"
        raise ValueError(msg)
    return value


def get_optional_env(key: str, default: str | None = None) -> str | None:
    """Get an optional environment variable with a default value.

    Args:
        key: Environment variable name
        default: Default value if not set

    Returns:
        Environment variable value or default
    """
    return os.getenv(key, default)


def get_config_path(config_path: str | Path | None = None) -> Path:
    """Get the configuration file path from parameter or environment.

    Args:
        config_path: Optional path to use directly

    Returns:
        Path of the YAML configuration file
    """
    if config_path:
        return Path(config_path)
    return Path(get_optional_env("WATCHDOG_CONFIG_PATH", DEFAULT_CONFIG_PATH) or "")


def clamp_scrape_interval(interval: int) -> int:
    """Clamp a scrape interval to the supported range."""
    return max(MIN_SCRAPE_INTERVAL, min(interval, MAX_SCRAPE_INTERVAL))


def _env_int(key: str) -> int | None:
    value = get_optional_env(key)
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def apply_env_overrides(config: WatchdogConfig) -> WatchdogConfig:
    """Override file settings with ``WATCHDOG_*`` environment variables.

    Unparseable integers are ignored and the file value is kept.
    """
    config = config.model_copy(deep=True)

    if (port := _env_int("WATCHDOG_PORT")) is not None:
        config.server.port = port
    if external := get_optional_env("WATCHDOG_IS_EXTERNAL"):
        config.server.external = external.lower() == "true"
    if (interval := _env_int("WATCHDOG_SCRAPE_INTERVAL")) is not None:
        config.scrape_interval = interval
    if username := get_optional_env("WATCHDOG_USERNAME"):
        config.auth.username = username
    if password := get_optional_env("WATCHDOG_PASSWORD"):
        config.auth.password = password
    if jwt_secret := get_optional_env("WATCHDOG_JWT_SECRET"):
        config.auth.jwt_secret_key = jwt_secret
    if (expiry := _env_int("WATCHDOG_TOKEN_EXPIRY")) is not None:
        config.auth.token_expiry = expiry

    return config


def apply_auth_defaults(config: WatchdogConfig) -> WatchdogConfig:
    """Fill in missing administration credentials."""
    config = config.model_copy(deep=True)
    auth = config.auth

    if not auth.username:
        auth.username = DEFAULT_USERNAME
    if not auth.password:
        auth.password = DEFAULT_PASSWORD
    if not auth.jwt_secret_key:
        auth.jwt_secret_key = datetime.now().strftime("%Y%m%d%H%M%S")
    if not 0 < auth.token_expiry <= MAX_TOKEN_EXPIRY_HOURS:
        auth.token_expiry = 1

    return config


def _read_yaml_mapping(path: Path) -> dict[str, Any]:
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        msg = f"Failed to read config file {path}: {e}"
        raise ConfigError(msg) from e
    except yaml.YAMLError as e:
        msg = f"Failed to parse config file {path}: {e}"
        raise ConfigError(msg) from e

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        msg = f"Config file {path} must contain a mapping"
        raise ConfigError(msg)
    return raw


def load_config(config_path: str | Path | None = None) -> WatchdogConfig:
    """Load, validate and normalize the watchdog configuration.

    Environment overrides take priority over the file, then missing auth
    settings get their defaults and the scrape interval is clamped.

    Args:
        config_path: Optional path, defaults to ``WATCHDOG_CONFIG_PATH``

    Returns:
        Normalized configuration

    Raises:
        ConfigError: If the file is missing, unparseable or invalid
    """
    path = get_config_path(config_path)
    raw = _read_yaml_mapping(path)

    try:
        config = WatchdogConfig.model_validate(raw)
    except ValidationError as e:
        msg = f"Invalid config file {path}: {e}"
        raise ConfigError(msg) from e

    config = apply_auth_defaults(apply_env_overrides(config))
    config.scrape_interval = clamp_scrape_interval(config.scrape_interval)
    return config


def _write_yaml_mapping(path: Path, data: dict[str, Any]) -> None:
    try:
        path.write_text(
            yaml.safe_dump(data, sort_keys=False, allow_unicode=True),
            encoding="utf-8",
        )
    except OSError as e:
        msg = f"Failed to save config file to {path}: {e}"
        raise ConfigError(msg) from e


def save_config(
    config_path: str | Path,
    new_config: WatchdogConfig,
    current: WatchdogConfig,
) -> None:
    """Rewrite hosts, scrape interval and alert settings in place.

    Every other top-level key of the file is preserved. The SMTP sender and
    password always come from ``current``, never from the replacement.

    Args:
        config_path: Path of the YAML configuration file
        new_config: Replacement configuration
        current: Configuration currently in use

    Raises:
        ConfigError: If the file cannot be read or written
    """
    path = Path(config_path)
    raw = _read_yaml_mapping(path)

    for key in REPLACEABLE_KEYS:
        raw.pop(key, None)

    replacement = new_config.model_copy(deep=True)
    replacement.alert.email.smtp_account = current.alert.email.smtp_account
    replacement.alert.email.smtp_password = current.alert.email.smtp_password

    dumped = replacement.model_dump(by_alias=True, include={"hosts", "scrape_interval", "alert"})
    raw.update({key: dumped[key] for key in REPLACEABLE_KEYS})
    _write_yaml_mapping(path, raw)


def save_alert_toggle(config_path: str | Path, enabled: bool) -> None:
    """Persist the alert switch, leaving the rest of the file untouched."""
    path = Path(config_path)
    raw = _read_yaml_mapping(path)
    alert = raw.get("alert")
    if not isinstance(alert, dict):
        alert = {}
    alert["enable"] = enabled
    raw["alert"] = alert
    _write_yaml_mapping(path, raw)


def mask_email(address: str) -> str:
    """Hide the first three characters of an address (``***456@cess.network``)."""
    if len(address) < 5:
        return address
    return "***" + address[3:]


def mask_webhook_url(url: str) -> str:
    """Reduce a webhook URL to ``scheme://host/***``; empty if unparseable."""
    try:
        parts = urlsplit(url)
        hostname = parts.hostname
    except ValueError:
        return ""
    if not hostname or "." not in hostname:
        return ""
    return f"{parts.scheme}://{hostname}/***"


def redact_config(config: WatchdogConfig) -> dict[str, Any]:
    """Return the configuration as a dict with secrets masked.

    Args:
        config: Configuration in use

    Returns:
        JSON-serializable dict safe to expose through the administration API
    """
    redacted = config.model_copy(deep=True)
    email = redacted.alert.email
    redacted.alert.webhook = [mask_webhook_url(url) for url in redacted.alert.webhook]
    email.receiver = [mask_email(receiver) for receiver in email.receiver]
    email.smtp_account = mask_email(email.smtp_account)
    email.smtp_password = REDACTED
    redacted.auth.password = REDACTED
    redacted.auth.jwt_secret_key = REDACTED
    return redacted.model_dump(by_alias=True)


__all__ = [
    "apply_auth_defaults",
    "apply_env_overrides",
    "clamp_scrape_interval",
    "get_config_path",
    "get_optional_env",
    "get_required_env",
    "load_config",
    "mask_email",
    "mask_webhook_url",
    "redact_config",
    "save_alert_toggle",
    "save_config",
]
