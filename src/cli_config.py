"""Configuration file loading and runtime overrides of Constants.

Precedence, highest first: CLI flags, configuration file, Constants defaults.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

import yaml

from common.errors import ConfigError
from constants import Constants

logger = logging.getLogger(__name__)

# config key -> (Constants attribute, converter)
_CONFIG_KEYS = {
    "rubygems_url": ("RUBYGEMS_URL", str),
    "proxy_url": ("PROXY_URL", str),
    "timeout": ("REQUEST_TIMEOUT", int),
    "threads": ("PRELOAD_THREADS", int),
}

# CLI dest -> Constants attribute
_CLI_OVERRIDES = {
    "UPSTREAM": "RUBYGEMS_URL",
    "SERVER": "PROXY_URL",
    "TIMEOUT": "REQUEST_TIMEOUT",
    "THREADS": "PRELOAD_THREADS",
}


def load_config(config_path: Optional[str]) -> Dict[str, Any]:
    """Load the configuration file.

    YAML is parsed with ``yaml.safe_load``, which also accepts JSON documents.

    Args:
        config_path: Path to the file, or None for no configuration.

    Returns:
        The configuration mapping (empty when no path is given).

    Raises:
        ConfigError: If the file is missing, unreadable or not a mapping.
    """
    if not config_path:
        return {}

    if not os.path.isfile(config_path):
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Failed to load config {config_path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config {config_path} must contain a mapping at the top level")
    return data


def apply_config_overrides(config: Dict[str, Any], args: Any = None) -> None:
    """Apply configuration file values, then CLI flags, onto Constants.

    Raises:
        ConfigError: If a configuration value has the wrong type.
    """
    for key in sorted(set(config) - set(_CONFIG_KEYS) - {"private_gems"}):
        logger.warning("Ignoring unknown config key: %s", key)

    for key, (attribute, convert) in _CONFIG_KEYS.items():
        if config.get(key) is None:
            continue
        try:
            value = convert(config[key])
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid value for '{key}': {config[key]!r}") from exc
        if isinstance(value, int) and value < 1:
            raise ConfigError(f"'{key}' must be at least 1")
        setattr(Constants, attribute, value)
        logger.debug("Config override %s=%r", attribute, value)

    if args is None:
        return
    for dest, attribute in _CLI_OVERRIDES.items():
        value = getattr(args, dest, None)
        if value is not None:
            setattr(Constants, attribute, value)
