"""Configuration manager for loading and managing configuration.

Configuration is read from a JSON file, overridden by environment variables
(CLINIC_RECORDS_* prefix, optionally from a .env file) and validated with the
pydantic schema.
"""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Optional

from dotenv import load_dotenv
from pydantic import ValidationError

from clinic_records.config.defaults import DEFAULT_CONFIG, DEFAULT_CONFIG_PATH
from clinic_records.config.schema import Config
from clinic_records.utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Environment variable prefix for all configuration overrides
ENV_PREFIX = "CLINIC_RECORDS_"


def _parse_bool(value: str) -> bool:
    """Parse boolean value from string (case-insensitive)."""
    return value.lower() in ("true", "1", "yes", "on")


# Environment variable suffix -> (section, field, parser)
ENV_OVERRIDES: dict[str, tuple[str, str, Callable[[str], Any]]] = {
    "STORE_BACKEND": ("store", "backend", str),
    "STORE_JSON_PATH": ("store", "json_path", str),
    "STORE_URL": ("store", "base_url", str),
    "STORE_TIMEOUT": ("store", "timeout", int),
    "STORE_MAX_RETRIES": ("store", "max_retries", int),
    "STORE_BACKOFF_FACTOR": ("store", "backoff_factor", float),
    "CODE_POLICY": ("importer", "code_policy", str),
    "UNIQUENESS_SWEEP": ("importer", "uniqueness_sweep", _parse_bool),
    "MAX_WORKERS": ("importer", "max_workers", int),
    "LOG_LEVEL": ("logging", "level", str),
    "LOG_FILE": ("logging", "log_file", str),
    "REDACT_PII": ("logging", "redact_pii", _parse_bool),
}


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from file and environment variables.

    Configuration is loaded with the following precedence (highest to lowest):
    1. CLI arguments (handled by caller)
    2. Environment variables (CLINIC_RECORDS_* prefix)
    3. Configuration file (JSON)
    4. Default values

    Args:
        config_path: Path to configuration file. If None, uses ./config/config.json

    Returns:
        Validated Config instance

    Raises:
        ConfigurationError: If configuration is invalid or malformed

    Example:
        >>> config = load_config(Path("config/clinic.json"))
        >>> config.importer.code_policy
        'batch_counter'
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(DEFAULT_CONFIG_PATH)

    config_dict = _load_config_file(config_path)
    config_dict = _apply_env_overrides(config_dict)

    try:
        return Config(**config_dict)
    except ValidationError as e:
        raise ConfigurationError(
            f"Configuration validation failed:\n{e}\n\n"
            f"Fix: Check your configuration file at {config_path} and the "
            f"{ENV_PREFIX}* environment variables."
        ) from e


def _load_config_file(config_path: Path) -> dict[str, Any]:
    """Load configuration file or return defaults.

    Raises:
        ConfigurationError: If the file is not valid JSON or cannot be read
    """
    if not config_path.exists():
        logger.info(f"Config file not found: {config_path}. Using default configuration.")
        return copy.deepcopy(DEFAULT_CONFIG)

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config_dict = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            f"Invalid JSON in config file: {config_path}\n"
            f"Error: {e}\n"
            f"Fix: Check JSON syntax at line {e.lineno}, column {e.colno}"
        ) from e
    except OSError as e:
        raise ConfigurationError(
            f"Failed to read config file: {config_path}\nError: {e}\n"
            f"Fix: Check file permissions and path"
        ) from e

    if not isinstance(config_dict, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a JSON object")

    logger.info(f"Loaded configuration from {config_path}")
    return config_dict


def _apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """Apply CLINIC_RECORDS_<NAME> environment variable overrides.

    For example: CLINIC_RECORDS_STORE_URL, CLINIC_RECORDS_CODE_POLICY

    Raises:
        ConfigurationError: If a numeric override does not parse
    """
    for suffix, (section, field_name, parse) in ENV_OVERRIDES.items():
        raw = os.getenv(f"{ENV_PREFIX}{suffix}")
        if not raw:
            continue
        try:
            value = parse(raw)
        except ValueError as e:
            raise ConfigurationError(
                f"Invalid value for {ENV_PREFIX}{suffix}: {raw!r} ({e})"
            ) from e
        config_dict.setdefault(section, {})[field_name] = value
        logger.debug(f"Override: {section}.{field_name} from environment")
    return config_dict
