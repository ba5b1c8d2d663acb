"""Config module.

This module provides configuration management functionality.
"""

from clinic_records.config.manager import load_config
from clinic_records.config.schema import Config, ImporterConfig, LoggingConfig, StoreConfig

__all__ = [
    "load_config",
    "Config",
    "ImporterConfig",
    "LoggingConfig",
    "StoreConfig",
]
