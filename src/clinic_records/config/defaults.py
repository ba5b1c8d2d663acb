"""Default configuration values.

Used when no configuration file is present.
"""

from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    "store": {
        "backend": "json",
        "json_path": "data/patients.json",
        "base_url": None,
        "timeout": 30,
        "max_retries": 3,
        "backoff_factor": 0.3,
    },
    "importer": {
        # Number codes within the import, as the clinic has always done
        "code_policy": "batch_counter",
        "uniqueness_sweep": False,
        "max_workers": 1,
    },
    "logging": {
        "level": "INFO",
        "log_file": "logs/clinic-records.log",
        # Patient names and phone numbers stay in logs unless the user opts in
        "redact_pii": False,
    },
}

DEFAULT_CONFIG_PATH = "config/config.json"
