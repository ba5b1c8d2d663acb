"""Configuration schema models using pydantic.

This module defines the configuration structure and validation rules using pydantic.
All configuration values are validated according to the schema defined here.
"""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class StoreConfig(BaseModel):
    """Configuration for the record store.

    Attributes:
        backend: "json" for a local JSON document file, "http" for the REST API
        json_path: Path of the JSON document file (json backend)
        base_url: API root URL (http backend)
        timeout: Request timeout in seconds
        max_retries: Retry attempts for idempotent requests
        backoff_factor: Exponential backoff factor for retries
    """

    backend: str = Field(default="json", description="Store backend: json or http")
    json_path: Path = Field(
        default=Path("data/patients.json"),
        description="JSON document file path",
    )
    base_url: Optional[str] = Field(default=None, description="REST API root URL")
    timeout: int = Field(default=30, ge=1, description="Request timeout in seconds")
    max_retries: int = Field(default=3, ge=0, description="Maximum retry attempts")
    backoff_factor: float = Field(default=0.3, ge=0.0, description="Exponential backoff factor")

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        """Validate the store backend name.

        Raises:
            ValueError: If backend is not json or http
        """
        v_lower = v.lower()
        if v_lower not in ("json", "http"):
            raise ValueError(f"Invalid store backend: {v}. Must be one of: json, http")
        return v_lower

    @field_validator("base_url")
    @classmethod
    def validate_url(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.startswith(("http://", "https://")):
            raise ValueError(f"Invalid URL: {v}. Must start with http:// or https://")
        return v

    @model_validator(mode="after")
    def validate_http_backend(self) -> "StoreConfig":
        """Require a base URL for the http backend."""
        if self.backend == "http" and not self.base_url:
            raise ValueError(
                "store.base_url is required when store.backend is 'http'. "
                "Fix: Set store.base_url or CLINIC_RECORDS_STORE_URL."
            )
        return self


class ImporterConfig(BaseModel):
    """Batch import configuration.

    Attributes:
        code_policy: "batch_counter" numbers codes within the import without
            checking the store; "live_store" continues after the store's
            highest serial and rejects codes already in use
        uniqueness_sweep: Report codes held by more than one record after import
        max_workers: Concurrent store calls during import (1 = sequential)

    Example:
        >>> importer = ImporterConfig(code_policy="live_store", max_workers=4)
    """

    code_policy: str = Field(default="batch_counter", description="batch_counter or live_store")
    uniqueness_sweep: bool = Field(default=False, description="Check for duplicate codes after import")
    max_workers: int = Field(default=1, ge=1, le=32, description="Concurrent store calls")

    @field_validator("code_policy")
    @classmethod
    def validate_code_policy(cls, v: str) -> str:
        valid_policies = ["batch_counter", "live_store"]
        if v not in valid_policies:
            raise ValueError(
                f"Invalid code_policy: {v}. Must be one of: {', '.join(valid_policies)}"
            )
        return v


class LoggingConfig(BaseModel):
    """Configuration for logging.

    Attributes:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file
        redact_pii: Whether to redact names and phone numbers from logs
    """

    level: str = Field(default="INFO", description="Log level: DEBUG, INFO, WARNING, ERROR, CRITICAL")
    log_file: Path = Field(default=Path("logs/clinic-records.log"), description="Log file path")
    redact_pii: bool = Field(default=False, description="Redact PII from logs")

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level.

        Args:
            v: Log level string

        Returns:
            Validated log level (uppercase)

        Raises:
            ValueError: If log level is not valid
        """
        v_upper = v.upper()
        if v_upper not in VALID_LOG_LEVELS:
            raise ValueError(
                f"Invalid log level: {v}. Must be one of: {', '.join(VALID_LOG_LEVELS)}"
            )
        return v_upper


class Config(BaseModel):
    """Main configuration model.

    Attributes:
        store: Record store configuration
        importer: Batch import configuration
        logging: Logging configuration
    """

    store: StoreConfig = Field(default_factory=StoreConfig)
    importer: ImporterConfig = Field(default_factory=ImporterConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
