"""Unit tests for configuration loading and validation."""

import json
import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from clinic_records.config import Config, ImporterConfig, LoggingConfig, StoreConfig, load_config
from clinic_records.config.defaults import DEFAULT_CONFIG
from clinic_records.importer.batch import CodePolicy, ImportOptions
from clinic_records.utils.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep CLINIC_RECORDS_* variables from the developer's shell out of the tests."""
    for name in list(os.environ):
        if name.startswith("CLINIC_RECORDS_"):
            monkeypatch.delenv(name)


class TestSchema:
    """Test pydantic schema validation."""

    def test_defaults(self) -> None:
        config = Config()

        assert config.store.backend == "json"
        assert config.store.json_path == Path("data/patients.json")
        assert config.importer.code_policy == "batch_counter"
        assert config.logging.level == "INFO"

    def test_defaults_match_default_dict(self) -> None:
        assert Config(**DEFAULT_CONFIG) == Config()

    def test_backend_normalized(self) -> None:
        assert StoreConfig(backend="JSON").backend == "json"

    def test_invalid_backend(self) -> None:
        with pytest.raises(ValidationError, match="Invalid store backend"):
            StoreConfig(backend="sqlite")

    def test_http_backend_requires_url(self) -> None:
        with pytest.raises(ValidationError, match="base_url is required"):
            StoreConfig(backend="http")

    def test_invalid_url(self) -> None:
        with pytest.raises(ValidationError, match="Invalid URL"):
            StoreConfig(backend="http", base_url="clinic.local/api")

    def test_invalid_code_policy(self) -> None:
        with pytest.raises(ValidationError, match="Invalid code_policy"):
            ImporterConfig(code_policy="random")

    @pytest.mark.parametrize("workers", [0, 33])
    def test_worker_bounds(self, workers) -> None:
        with pytest.raises(ValidationError):
            ImporterConfig(max_workers=workers)

    def test_log_level_uppercased(self) -> None:
        assert LoggingConfig(level="debug").level == "DEBUG"

    def test_invalid_log_level(self) -> None:
        with pytest.raises(ValidationError, match="Invalid log level"):
            LoggingConfig(level="VERBOSE")

    def test_import_options_from_config(self) -> None:
        options = ImportOptions.from_config(ImporterConfig(code_policy="live_store", uniqueness_sweep=True, max_workers=3))

        assert options.code_policy == CodePolicy.LIVE_STORE
        assert options.uniqueness_sweep is True
        assert options.max_workers == 3


class TestLoadConfig:
    """Test loading configuration from file and environment."""

    def test_missing_file_uses_defaults(self, tmp_path) -> None:
        config = load_config(tmp_path / "absent.json")

        assert config == Config()

    def test_file_values(self, tmp_path) -> None:
        # Arrange
        config_file = tmp_path / "config.json"
        config_file.write_text(
            json.dumps(
                {
                    "store": {"backend": "http", "base_url": "http://localhost:3001/api"},
                    "importer": {"code_policy": "live_store", "max_workers": 4},
                }
            ),
            encoding="utf-8",
        )

        # Act
        config = load_config(config_file)

        # Assert
        assert config.store.backend == "http"
        assert config.store.base_url == "http://localhost:3001/api"
        assert config.importer.code_policy == "live_store"
        assert config.importer.max_workers == 4
        assert config.logging.level == "INFO"

    def test_environment_overrides_file(self, tmp_path, monkeypatch) -> None:
        # Arrange
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"importer": {"max_workers": 2}}), encoding="utf-8")
        monkeypatch.setenv("CLINIC_RECORDS_MAX_WORKERS", "8")
        monkeypatch.setenv("CLINIC_RECORDS_UNIQUENESS_SWEEP", "yes")
        monkeypatch.setenv("CLINIC_RECORDS_STORE_JSON_PATH", str(tmp_path / "records.json"))

        # Act
        config = load_config(config_file)

        # Assert
        assert config.importer.max_workers == 8
        assert config.importer.uniqueness_sweep is True
        assert config.store.json_path == tmp_path / "records.json"

    def test_invalid_environment_number(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setenv("CLINIC_RECORDS_STORE_TIMEOUT", "soon")

        with pytest.raises(ConfigurationError, match="CLINIC_RECORDS_STORE_TIMEOUT"):
            load_config(tmp_path / "absent.json")

    def test_invalid_json(self, tmp_path) -> None:
        config_file = tmp_path / "config.json"
        config_file.write_text('{"store": ', encoding="utf-8")

        with pytest.raises(ConfigurationError, match="Invalid JSON"):
            load_config(config_file)

    def test_non_object_file(self, tmp_path) -> None:
        config_file = tmp_path / "config.json"
        config_file.write_text("[]", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="must contain a JSON object"):
            load_config(config_file)

    def test_validation_failure_wrapped(self, tmp_path) -> None:
        # Arrange
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"store": {"backend": "http"}}), encoding="utf-8")

        # Act
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(config_file)

        # Assert
        assert "Configuration validation failed" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, ValidationError)
