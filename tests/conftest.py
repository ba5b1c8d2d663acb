"""
Shared pytest configuration and fixtures.

This module provides fixtures used across the unit and integration suites.
"""

import json
import logging
import uuid
from dataclasses import replace
from logging.handlers import RotatingFileHandler
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Set

import pytest

from clinic_records.models.record import PatientRecord
from clinic_records.store.base import RecordStore
from clinic_records.store.json_store import JsonFileStore
from clinic_records.utils.exceptions import RecordNotFoundError, StoreError


class InMemoryStore(RecordStore):
    """Record store double keeping records in a dict.

    Attributes:
        fail_codes: Saving a record with one of these codes raises StoreError
        saved: Records in save order
    """

    def __init__(self, records: Optional[List[PatientRecord]] = None, fail_codes: Optional[Set[str]] = None):
        self.records: Dict[str, PatientRecord] = {}
        self.saved: List[PatientRecord] = []
        self.fail_codes = fail_codes or set()
        for record in records or []:
            record_id = record.id or uuid.uuid4().hex
            self.records[record_id] = replace(record, id=record_id)

    def save(self, record: PatientRecord) -> str:
        if record.code in self.fail_codes:
            raise StoreError(f"Permission denied writing {record.code}")
        record_id = uuid.uuid4().hex
        self.records[record_id] = replace(record, id=record_id)
        self.saved.append(record)
        return record_id

    def list_all(self) -> List[PatientRecord]:
        return list(self.records.values())

    def get(self, record_id: str) -> PatientRecord:
        if record_id not in self.records:
            raise RecordNotFoundError(f"Patient record {record_id} not found")
        return self.records[record_id]

    def update(self, record_id: str, record: PatientRecord) -> None:
        self.get(record_id)
        self.records[record_id] = replace(record, id=record_id)

    def delete(self, record_id: str) -> None:
        self.get(record_id)
        del self.records[record_id]


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def fixed_now() -> datetime:
    """Reference time used for codes and timestamps: 5 November 2024."""
    return datetime(2024, 11, 5, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def memory_store() -> InMemoryStore:
    """Empty in-memory record store."""
    return InMemoryStore()


@pytest.fixture
def store_factory():
    """Build in-memory stores with preloaded records or failing codes."""
    return InMemoryStore


@pytest.fixture
def json_store(tmp_path: Path) -> JsonFileStore:
    """JSON file store in a temporary directory."""
    return JsonFileStore(tmp_path / "data" / "patients.json")


@pytest.fixture
def sample_record() -> PatientRecord:
    """A normalized record as it would come back from the store."""
    return PatientRecord(
        code="2024/11/0001",
        full_name_arabic="علي حسن",
        age=42,
        diagnoses=["Fracture"],
        visited_date="2024-11-01",
        created_at="2024-11-01T08:00:00.000Z",
        updated_at="2024-11-01T08:00:00.000Z",
    )


@pytest.fixture
def sample_spreadsheet_rows() -> List[dict]:
    """Header-keyed spreadsheet rows with Arabic and English headers."""
    return [
        {"الاسم": "علي حسن", "Age": "42", "Gender": "ذكر", "Diagnosis": "Fracture", "Date": "2024-11-01", "Status": "pre-op"},
        {"الاسم": "", "Age": "30", "Gender": "Female", "Diagnosis": "Burn", "Date": "", "Status": ""},
        {"الاسم": "سارة أحمد", "Age": "35", "Gender": "أنثى", "Diagnosis": "", "Date": 45600, "Status": "بعد العملية"},
    ]


@pytest.fixture(autouse=True)
def restore_logging():
    """Remove handlers installed by configure_logging during a test."""
    root_logger = logging.getLogger()
    original = list(root_logger.handlers)
    original_level = root_logger.level
    yield
    for handler in list(root_logger.handlers):
        # pytest capture handlers are subclasses and are left alone
        if handler not in original and type(handler) in (logging.StreamHandler, RotatingFileHandler):
            root_logger.removeHandler(handler)
            handler.close()
    root_logger.setLevel(original_level)


@pytest.fixture
def cli_config(tmp_path: Path) -> Path:
    """Config file pointing the JSON store and the log file into tmp_path."""
    config_file = tmp_path / "config.json"
    config_file.write_text(
        json.dumps(
            {
                "store": {"backend": "json", "json_path": str(tmp_path / "data" / "patients.json")},
                "logging": {"level": "INFO", "log_file": str(tmp_path / "logs" / "clinic.log")},
            }
        ),
        encoding="utf-8",
    )
    return config_file
