"""JSON file record store.

Keeps all patient documents in one JSON array on disk. Suitable for a single
clinic workstation or for tests; every write rewrites the file.
"""

import json
import logging
import os
import tempfile
import uuid
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List

from clinic_records.models.record import PatientRecord
from clinic_records.store.base import RecordStore
from clinic_records.utils.exceptions import RecordNotFoundError, StoreError

logger = logging.getLogger(__name__)


class JsonFileStore(RecordStore):
    """Record store backed by a JSON document file.

    A missing file is an empty store. Writes go to a temporary file that
    replaces the original, and a lock serializes access within the process.

    Attributes:
        path: Location of the JSON document file
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = Lock()

    def _read(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                documents = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Cannot read record store {self.path}: {e}") from e
        if not isinstance(documents, list):
            raise StoreError(f"Record store {self.path} does not contain a JSON array")
        return documents

    def _write(self, documents: List[Dict[str, Any]]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(documents, f, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.path)
        except OSError as e:
            raise StoreError(f"Cannot write record store {self.path}: {e}") from e

    @staticmethod
    def _index_of(documents: List[Dict[str, Any]], record_id: str) -> int:
        for i, document in enumerate(documents):
            if document.get("id") == record_id:
                return i
        raise RecordNotFoundError(f"Patient record {record_id} not found")

    def save(self, record: PatientRecord) -> str:
        record_id = uuid.uuid4().hex
        document = record.to_dict()
        document["id"] = record_id
        with self._lock:
            documents = self._read()
            documents.append(document)
            self._write(documents)
        logger.debug(f"Saved record {record_id} to {self.path}")
        return record_id

    def list_all(self) -> List[PatientRecord]:
        with self._lock:
            documents = self._read()
        return [PatientRecord.from_dict(d) for d in documents if isinstance(d, dict)]

    def get(self, record_id: str) -> PatientRecord:
        with self._lock:
            documents = self._read()
            return PatientRecord.from_dict(documents[self._index_of(documents, record_id)])

    def update(self, record_id: str, record: PatientRecord) -> None:
        document = record.to_dict()
        document["id"] = record_id
        with self._lock:
            documents = self._read()
            documents[self._index_of(documents, record_id)] = document
            self._write(documents)
        logger.debug(f"Updated record {record_id} in {self.path}")

    def delete(self, record_id: str) -> None:
        with self._lock:
            documents = self._read()
            del documents[self._index_of(documents, record_id)]
            self._write(documents)
        logger.debug(f"Deleted record {record_id} from {self.path}")
