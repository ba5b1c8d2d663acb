"""Record store interface.

The importer and the CLI talk to persistence only through RecordStore.
Writes are last-write-wins; there is no optimistic concurrency control.
"""

from abc import ABC, abstractmethod
from typing import List

from clinic_records.models.record import PatientRecord


class RecordStore(ABC):
    """Persistence collaborator for patient records.

    All methods raise StoreError (or its subclass RecordNotFoundError) on
    failure.
    """

    @abstractmethod
    def save(self, record: PatientRecord) -> str:
        """Persist a new record and return its store-assigned id.

        Any id on ``record`` is ignored.
        """

    @abstractmethod
    def list_all(self) -> List[PatientRecord]:
        """Return every stored record."""

    @abstractmethod
    def get(self, record_id: str) -> PatientRecord:
        """Return the record with the given id.

        Raises:
            RecordNotFoundError: If no record has that id
        """

    @abstractmethod
    def update(self, record_id: str, record: PatientRecord) -> None:
        """Overwrite the record with the given id.

        Raises:
            RecordNotFoundError: If no record has that id
        """

    @abstractmethod
    def delete(self, record_id: str) -> None:
        """Delete the record with the given id.

        Raises:
            RecordNotFoundError: If no record has that id
        """

    def close(self) -> None:
        """Release connections or handles held by the store."""
