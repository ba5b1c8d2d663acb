"""Batch import orchestration.

This module applies the record normalizer across a batch of raw rows and
persists each resulting record independently. A failing row is recorded in
the ImportResult and never stops the remaining rows.

Normalization, and with it code allocation, always runs sequentially in input
order. Only the store calls may run on a bounded thread pool.
"""

import logging
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from clinic_records.codes.allocator import BatchCodeCounter, allocate_code, validate_code
from clinic_records.importer.normalizer import (
    NormalizationContext,
    merge_update,
    normalize,
    row_label,
    supplied_code,
)
from clinic_records.logging_audit.audit import log_audit_event
from clinic_records.models.batch import ImportResult, RowResult, RowState
from clinic_records.models.record import PatientRecord, RecordShape
from clinic_records.store.base import RecordStore
from clinic_records.utils.exceptions import (
    DuplicateCodeError,
    ImportFormatError,
    StoreError,
    create_error_info,
)

logger = logging.getLogger(__name__)


class CodePolicy(str, Enum):
    """How a batch import numbers and checks patient codes.

    BATCH_COUNTER numbers rows from serial 1 within the import and does not
    check codes against the store, so an import can produce codes that
    already exist there. LIVE_STORE continues after the store's highest
    serial for the month and rejects any row whose code is already held by
    a stored record or by an earlier row of the same batch.
    """

    BATCH_COUNTER = "batch_counter"
    LIVE_STORE = "live_store"


@dataclass
class ImportOptions:
    """Options for one batch import.

    Attributes:
        code_policy: Code numbering and checking policy
        uniqueness_sweep: List the store after the import and report codes
            held by more than one record
        max_workers: Number of concurrent store calls (1 = sequential)
    """

    code_policy: CodePolicy = CodePolicy.BATCH_COUNTER
    uniqueness_sweep: bool = False
    max_workers: int = 1

    def __post_init__(self) -> None:
        self.code_policy = CodePolicy(self.code_policy)
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")

    @classmethod
    def from_config(cls, importer_config: Any) -> "ImportOptions":
        """Build options from an ImporterConfig section."""
        return cls(
            code_policy=importer_config.code_policy,
            uniqueness_sweep=importer_config.uniqueness_sweep,
            max_workers=importer_config.max_workers,
        )


def find_duplicate_codes(records: Iterable[PatientRecord]) -> Dict[str, List[str]]:
    """Group record ids by code, keeping only codes held by more than one record.

    Args:
        records: Stored records

    Returns:
        Mapping of code -> ids of the records holding it
    """
    holders: Dict[str, List[str]] = defaultdict(list)
    for record in records:
        if record.code:
            holders[record.code].append(record.id or "")
    return {code: ids for code, ids in holders.items() if len(ids) > 1}


class BatchImporter:
    """Orchestrator for importing patient records into a record store.

    Attributes:
        store: Persistence collaborator
        options: Import options

    Example:
        >>> importer = BatchImporter(JsonFileStore(Path("patients.json")))
        >>> result = importer.import_batch(rows, RecordShape.SPREADSHEET_ROW)
        >>> print(f"Imported {result.success_count}/{result.total_rows}")
    """

    def __init__(self, store: RecordStore, options: Optional[ImportOptions] = None) -> None:
        self.store = store
        self.options = options or ImportOptions()

    def import_batch(
        self,
        raw_rows: Iterable[Any],
        shape: RecordShape,
        now: Optional[datetime] = None,
    ) -> ImportResult:
        """Normalize and persist every row of a batch.

        Every row ends in exactly one RowResult, in input order, so
        ``success_count + len(errors) == len(raw_rows)``. Row failures are
        recorded, never raised.

        Args:
            raw_rows: Raw records, all of the given shape
            shape: Shape of the raw rows, decided by the caller
            now: Reference time for codes and timestamps, defaults to now

        Returns:
            ImportResult with per-row outcomes

        Raises:
            StoreError: If the live-store code policy cannot list the store
                before any row is processed
        """
        rows = list(raw_rows)
        now = now or datetime.now(timezone.utc)
        result = ImportResult(shape=shape.value, start_timestamp=datetime.now(timezone.utc))
        live = self.options.code_policy == CodePolicy.LIVE_STORE

        logger.info(
            f"Starting import: rows={len(rows)}, shape={shape.value}, "
            f"code_policy={self.options.code_policy.value}, workers={self.options.max_workers}"
        )

        taken_codes: Set[str] = set()
        if live:
            existing = self.store.list_all()
            taken_codes = {r.code for r in existing if r.code}
            counter = BatchCodeCounter.from_existing(existing, as_of=now)
        else:
            counter = BatchCodeCounter(as_of=now)
        context = NormalizationContext(now=now, counter=counter)

        outcomes: List[Optional[RowResult]] = [None] * len(rows)
        pending: List[Tuple[int, PatientRecord]] = []

        for index, raw in enumerate(rows):
            if not isinstance(raw, Mapping):
                error = ImportFormatError(f"Row {index + 1} is not a record object")
                outcomes[index] = self._rejected(index, f"row {index + 1}", RowState.REJECTED_AT_NORMALIZE, error)
                continue

            label = row_label(raw, shape, index)
            try:
                record = normalize(raw, shape, context)
            except Exception as e:
                outcomes[index] = self._rejected(index, label, RowState.REJECTED_AT_NORMALIZE, e)
                continue

            if live:
                if supplied_code(raw, shape) is None:
                    while record.code in taken_codes:
                        record = replace(record, code=counter.next_code())
                if record.code in taken_codes:
                    error = DuplicateCodeError(record.code)
                    outcomes[index] = self._rejected(
                        index, label, RowState.REJECTED_AT_SAVE, error, code=record.code
                    )
                    continue
                taken_codes.add(record.code)

            pending.append((index, record))

        if self.options.max_workers > 1 and len(pending) > 1:
            with ThreadPoolExecutor(max_workers=self.options.max_workers) as pool:
                persisted = list(pool.map(lambda item: self._persist(*item), pending))
        else:
            persisted = [self._persist(index, record) for index, record in pending]

        for row_result in persisted:
            outcomes[row_result.index] = row_result

        result.row_results = [o for o in outcomes if o is not None]

        if self.options.uniqueness_sweep:
            result.duplicate_codes = self._sweep()

        result.end_timestamp = datetime.now(timezone.utc)

        logger.info(
            f"Import complete: total={result.total_rows}, success={result.success_count}, "
            f"failed={len(result.errors)}, duration={result.duration_seconds:.2f}s"
        )
        log_audit_event(
            "IMPORT_COMPLETED",
            {
                "status": "success" if not result.errors else "partial" if result.success_count else "failure",
                "record_count": result.total_rows,
                "success_count": result.success_count,
                "error_count": len(result.errors),
                "duration": result.duration_seconds,
                "shape": shape.value,
                "code_policy": self.options.code_policy.value,
                "duplicate_code_count": len(result.duplicate_codes),
            },
        )
        return result

    def create_record(self, raw: Mapping[str, Any], now: Optional[datetime] = None) -> PatientRecord:
        """Create one record from manual entry.

        A missing code is allocated against the store's current records. Any
        code is checked for uniqueness before saving. Errors propagate to the
        caller.

        Args:
            raw: Manually entered fields
            now: Reference time, defaults to now

        Returns:
            The saved record carrying its store-assigned id

        Raises:
            MissingRequiredFieldError: If no name is given
            DuplicateCodeError: If the code is already held by another record
            StoreError: If the store cannot be listed or written
        """
        now = now or datetime.now(timezone.utc)
        existing = self.store.list_all()
        if supplied_code(raw, RecordShape.MANUAL) is None:
            raw = {**raw, "code": allocate_code(existing, as_of=now)}

        record = normalize(raw, RecordShape.MANUAL, NormalizationContext(now=now))
        validate_code(record.code, existing)
        record_id = self.store.save(replace(record, id=None))
        saved = replace(record, id=record_id)

        log_audit_event(
            "RECORD_CREATED",
            {"status": "success", "record_id": record_id, "code": saved.code},
        )
        return saved

    def update_record(
        self,
        record_id: str,
        changes: Mapping[str, Any],
        now: Optional[datetime] = None,
    ) -> PatientRecord:
        """Merge changes into a stored record and write it back.

        Args:
            record_id: Id of the record to update
            changes: Partial document (camelCase keys); None values are ignored
            now: Reference time, defaults to now

        Returns:
            The updated record

        Raises:
            RecordNotFoundError: If the record does not exist
            DuplicateCodeError: If the changed code is held by another record
            StoreError: If the store cannot be read or written
        """
        current = self.store.get(record_id)
        updated = merge_update(current, changes, now=now)
        if updated.code != current.code:
            validate_code(updated.code, self.store.list_all(), record_id=record_id)
        self.store.update(record_id, updated)

        log_audit_event(
            "RECORD_UPDATED",
            {"status": "success", "record_id": record_id, "fields": ",".join(sorted(changes))},
        )
        return updated

    def _persist(self, index: int, record: PatientRecord) -> RowResult:
        # Ids are assigned by the store; an imported id is never reused
        try:
            record_id = self.store.save(replace(record, id=None))
        except Exception as e:
            if not isinstance(e, StoreError):
                logger.error(f"Unexpected error saving {record.code}: {e}", exc_info=True)
            return self._rejected(index, record.code, RowState.REJECTED_AT_SAVE, e, code=record.code)

        logger.debug(f"Persisted row {index + 1} as {record_id} ({record.code})")
        return RowResult(
            index=index,
            label=record.code,
            state=RowState.PERSISTED,
            record_id=record_id,
            code=record.code,
        )

    def _rejected(
        self,
        index: int,
        label: str,
        state: RowState,
        error: Exception,
        code: Optional[str] = None,
    ) -> RowResult:
        error_info = create_error_info(error, label=label)
        logger.warning(
            f"Row {index + 1} rejected [{error_info.category.value}] "
            f"{error_info.error_type}: {error_info.message}"
        )
        return RowResult(index=index, label=label, state=state, code=code, error=error_info)

    def _sweep(self) -> Dict[str, List[str]]:
        try:
            duplicates = find_duplicate_codes(self.store.list_all())
        except StoreError as e:
            logger.error(f"Uniqueness sweep failed, duplicate codes not checked: {e}")
            return {}
        for code, ids in duplicates.items():
            logger.warning(f"Code {code} is held by {len(ids)} records: {', '.join(ids)}")
        return duplicates


def import_batch(
    raw_rows: Iterable[Any],
    shape: RecordShape,
    store: RecordStore,
    *,
    options: Optional[ImportOptions] = None,
    now: Optional[datetime] = None,
) -> ImportResult:
    """Import a batch of raw rows into a store.

    Convenience wrapper around ``BatchImporter.import_batch``.
    """
    return BatchImporter(store, options).import_batch(raw_rows, shape, now=now)


def create_record(
    raw: Mapping[str, Any],
    store: RecordStore,
    now: Optional[datetime] = None,
) -> PatientRecord:
    """Create one record from manual entry; see ``BatchImporter.create_record``."""
    return BatchImporter(store).create_record(raw, now=now)
