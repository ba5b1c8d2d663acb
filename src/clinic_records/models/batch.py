"""Batch import data models.

This module defines the per-row outcome and the aggregate result returned by
the batch importer.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from clinic_records.utils.exceptions import ErrorInfo


class RowState(str, Enum):
    """Terminal state of one imported row.

    Rows move Raw -> Normalized -> Persisted, or stop early as rejected at
    either step. There is no retry state.
    """

    PERSISTED = "persisted"
    REJECTED_AT_NORMALIZE = "rejected_at_normalize"
    REJECTED_AT_SAVE = "rejected_at_save"


@dataclass
class RowResult:
    """Outcome of importing a single raw row.

    Attributes:
        index: 0-based position of the row in the input
        label: Identifying label (code, else name, else "row N")
        state: Terminal state of the row
        record_id: Store-assigned id when persisted
        code: Patient code of the normalized record, if normalization succeeded
        error: Structured error information when rejected
    """

    index: int
    label: str
    state: RowState
    record_id: Optional[str] = None
    code: Optional[str] = None
    error: Optional[ErrorInfo] = None

    @property
    def is_success(self) -> bool:
        return self.state == RowState.PERSISTED

    @property
    def error_message(self) -> Optional[str]:
        """Human-readable error line, as listed in ``ImportResult.errors``."""
        if self.error is None:
            return None
        return f"Failed to import {self.label}: {self.error.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "label": self.label,
            "state": self.state.value,
            "record_id": self.record_id,
            "code": self.code,
            "error": None
            if self.error is None
            else {
                "category": self.error.category.value,
                "type": self.error.error_type,
                "message": self.error.message,
                "remediation": self.error.remediation,
            },
        }


@dataclass
class ImportResult:
    """Aggregate result of one batch import.

    Every input row yields exactly one RowResult, so
    ``success_count + len(errors) == total_rows`` always holds.

    Attributes:
        shape: Shape the rows were normalized as
        start_timestamp: When the import started (UTC)
        end_timestamp: When the import finished (UTC)
        row_results: Per-row outcomes in input order
        duplicate_codes: Codes held by more than one stored record, filled
            only when the post-import uniqueness sweep runs
    """

    shape: str
    start_timestamp: datetime
    end_timestamp: Optional[datetime] = None
    row_results: List[RowResult] = field(default_factory=list)
    duplicate_codes: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def total_rows(self) -> int:
        return len(self.row_results)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.row_results if r.is_success)

    @property
    def errors(self) -> List[str]:
        """One human-readable line per failed row, in input order."""
        return [r.error_message for r in self.row_results if r.error_message is not None]

    @property
    def duration_seconds(self) -> float:
        if self.end_timestamp is None:
            return 0.0
        return (self.end_timestamp - self.start_timestamp).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "shape": self.shape,
            "successCount": self.success_count,
            "errors": self.errors,
            "totalRows": self.total_rows,
            "startTimestamp": self.start_timestamp.isoformat(),
            "endTimestamp": self.end_timestamp.isoformat() if self.end_timestamp else None,
            "durationSeconds": round(self.duration_seconds, 3),
            "duplicateCodes": self.duplicate_codes,
            "rows": [r.to_dict() for r in self.row_results],
        }

    def format_report(self) -> str:
        """Format the result as a human-readable report."""
        lines = []
        lines.append("=" * 60)
        lines.append("PATIENT IMPORT REPORT")
        lines.append("=" * 60)
        lines.append(f"  Shape:       {self.shape}")
        lines.append(f"  Total rows:  {self.total_rows}")
        lines.append(f"  Imported:    {self.success_count}")
        lines.append(f"  Failed:      {len(self.errors)}")
        lines.append("")

        if self.errors:
            lines.append(f"ERRORS ({len(self.errors)}):")
            for message in self.errors[:20]:
                lines.append(f"  {message}")
            if len(self.errors) > 20:
                lines.append(f"  ... and {len(self.errors) - 20} more errors")
            lines.append("")

        if self.duplicate_codes:
            lines.append(f"DUPLICATE CODES IN STORE ({len(self.duplicate_codes)}):")
            for code, ids in sorted(self.duplicate_codes.items()):
                lines.append(f"  {code}: {', '.join(ids)}")
            lines.append("")

        lines.append("=" * 60)
        if not self.errors and not self.duplicate_codes:
            lines.append("RESULT: ✓ All rows imported")
        elif self.success_count:
            lines.append("RESULT: ✓ Import finished with problems - see above")
        else:
            lines.append("RESULT: ✗ No rows imported")
        lines.append("=" * 60)
        return "\n".join(lines)
