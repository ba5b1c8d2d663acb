"""Patient code allocation.

Patient codes have the form ``YYYY/MM/SSSS``: the year and zero-padded month
of allocation followed by a serial that is unique within that year-month
bucket and zero-padded to four digits.

A month with more than 9999 codes produces a five-digit serial
(``2024/11/10000``). The padding is a minimum width, never a truncation.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from threading import Lock
from typing import Any, Iterable, Optional

from clinic_records.utils.exceptions import DuplicateCodeError


logger = logging.getLogger(__name__)

# Minimum width of the serial component
SERIAL_WIDTH = 4


@dataclass(frozen=True)
class ParsedCode:
    """Components of a patient code."""

    year: int
    month: int
    serial: int


def _code_of(record: Any) -> Optional[str]:
    if isinstance(record, dict):
        return record.get("code")
    return getattr(record, "code", None)


def _id_of(record: Any) -> Optional[str]:
    if isinstance(record, dict):
        return record.get("id")
    return getattr(record, "id", None)


def format_code(year: int, month: int, serial: int) -> str:
    """Format code components as ``YYYY/MM/SSSS``."""
    return f"{year}/{month:02d}/{serial:0{SERIAL_WIDTH}d}"


def parse_code(code: Optional[str]) -> Optional[ParsedCode]:
    """Parse a patient code into its components.

    Args:
        code: Code string such as ``2024/11/0003``

    Returns:
        ParsedCode, or None if the code does not have three numeric parts
        or its serial is not a positive integer
    """
    if not code or not isinstance(code, str):
        return None
    parts = code.strip().split("/")
    if len(parts) != 3:
        return None
    try:
        year, month, serial = (int(p) for p in parts)
    except ValueError:
        return None
    if serial <= 0:
        return None
    return ParsedCode(year=year, month=month, serial=serial)


def max_serial(existing_records: Iterable[Any], year: int, month: int) -> int:
    """Return the highest serial in the given bucket, 0 if the bucket is empty."""
    serials = []
    for record in existing_records:
        parsed = parse_code(_code_of(record))
        if parsed is not None and parsed.year == year and parsed.month == month:
            serials.append(parsed.serial)
    return max(serials) if serials else 0


def allocate_code(existing_records: Iterable[Any], as_of: Optional[datetime] = None) -> str:
    """Derive the next unique patient code for the month of ``as_of``.

    Only records whose code falls in the same year-month bucket are
    considered. Serials that fail to parse or are not positive are ignored.
    Pure function: nothing is reserved, so a concurrent creation can race
    this computation and ``validate_code`` at save time remains the
    authoritative guard.

    Args:
        existing_records: Known records (PatientRecord or document dicts)
        as_of: Reference time, defaults to now

    Returns:
        Code string, e.g. ``2024/11/0004`` when the bucket's highest serial is 3

    Example:
        >>> allocate_code([], as_of=datetime(2024, 11, 5))
        '2024/11/0001'
    """
    as_of = as_of or datetime.now()
    next_serial = max_serial(existing_records, as_of.year, as_of.month) + 1
    code = format_code(as_of.year, as_of.month, next_serial)
    logger.debug(f"Allocated patient code {code}")
    return code


def validate_code(
    candidate: str,
    existing_records: Iterable[Any],
    record_id: Optional[str] = None,
) -> str:
    """Check a manually entered code against the known records.

    Args:
        candidate: Code to check
        existing_records: Known records (PatientRecord or document dicts)
        record_id: Id of the record being edited, whose own code is ignored

    Returns:
        The candidate code, unchanged

    Raises:
        DuplicateCodeError: If another record already holds the exact code
    """
    for record in existing_records:
        if _code_of(record) != candidate:
            continue
        other_id = _id_of(record)
        if record_id is not None and other_id == record_id:
            continue
        logger.warning(f"Rejected duplicate patient code {candidate}")
        raise DuplicateCodeError(candidate, existing_id=other_id)
    return candidate


class BatchCodeCounter:
    """Running serial counter for one import batch.

    Batch imports number records sequentially within the import instead of
    consulting the store per row. ``next_code()`` is a locked
    read-modify-write so concurrent callers never receive the same serial.

    Attributes:
        year: Year component of allocated codes
        month: Month component of allocated codes

    Example:
        >>> counter = BatchCodeCounter(as_of=datetime(2024, 11, 5))
        >>> counter.next_code()
        '2024/11/0001'
        >>> counter.next_code()
        '2024/11/0002'
    """

    def __init__(self, as_of: Optional[datetime] = None, start: int = 1) -> None:
        if start < 1:
            raise ValueError(f"start must be >= 1, got {start}")
        as_of = as_of or datetime.now()
        self.year = as_of.year
        self.month = as_of.month
        self._next_serial = start
        self._lock = Lock()

    @classmethod
    def from_existing(
        cls, existing_records: Iterable[Any], as_of: Optional[datetime] = None
    ) -> "BatchCodeCounter":
        """Create a counter continuing after the bucket's highest stored serial."""
        as_of = as_of or datetime.now()
        return cls(as_of=as_of, start=max_serial(existing_records, as_of.year, as_of.month) + 1)

    @property
    def peek(self) -> str:
        """Code the next call to ``next_code()`` will return."""
        with self._lock:
            return format_code(self.year, self.month, self._next_serial)

    def next_code(self) -> str:
        with self._lock:
            code = format_code(self.year, self.month, self._next_serial)
            self._next_serial += 1
        return code
