"""Record normalization.

This module maps heterogeneous raw input (manual form entry, spreadsheet rows,
JSON database exports and bare JSON arrays) onto the canonical PatientRecord.

Normalization is an ordered list of pure rules (``NORMALIZATION_RULES``).
Each rule reads the raw input and the NormalizationContext and returns the
record fields it owns; no rule reads another rule's output. Only the name
rule may fail the record, every other rule substitutes a default. The name
rule runs first so a rejected row never consumes a code from the batch
counter.
"""

import copy
import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from clinic_records.codes.allocator import BatchCodeCounter, allocate_code
from clinic_records.models.record import (
    DIAGNOSIS_SEPARATOR,
    RECORD_FIELDS,
    UNDIAGNOSED,
    FollowUp,
    Gender,
    PatientRecord,
    PatientStatus,
    RecordShape,
    SurgeryRecord,
    renumber_follow_ups,
)
from clinic_records.utils.exceptions import MissingRequiredFieldError


logger = logging.getLogger(__name__)

# Fallback display name when a name key exists but is empty
UNKNOWN_NAME = "Unknown"

# Name keys in order of preference (legacy documents used fullName or name)
NAME_KEYS = ("fullNameArabic", "fullName", "name")

# Spreadsheet date serials above this value (1970-01-01) are day counts
SERIAL_DATE_THRESHOLD = 25569

# Day zero of the common spreadsheet date system
SERIAL_DATE_EPOCH = datetime(1899, 12, 30)

# Keys consumed by the rules; everything else passes through
RECOGNIZED_KEYS = frozenset(RECORD_FIELDS) | frozenset(NAME_KEYS)

FEMALE_MARKERS = ("female", "أنثى", "انثى")
OTHER_MARKERS = ("other", "أخرى", "اخرى")
PRE_OP_MARKERS = ("pre", "قبل")
POST_OP_MARKERS = ("post", "بعد")


@dataclass
class NormalizationContext:
    """Inputs to normalization other than the raw record.

    Attributes:
        now: Reference time for timestamps, default dates, ages and codes
        counter: Batch code counter; when None a code is allocated against
            an empty record set (always serial 0001)
    """

    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    counter: Optional[BatchCodeCounter] = None

    @property
    def today(self) -> str:
        return self.now.date().isoformat()

    @property
    def timestamp(self) -> str:
        return iso_timestamp(self.now)


Rule = Callable[[Mapping[str, Any], RecordShape, NormalizationContext], Dict[str, Any]]


def iso_timestamp(moment: datetime) -> str:
    """Format a time as an ISO-8601 UTC timestamp with milliseconds."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and value.strip() == ""


def _clean_str(value: Any) -> str:
    return "" if _is_blank(value) else str(value).strip()


# ---------------------------------------------------------------------------
# Spreadsheet column projection
# ---------------------------------------------------------------------------


def _is_name_header(header: str) -> bool:
    return (
        ("name" in header and ("arabic" in header or "ar" in header))
        or "الاسم" in header
        or header == "name"
    )


# Canonical field -> header predicate, matched in this order; each header is
# claimed by at most one field. Date of birth is claimed before the visit
# date so "Date of Birth" is never read as the visit date.
SPREADSHEET_COLUMNS: List[Tuple[str, Callable[[str], bool]]] = [
    ("fullNameArabic", _is_name_header),
    ("code", lambda h: h in ("code", "patient code") or "الكود" in h),
    ("dateOfBirth", lambda h: "birth" in h or h == "dob" or "الميلاد" in h),
    ("age", lambda h: "age" in h or "العمر" in h),
    ("gender", lambda h: "gender" in h or "الجنس" in h),
    ("diagnosis", lambda h: "diagnosis" in h or "التشخيص" in h),
    (
        "visitedDate",
        lambda h: "date" in h or "visited" in h or "admission" in h or "التاريخ" in h,
    ),
    ("status", lambda h: "status" in h or "الحالة" in h),
    ("notes", lambda h: "note" in h or "ملاحظ" in h),
]


def project_spreadsheet_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    """Map a spreadsheet row keyed by header onto canonical field names.

    Headers are matched case-insensitively by substring (English and Arabic
    variants). Unmatched columns are kept under their original header.

    Args:
        row: Mapping of header -> cell value

    Returns:
        New dictionary keyed by canonical field names
    """
    normalized = {header: str(header).strip().lower() for header in row}
    claimed: Dict[str, str] = {}
    for canonical, matches in SPREADSHEET_COLUMNS:
        for header, lowered in normalized.items():
            if header not in claimed.values() and matches(lowered):
                claimed[canonical] = header
                break

    projected = {canonical: row[header] for canonical, header in claimed.items()}
    for header, value in row.items():
        if header not in claimed.values() and header not in projected:
            projected[header] = value
    return projected


def _source_for(raw: Mapping[str, Any], shape: RecordShape) -> Dict[str, Any]:
    if shape == RecordShape.SPREADSHEET_ROW:
        return project_spreadsheet_row(raw)
    return dict(raw)


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


def resolve_name(source: Mapping[str, Any], shape: RecordShape, context: NormalizationContext) -> Dict[str, Any]:
    """Rule 1: fullNameArabic, else fullName, else name, else "Unknown".

    Raises:
        MissingRequiredFieldError: For spreadsheet rows without a name column
            or with an empty name cell, and for other shapes carrying no name
            key at all
    """
    for key in NAME_KEYS:
        value = _clean_str(source.get(key))
        if value:
            return {"full_name_arabic": value}

    if shape == RecordShape.SPREADSHEET_ROW:
        if "fullNameArabic" not in source:
            raise MissingRequiredFieldError(
                "fullNameArabic",
                "Name (Arabic) column not found. Expected a column named "
                "'Name', 'Name (Arabic)' or 'الاسم'",
            )
        raise MissingRequiredFieldError("fullNameArabic", "Name cell is empty")

    if not any(key in source for key in NAME_KEYS):
        raise MissingRequiredFieldError(
            "fullNameArabic",
            "No name field found (expected fullNameArabic, fullName or name)",
        )
    return {"full_name_arabic": UNKNOWN_NAME}


def resolve_gender(source: Mapping[str, Any], shape: RecordShape, context: NormalizationContext) -> Dict[str, Any]:
    """Rule 2: fuzzy gender match.

    Anything that is not recognizably female or other, including an absent
    value or "F", becomes Male. This default is inherited from the clinic's
    existing data and is kept as is.
    """
    value = _clean_str(source.get("gender")).lower()
    if any(marker in value for marker in FEMALE_MARKERS):
        return {"gender": Gender.FEMALE}
    if any(marker in value for marker in OTHER_MARKERS):
        return {"gender": Gender.OTHER}
    return {"gender": Gender.MALE}


def resolve_diagnoses(source: Mapping[str, Any], shape: RecordShape, context: NormalizationContext) -> Dict[str, Any]:
    """Rule 3: diagnoses list, else the legacy scalar wrapped, else empty.

    The derived singular ``diagnosis`` is a property of PatientRecord and is
    never taken from input. The literal "Undiagnosed" is that property's
    placeholder and is not wrapped into a diagnosis. A spreadsheet cell
    holding several diagnoses joined by DIAGNOSIS_SEPARATOR, as written by
    the spreadsheet export, is split back into a list.
    """
    diagnoses = source.get("diagnoses")
    if isinstance(diagnoses, (list, tuple)) and len(diagnoses) > 0:
        return {"diagnoses": [str(d) for d in diagnoses]}

    legacy = _clean_str(source.get("diagnosis"))
    if shape == RecordShape.SPREADSHEET_ROW:
        parts = [p.strip() for p in legacy.split(DIAGNOSIS_SEPARATOR.strip())]
        return {"diagnoses": [p for p in parts if p and p != UNDIAGNOSED]}
    if legacy and legacy != UNDIAGNOSED:
        return {"diagnoses": [legacy]}
    return {"diagnoses": []}


def resolve_status(source: Mapping[str, Any], shape: RecordShape, context: NormalizationContext) -> Dict[str, Any]:
    """Rule 4: fuzzy status match.

    Op is reachable only by selecting it exactly on manual entry; imports
    map it, like any unmatched value, to Diagnosed.
    """
    value = _clean_str(source.get("status"))
    lowered = value.lower()
    if shape == RecordShape.MANUAL:
        for status in PatientStatus:
            if lowered == status.value.lower():
                return {"status": status}
    if any(marker in lowered for marker in PRE_OP_MARKERS):
        return {"status": PatientStatus.PRE_OP}
    if any(marker in lowered for marker in POST_OP_MARKERS):
        return {"status": PatientStatus.POST_OP}
    return {"status": PatientStatus.DIAGNOSED}


def spreadsheet_date(value: Any) -> Optional[str]:
    """Convert a spreadsheet date cell to an ISO date string.

    Numbers above SERIAL_DATE_THRESHOLD are day serials counted from
    1899-12-30; other values, including serials past the last representable
    date, are taken literally.

    Returns:
        ISO date string, or None for an empty cell
    """
    if _is_blank(value):
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).strip()
    try:
        serial = float(text)
    except ValueError:
        return text
    if not math.isfinite(serial) or serial <= SERIAL_DATE_THRESHOLD:
        return text
    try:
        return (SERIAL_DATE_EPOCH + timedelta(days=serial)).date().isoformat()
    except OverflowError:
        return text


def resolve_visited_date(source: Mapping[str, Any], shape: RecordShape, context: NormalizationContext) -> Dict[str, Any]:
    """Rule 5: visitedDate, else admissionDate, else today."""
    for key in ("visitedDate", "admissionDate"):
        value = source.get(key)
        if _is_blank(value):
            continue
        if shape == RecordShape.SPREADSHEET_ROW:
            return {"visited_date": spreadsheet_date(value)}
        if isinstance(value, datetime):
            return {"visited_date": value.date().isoformat()}
        if isinstance(value, date):
            return {"visited_date": value.isoformat()}
        return {"visited_date": str(value).strip()}
    return {"visited_date": context.today}


def resolve_code(source: Mapping[str, Any], shape: RecordShape, context: NormalizationContext) -> Dict[str, Any]:
    """Rule 6: supplied code as-is, else the next code from the batch counter.

    Supplied codes are not checked here; uniqueness is enforced when the
    record is persisted.
    """
    supplied = _clean_str(source.get("code"))
    if supplied:
        return {"code": supplied}
    if context.counter is not None:
        return {"code": context.counter.next_code()}
    return {"code": allocate_code([], as_of=context.now)}


def resolve_timestamps(source: Mapping[str, Any], shape: RecordShape, context: NormalizationContext) -> Dict[str, Any]:
    """Rule 7: keep createdAt of previously exported data, refresh updatedAt."""
    created = _clean_str(source.get("createdAt"))
    return {"created_at": created or context.timestamp, "updated_at": context.timestamp}


def compute_age(date_of_birth: date, today: date) -> float:
    """Age in whole years, or in twelfths of a year under one year old.

    Args:
        date_of_birth: Date of birth
        today: Reference date

    Returns:
        Non-negative age; 0 for a birth date in the future
    """
    if date_of_birth > today:
        return 0
    before_birthday = (today.month, today.day) < (date_of_birth.month, date_of_birth.day)
    years = today.year - date_of_birth.year - int(before_birthday)
    if years >= 1:
        return years
    months = (today.year - date_of_birth.year) * 12 + today.month - date_of_birth.month
    if today.day < date_of_birth.day:
        months -= 1
    return round(max(months, 0) / 12, 2)


def _coerce_age(value: Any) -> float:
    if _is_blank(value):
        return 0
    try:
        age = float(str(value).strip())
    except ValueError:
        return 0
    if math.isnan(age) or age < 0:
        return 0
    return int(age) if age.is_integer() else age


def resolve_age(source: Mapping[str, Any], shape: RecordShape, context: NormalizationContext) -> Dict[str, Any]:
    """Age from dateOfBirth when it parses, else the stored legacy age."""
    dob = source.get("dateOfBirth")
    parsed: Optional[date] = None
    if isinstance(dob, datetime):
        parsed = dob.date()
    elif isinstance(dob, date):
        parsed = dob
    elif not _is_blank(dob):
        try:
            parsed = date.fromisoformat(str(dob).strip()[:10])
        except ValueError:
            logger.debug(f"Ignoring unparseable dateOfBirth {dob!r}")

    if parsed is not None:
        return {"age": compute_age(parsed, context.now.date()), "date_of_birth": parsed.isoformat()}
    return {"age": _coerce_age(source.get("age")), "date_of_birth": None}


def _mapping_or_none(value: Any) -> Optional[Dict[str, Any]]:
    return dict(value) if isinstance(value, Mapping) else None


def _follow_ups(raw: Any) -> List[FollowUp]:
    """Follow-ups ordered by their stored number and renumbered 1..n."""
    entries = [
        FollowUp.from_dict(f, position=i)
        for i, f in enumerate((f for f in raw or [] if isinstance(f, Mapping)), start=1)
    ]
    return renumber_follow_ups(sorted(entries, key=lambda f: f.number))


def resolve_details(source: Mapping[str, Any], shape: RecordShape, context: NormalizationContext) -> Dict[str, Any]:
    """Notes, identifiers and nested collections; follow-ups are renumbered."""
    record_id = _clean_str(source.get("id"))
    full_name = source.get("fullName")
    notes = source.get("notes")
    return {
        "id": record_id or None,
        "full_name": None if _is_blank(full_name) else str(full_name),
        "notes": "" if _is_blank(notes) else str(notes),
        "surgeries": [
            SurgeryRecord.from_dict(s)
            for s in source.get("surgeries") or []
            if isinstance(s, Mapping)
        ],
        "follow_ups": _follow_ups(source.get("followUps")),
        "files": _mapping_or_none(source.get("files")),
        "contact_info": _mapping_or_none(source.get("contactInfo")),
        "planned_surgery": _mapping_or_none(source.get("plannedSurgery")),
    }


def pass_through_unknown(source: Mapping[str, Any], shape: RecordShape, context: NormalizationContext) -> Dict[str, Any]:
    """Rule 8: keep fields this schema does not know about."""
    return {
        "extra": {
            key: value
            for key, value in source.items()
            if key not in RECOGNIZED_KEYS and not _is_blank(value)
        }
    }


NORMALIZATION_RULES: Tuple[Rule, ...] = (
    resolve_name,
    resolve_gender,
    resolve_diagnoses,
    resolve_status,
    resolve_visited_date,
    resolve_code,
    resolve_timestamps,
    resolve_age,
    resolve_details,
    pass_through_unknown,
)


def normalize(
    raw: Mapping[str, Any],
    shape: RecordShape,
    context: Optional[NormalizationContext] = None,
) -> PatientRecord:
    """Normalize one raw record into a PatientRecord.

    The input is never modified. Normalizing the ``to_dict()`` of a
    normalized record as Manual yields the same derived fields.

    Args:
        raw: Raw record; for SpreadsheetRow a mapping of header -> cell
        shape: Input variant of ``raw``
        context: Reference time and batch counter, defaults to now and no counter

    Returns:
        Structurally complete PatientRecord

    Raises:
        MissingRequiredFieldError: If no name can be resolved

    Example:
        >>> record = normalize({"fullName": "Ali", "diagnosis": ""}, RecordShape.MANUAL)
        >>> record.diagnosis, record.diagnoses
        ('Undiagnosed', [])
    """
    context = context or NormalizationContext()
    source = copy.deepcopy(_source_for(raw, shape))

    fields: Dict[str, Any] = {}
    for rule in NORMALIZATION_RULES:
        fields.update(rule(source, shape, context))

    record = PatientRecord(**fields)
    logger.debug(f"Normalized {shape.value} record {record.code}")
    return record


def supplied_code(raw: Mapping[str, Any], shape: RecordShape) -> Optional[str]:
    """Return the code a raw row supplies itself, None when one would be allocated."""
    return _clean_str(_source_for(raw, shape).get("code")) or None


def row_label(raw: Mapping[str, Any], shape: RecordShape, index: int) -> str:
    """Identifying label for a raw row: its code, else its name, else its position.

    Args:
        raw: Raw record
        shape: Input variant of ``raw``
        index: 0-based position of the row in its batch

    Returns:
        Label used in import error messages
    """
    source = _source_for(raw, shape)
    code = _clean_str(source.get("code"))
    if code:
        return code
    for key in NAME_KEYS:
        name = _clean_str(source.get(key))
        if name:
            return name
    return f"row {index + 1}"


def merge_update(
    record: PatientRecord,
    changes: Mapping[str, Any],
    now: Optional[datetime] = None,
) -> PatientRecord:
    """Merge a partial set of document fields into a record.

    ``None`` values in ``changes`` are ignored. Derived fields are recomputed
    and ``updatedAt`` refreshed; ``id``, ``code`` and ``createdAt`` are kept
    unless ``changes`` sets them.

    Args:
        record: Current record
        changes: Partial document (camelCase keys)
        now: Reference time, defaults to now

    Returns:
        New merged PatientRecord; ``record`` is left unchanged
    """
    cleaned = {key: value for key, value in changes.items() if value is not None}
    merged = record.to_dict()

    # A legacy scalar in the changes replaces the list, and vice versa
    if "diagnoses" in cleaned:
        merged.pop("diagnosis", None)
    elif "diagnosis" in cleaned:
        merged.pop("diagnoses", None)
    if "admissionDate" in cleaned and "visitedDate" not in cleaned:
        merged.pop("visitedDate", None)

    merged.update(cleaned)
    context = NormalizationContext(now=now or datetime.now(timezone.utc))
    return normalize(merged, RecordShape.MANUAL, context)
