"""Patient record data model.

This module defines the canonical PatientRecord dataclass and its nested
surgery and follow-up entries, plus the immutable list-edit helpers used when
a record's follow-ups or surgeries are changed.

Records convert to and from the camelCase document shape used by the record
store with ``to_dict()`` / ``from_dict()``. Keys the model does not know about
are kept in ``extra`` and written back unchanged so that documents created by
newer schema versions survive a round trip.
"""

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union

# Derived singular diagnosis for records with no diagnoses
UNDIAGNOSED = "Undiagnosed"

# Joins diagnoses into one spreadsheet cell
DIAGNOSIS_SEPARATOR = "; "


class Gender(str, Enum):
    """Patient gender."""

    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"


class PatientStatus(str, Enum):
    """Treatment status of a patient."""

    DIAGNOSED = "Diagnosed"
    PRE_OP = "Pre-op"
    OP = "Op"
    POST_OP = "Post-op"


class RecordShape(str, Enum):
    """Input variant a raw record comes from.

    The caller (CLI or reader) tags every raw row with its shape; the
    normalizer never guesses it.
    """

    MANUAL = "Manual"
    SPREADSHEET_ROW = "SpreadsheetRow"
    JSON_EXPORT = "JsonExport"
    JSON_ARRAY = "JsonArray"


def _strip_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in data.items() if value is not None}


def _enum_or_default(enum_cls, value, default):
    try:
        return enum_cls(value)
    except ValueError:
        return default


def _cost_or_none(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        cost = float(value)
    except (TypeError, ValueError):
        return None
    return cost if math.isfinite(cost) else None


@dataclass
class Surgeon:
    """Member of a surgical team."""

    name: str
    specialization: Optional[str] = None
    phone: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _strip_none(
            {"name": self.name, "specialization": self.specialization, "phone": self.phone}
        )

    @classmethod
    def from_dict(cls, data: Union[Dict[str, Any], str]) -> "Surgeon":
        # Older documents stored a single surgeon as a plain string
        if isinstance(data, str):
            return cls(name=data)
        return cls(
            name=str(data.get("name", "")),
            specialization=data.get("specialization"),
            phone=data.get("phone"),
        )


@dataclass
class SurgeryRecord:
    """A surgery performed on the patient.

    Attributes:
        date: ISO date of the surgery
        type: Surgery type
        operation: Operation performed (optional)
        surgeons: Surgical team (optional)
        notes: Free-text notes (optional)
        cost: Cost of the surgery, shown only to accounts allowed to view financials
        cost_currency: Currency of ``cost``
        id: Entry identifier (optional)
        extra: Unrecognized keys carried through unchanged
    """

    date: str
    type: str
    operation: Optional[str] = None
    surgeons: List[Surgeon] = field(default_factory=list)
    notes: Optional[str] = None
    cost: Optional[float] = None
    cost_currency: Optional[str] = None
    id: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    _KNOWN_KEYS = ("id", "date", "type", "operation", "surgeons", "surgeon", "notes", "cost", "costCurrency")

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data.update(
            {
                "id": self.id,
                "date": self.date,
                "type": self.type,
                "operation": self.operation,
                "surgeons": [s.to_dict() for s in self.surgeons] if self.surgeons else None,
                "notes": self.notes,
                "cost": self.cost if self.cost is not None else self.extra.get("cost"),
                "costCurrency": self.cost_currency,
            }
        )
        return _strip_none(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SurgeryRecord":
        raw_surgeons = data.get("surgeons")
        if raw_surgeons is None and data.get("surgeon"):
            raw_surgeons = [data["surgeon"]]
        extra = {k: v for k, v in data.items() if k not in cls._KNOWN_KEYS and v is not None}
        cost = _cost_or_none(data.get("cost"))
        if cost is None and data.get("cost") is not None:
            # Unparseable costs are kept verbatim so nothing is lost
            extra["cost"] = data["cost"]
        return cls(
            date=str(data.get("date", "")),
            type=str(data.get("type", "")),
            operation=data.get("operation"),
            surgeons=[Surgeon.from_dict(s) for s in (raw_surgeons or [])],
            notes=data.get("notes"),
            cost=cost,
            cost_currency=data.get("costCurrency"),
            id=data.get("id"),
            extra=extra,
        )


@dataclass
class FollowUp:
    """A numbered follow-up visit.

    Numbers are contiguous starting at 1; see ``renumber_follow_ups``.
    """

    number: int
    date: str
    notes: str = ""
    photos: Optional[List[str]] = None
    id: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    _KNOWN_KEYS = ("id", "number", "date", "notes", "photos")

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data.update(
            {
                "id": self.id,
                "number": self.number,
                "date": self.date,
                "notes": self.notes,
                "photos": list(self.photos) if self.photos is not None else None,
            }
        )
        return _strip_none(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], position: int = 1) -> "FollowUp":
        try:
            number = int(data.get("number") or position)
        except (TypeError, ValueError):
            number = position
        photos = data.get("photos")
        return cls(
            number=number,
            date=str(data.get("date", "")),
            notes=str(data.get("notes") or ""),
            photos=list(photos) if photos is not None else None,
            id=data.get("id"),
            extra={k: v for k, v in data.items() if k not in cls._KNOWN_KEYS and v is not None},
        )


@dataclass
class PatientRecord:
    """Canonical clinical record for one patient.

    Attributes:
        code: Unique human-readable code in YYYY/MM/SSSS format
        full_name_arabic: Display name (required)
        age: Non-negative age in years, fractional for infants
        gender: Male, Female or Other
        diagnoses: Ordered diagnoses, empty when undiagnosed
        status: Treatment status
        visited_date: ISO date of the visit, mirrored as ``admissionDate``
        notes: Free-text notes
        id: Store-assigned identifier, None until first save
        full_name: Legacy English name kept for backward compatibility
        date_of_birth: ISO date of birth (optional)
        surgeries: Surgeries performed
        follow_ups: Follow-up visits numbered from 1
        files: Attachment URLs by folder (pass-through)
        contact_info: Contact person (pass-through)
        planned_surgery: Planned surgery (pass-through)
        created_at: ISO timestamp of creation
        updated_at: ISO timestamp of last update
        extra: Unrecognized fields carried through unchanged
    """

    code: str
    full_name_arabic: str
    age: Union[int, float] = 0
    gender: Gender = Gender.MALE
    diagnoses: List[str] = field(default_factory=list)
    status: PatientStatus = PatientStatus.DIAGNOSED
    visited_date: str = ""
    notes: str = ""
    id: Optional[str] = None
    full_name: Optional[str] = None
    date_of_birth: Optional[str] = None
    surgeries: List[SurgeryRecord] = field(default_factory=list)
    follow_ups: List[FollowUp] = field(default_factory=list)
    files: Optional[Dict[str, Any]] = None
    contact_info: Optional[Dict[str, Any]] = None
    planned_surgery: Optional[Dict[str, Any]] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def diagnosis(self) -> str:
        """Primary diagnosis consumed by legacy views."""
        return self.diagnoses[0] if self.diagnoses else UNDIAGNOSED

    @property
    def admission_date(self) -> str:
        """Legacy alias of ``visited_date``."""
        return self.visited_date

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase document shape, dropping unset values.

        Returns:
            Document dictionary including the derived ``diagnosis`` and
            ``admissionDate`` fields
        """
        data = dict(self.extra)
        data.update(
            {
                "id": self.id,
                "code": self.code,
                "fullNameArabic": self.full_name_arabic,
                "fullName": self.full_name,
                "age": self.age,
                "dateOfBirth": self.date_of_birth,
                "gender": self.gender.value,
                "diagnoses": list(self.diagnoses),
                "diagnosis": self.diagnosis,
                "status": self.status.value,
                "visitedDate": self.visited_date,
                "admissionDate": self.visited_date,
                "notes": self.notes,
                "surgeries": [s.to_dict() for s in self.surgeries] if self.surgeries else None,
                "followUps": [f.to_dict() for f in self.follow_ups] if self.follow_ups else None,
                "files": self.files,
                "contactInfo": self.contact_info,
                "plannedSurgery": self.planned_surgery,
                "createdAt": self.created_at,
                "updatedAt": self.updated_at,
            }
        )
        return _strip_none(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PatientRecord":
        """Build a record from a stored, already-normalized document.

        Use ``clinic_records.importer.normalizer.normalize`` for raw input;
        this constructor only maps keys and does not apply defaults beyond
        what the dataclass declares.

        Args:
            data: Document dictionary as written by ``to_dict()``

        Returns:
            PatientRecord instance
        """
        known = set(RECORD_FIELDS)
        return cls(
            code=str(data.get("code", "")),
            full_name_arabic=str(data.get("fullNameArabic", "")),
            age=data.get("age", 0) or 0,
            gender=_enum_or_default(Gender, data.get("gender"), Gender.MALE),
            diagnoses=list(data.get("diagnoses") or []),
            status=_enum_or_default(PatientStatus, data.get("status"), PatientStatus.DIAGNOSED),
            visited_date=str(data.get("visitedDate") or data.get("admissionDate") or ""),
            notes=str(data.get("notes") or ""),
            id=data.get("id") or None,
            full_name=data.get("fullName"),
            date_of_birth=data.get("dateOfBirth"),
            surgeries=[SurgeryRecord.from_dict(s) for s in data.get("surgeries") or []],
            follow_ups=[
                FollowUp.from_dict(f, position=i)
                for i, f in enumerate(data.get("followUps") or [], start=1)
            ],
            files=data.get("files"),
            contact_info=data.get("contactInfo"),
            planned_surgery=data.get("plannedSurgery"),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
            extra={k: v for k, v in data.items() if k not in known and v is not None},
        )


# Document keys owned by PatientRecord; everything else is pass-through
RECORD_FIELDS = (
    "id",
    "code",
    "fullNameArabic",
    "fullName",
    "age",
    "dateOfBirth",
    "gender",
    "diagnoses",
    "diagnosis",
    "status",
    "visitedDate",
    "admissionDate",
    "notes",
    "surgeries",
    "followUps",
    "files",
    "contactInfo",
    "plannedSurgery",
    "createdAt",
    "updatedAt",
)


def renumber_follow_ups(follow_ups: Sequence[FollowUp]) -> List[FollowUp]:
    """Return follow-ups renumbered 1..n in their current order."""
    return [replace(f, number=i) for i, f in enumerate(follow_ups, start=1)]


def add_follow_up(
    follow_ups: Sequence[FollowUp],
    date: str,
    notes: str = "",
    photos: Optional[List[str]] = None,
) -> List[FollowUp]:
    """Append a follow-up numbered after the existing ones.

    Args:
        follow_ups: Current follow-ups
        date: ISO date of the visit
        notes: Visit notes
        photos: Photo URLs

    Returns:
        New list with the follow-up appended
    """
    renumbered = renumber_follow_ups(follow_ups)
    renumbered.append(
        FollowUp(number=len(renumbered) + 1, date=date, notes=notes, photos=photos)
    )
    return renumbered


def remove_follow_up(follow_ups: Sequence[FollowUp], number: int) -> List[FollowUp]:
    """Remove the follow-up with the given number and renumber the rest.

    Removing #2 from [#1, #2, #3] yields [#1, #2] where the new #2 is the old
    #3 with its notes and photos unchanged.

    Args:
        follow_ups: Current follow-ups
        number: Number of the follow-up to remove

    Returns:
        New renumbered list

    Raises:
        ValueError: If no follow-up has that number
    """
    if not any(f.number == number for f in follow_ups):
        raise ValueError(f"No follow-up numbered {number}")
    return renumber_follow_ups([f for f in follow_ups if f.number != number])


def add_surgery(surgeries: Sequence[SurgeryRecord], surgery: SurgeryRecord) -> List[SurgeryRecord]:
    """Return a new list with ``surgery`` appended."""
    return [*surgeries, surgery]


def remove_surgery(surgeries: Sequence[SurgeryRecord], index: int) -> List[SurgeryRecord]:
    """Return a new list without the surgery at ``index``.

    Raises:
        IndexError: If ``index`` is out of range
    """
    if not 0 <= index < len(surgeries):
        raise IndexError(f"Surgery index {index} out of range (0-{len(surgeries) - 1})")
    return [s for i, s in enumerate(surgeries) if i != index]
