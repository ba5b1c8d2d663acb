"""Listing and dashboard statistics over patient records.

Search, filtering, sorting and pagination for the patients list, and the
aggregate counts shown on the dashboard and statistics pages.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from clinic_records.models.record import PatientRecord, PatientStatus
from clinic_records.models.user import UserAccount

logger = logging.getLogger(__name__)


class SortField(str, Enum):
    NAME = "name"
    DATE = "date"
    STATUS = "status"
    CODE = "code"


@dataclass
class ListingFilter:
    """Criteria for the patients list.

    Attributes:
        search: Case-insensitive substring matched against name, code and diagnoses
        diagnosis: Exact primary diagnosis
        status: Exact status
        year: Visit year, e.g. "2024"
        month: Visit month "01".."12"
        sort_by: Sort field
        descending: Sort direction
    """

    search: str = ""
    diagnosis: Optional[str] = None
    status: Optional[PatientStatus] = None
    year: Optional[str] = None
    month: Optional[str] = None
    sort_by: SortField = SortField.NAME
    descending: bool = False

    def __post_init__(self) -> None:
        self.sort_by = SortField(self.sort_by)
        if self.status is not None:
            self.status = PatientStatus(self.status)
        if self.month is not None:
            self.month = f"{int(self.month):02d}"


def _matches_search(record: PatientRecord, needle: str) -> bool:
    haystack = [record.full_name_arabic, record.full_name or "", record.code, *record.diagnoses]
    return any(needle in value.lower() for value in haystack)


def filter_records(records: Sequence[PatientRecord], criteria: ListingFilter) -> List[PatientRecord]:
    """Return the records matching every set criterion, in their original order."""
    needle = criteria.search.strip().lower()
    matched = []
    for record in records:
        if needle and not _matches_search(record, needle):
            continue
        if criteria.diagnosis and record.diagnosis != criteria.diagnosis:
            continue
        if criteria.status is not None and record.status != criteria.status:
            continue
        # visitedDate is ISO, so year and month are fixed slices
        if criteria.year and record.visited_date[:4] != criteria.year:
            continue
        if criteria.month and record.visited_date[5:7] != criteria.month:
            continue
        matched.append(record)
    return matched


def _sort_key(sort_by: SortField):
    if sort_by == SortField.DATE:
        return lambda r: r.visited_date
    if sort_by == SortField.STATUS:
        order = list(PatientStatus)
        return lambda r: order.index(r.status)
    if sort_by == SortField.CODE:
        return lambda r: r.code
    return lambda r: r.full_name_arabic.lower()


def sort_records(
    records: Sequence[PatientRecord],
    sort_by: SortField = SortField.NAME,
    descending: bool = False,
) -> List[PatientRecord]:
    """Return a sorted copy; status sorts in treatment order (Diagnosed to Post-op)."""
    return sorted(records, key=_sort_key(SortField(sort_by)), reverse=descending)


def paginate(records: Sequence[Any], page: int = 1, page_size: int = 20) -> List[Any]:
    """Return one 1-based page of ``records``.

    Raises:
        ValueError: If ``page`` or ``page_size`` is below 1
    """
    if page < 1 or page_size < 1:
        raise ValueError(f"page and page_size must be >= 1, got {page} and {page_size}")
    start = (page - 1) * page_size
    return list(records[start:start + page_size])


def list_records(records: Sequence[PatientRecord], criteria: Optional[ListingFilter] = None) -> List[PatientRecord]:
    """Filter then sort records for the patients list."""
    criteria = criteria or ListingFilter()
    return sort_records(filter_records(records, criteria), criteria.sort_by, criteria.descending)


@dataclass
class DashboardStats:
    """Aggregate counts over a set of records.

    Attributes:
        total_patients: Number of records
        by_status: Record count per status, every status present
        by_diagnosis: Record count per primary diagnosis
        monthly_visits: Record count per visit month ("YYYY-MM"), ascending
        average_age: Mean age rounded to one decimal, 0 when there are no records
        total_surgeries: Number of surgeries across all records
        total_surgery_cost: Sum of surgery costs, None unless the viewer may see financials
    """

    total_patients: int = 0
    by_status: Dict[str, int] = field(default_factory=dict)
    by_diagnosis: Dict[str, int] = field(default_factory=dict)
    monthly_visits: Dict[str, int] = field(default_factory=dict)
    average_age: float = 0.0
    total_surgeries: int = 0
    total_surgery_cost: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "totalPatients": self.total_patients,
            "byStatus": self.by_status,
            "byDiagnosis": self.by_diagnosis,
            "monthlyVisits": self.monthly_visits,
            "averageAge": self.average_age,
            "totalSurgeries": self.total_surgeries,
        }
        if self.total_surgery_cost is not None:
            data["totalSurgeryCost"] = self.total_surgery_cost
        return data


def compute_dashboard_stats(
    records: Sequence[PatientRecord],
    viewer: Optional[UserAccount] = None,
) -> DashboardStats:
    """Compute dashboard statistics.

    Args:
        records: Records to aggregate
        viewer: Account viewing the statistics; surgery costs are summed
            only when it may see financials

    Returns:
        DashboardStats
    """
    by_status = {status.value: 0 for status in PatientStatus}
    by_status.update(Counter(r.status.value for r in records))

    monthly = Counter(r.visited_date[:7] for r in records if len(r.visited_date) >= 7)
    surgeries = [s for r in records for s in r.surgeries]

    stats = DashboardStats(
        total_patients=len(records),
        by_status=by_status,
        by_diagnosis=dict(Counter(r.diagnosis for r in records).most_common()),
        monthly_visits=dict(sorted(monthly.items())),
        average_age=round(sum(float(r.age) for r in records) / len(records), 1) if records else 0.0,
        total_surgeries=len(surgeries),
    )
    if viewer is not None and viewer.sees_financials:
        stats.total_surgery_cost = sum(float(s.cost) for s in surgeries if s.cost is not None)

    logger.debug(f"Computed dashboard stats for {stats.total_patients} records")
    return stats
