"""Database and spreadsheet export.

The JSON database export is the format the importer reads back as
JsonExport. The spreadsheet export uses headers the spreadsheet importer
recognizes, so an exported sheet can be re-imported.

Surgery costs are financial data: they are removed for a viewer whose
account may not see financials. Passing no viewer exports everything and is
meant for administrative migrations.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from clinic_records.models.record import DIAGNOSIS_SEPARATOR, PatientRecord
from clinic_records.models.user import UserAccount

logger = logging.getLogger(__name__)

EXPORT_FORMAT_VERSION = "1.0.0"

FINANCIAL_SURGERY_KEYS = ("cost", "costCurrency")

SPREADSHEET_COLUMNS = [
    "Code",
    "Name (Arabic)",
    "Age",
    "Date of Birth",
    "Gender",
    "Diagnosis",
    "Visited Date",
    "Status",
    "Notes",
    "Surgeries",
]


def _hide_financials(viewer: Optional[UserAccount]) -> bool:
    return viewer is not None and not viewer.sees_financials


def record_document(record: PatientRecord, viewer: Optional[UserAccount] = None) -> Dict[str, Any]:
    """Export document for one record, without costs if the viewer may not see them."""
    document = record.to_dict()
    if _hide_financials(viewer) and "surgeries" in document:
        document["surgeries"] = [
            {k: v for k, v in surgery.items() if k not in FINANCIAL_SURGERY_KEYS}
            for surgery in document["surgeries"]
        ]
    return document


def export_database(
    records: Sequence[PatientRecord],
    users: Optional[Sequence[UserAccount]] = None,
    viewer: Optional[UserAccount] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Build the full database export document.

    Args:
        records: Records to export
        users: User accounts to include
        viewer: Account requesting the export
        now: Export time, defaults to now

    Returns:
        ``{"patients": [...], "users": [...], "exportDate": ..., "version": ...}``
    """
    now = now or datetime.now(timezone.utc)
    return {
        "patients": [record_document(r, viewer) for r in records],
        "users": [u.to_dict() for u in users or []],
        "exportDate": now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        "version": EXPORT_FORMAT_VERSION,
    }


def write_database_export(export: Dict[str, Any], output_path: Path) -> None:
    """Write an export document as UTF-8 JSON."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(export, f, ensure_ascii=False, indent=2)
    logger.info(f"Wrote database export with {len(export['patients'])} patient(s) to {output_path}")


def _spreadsheet_row(record: PatientRecord, include_cost: bool) -> Dict[str, Any]:
    row = {
        "Code": record.code,
        "Name (Arabic)": record.full_name_arabic,
        "Age": record.age,
        "Date of Birth": record.date_of_birth or "",
        "Gender": record.gender.value,
        "Diagnosis": DIAGNOSIS_SEPARATOR.join(record.diagnoses),
        "Visited Date": record.visited_date,
        "Status": record.status.value,
        "Notes": record.notes,
        "Surgeries": len(record.surgeries),
    }
    if include_cost:
        row["Surgery Cost"] = sum(float(s.cost) for s in record.surgeries if s.cost is not None)
    return row


def export_spreadsheet(
    records: Sequence[PatientRecord],
    output_path: Path,
    viewer: Optional[UserAccount] = None,
) -> int:
    """Write records to a CSV or Excel file, chosen by the file suffix.

    Args:
        records: Records to export
        output_path: Destination ``.csv`` or ``.xlsx`` path
        viewer: Account requesting the export; the cost column is omitted
            unless it may see financials

    Returns:
        Number of rows written

    Raises:
        ValueError: If the suffix is neither .csv nor .xlsx
    """
    include_cost = not _hide_financials(viewer)
    columns: List[str] = SPREADSHEET_COLUMNS + (["Surgery Cost"] if include_cost else [])
    df = pd.DataFrame([_spreadsheet_row(r, include_cost) for r in records], columns=columns)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    suffix = output_path.suffix.lower()
    if suffix == ".csv":
        # BOM so spreadsheet programs detect UTF-8 Arabic text
        df.to_csv(output_path, index=False, encoding="utf-8-sig")
    elif suffix == ".xlsx":
        df.to_excel(output_path, index=False, sheet_name="Patients", engine="openpyxl")
    else:
        raise ValueError(f"Unsupported spreadsheet type '{output_path.suffix}', expected .csv or .xlsx")

    logger.info(f"Exported {len(df)} record(s) to {output_path}")
    return len(df)
