"""File readers for batch import.

Turns spreadsheet (CSV, Excel) and JSON files into raw rows tagged with their
RecordShape. Readers only load and shape-check files; all field
interpretation happens in the normalizer.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from clinic_records.models.record import RecordShape
from clinic_records.utils.exceptions import ImportFormatError


logger = logging.getLogger(__name__)

SPREADSHEET_SUFFIXES = (".csv", ".xlsx", ".xls")
JSON_SUFFIXES = (".json",)


def shape_for_path(file_path: Path) -> Optional[RecordShape]:
    """Determine the shape of the rows a file will produce from its suffix.

    Args:
        file_path: Path to the import file

    Returns:
        RecordShape.SPREADSHEET_ROW for spreadsheet files, None for JSON files
        whose shape (JsonExport or JsonArray) depends on the document itself

    Raises:
        ImportFormatError: If the suffix is not supported
    """
    suffix = file_path.suffix.lower()
    if suffix in SPREADSHEET_SUFFIXES:
        return RecordShape.SPREADSHEET_ROW
    if suffix in JSON_SUFFIXES:
        return None
    raise ImportFormatError(
        f"Unsupported import file type '{file_path.suffix}'. "
        f"Expected one of: {', '.join(SPREADSHEET_SUFFIXES + JSON_SUFFIXES)}"
    )


def _frame_to_rows(df: pd.DataFrame) -> List[Dict[str, Any]]:
    rows = []
    for record in df.to_dict(orient="records"):
        row = {str(k): (None if _is_missing(v) else v) for k, v in record.items()}
        # Spreadsheet tools leave formatted but empty rows behind
        if all(v is None for v in row.values()):
            continue
        rows.append(row)
    return rows


def _is_missing(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def read_spreadsheet(file_path: Path) -> List[Dict[str, Any]]:
    """Read the first sheet of a spreadsheet into header-keyed rows.

    CSV cells are read as text. Excel cells keep their native types so that
    date cells and numeric date serials reach the normalizer intact.

    Args:
        file_path: Path to a .csv, .xlsx or .xls file

    Returns:
        List of rows (header -> cell value), empty cells as None

    Raises:
        FileNotFoundError: If the file does not exist
        ImportFormatError: If the file cannot be parsed or has no header row
    """
    logger.info(f"Loading spreadsheet from {file_path}")

    if not file_path.exists():
        raise FileNotFoundError(f"Spreadsheet not found: {file_path}")

    suffix = file_path.suffix.lower()
    try:
        if suffix == ".csv":
            df = pd.read_csv(file_path, dtype=str, keep_default_na=False, encoding="utf-8-sig")
        else:
            df = pd.read_excel(file_path, sheet_name=0, dtype=object)
    except pd.errors.EmptyDataError as e:
        raise ImportFormatError(f"Spreadsheet {file_path} is empty") from e
    except (ValueError, OSError, pd.errors.ParserError) as e:
        raise ImportFormatError(
            f"Failed to read spreadsheet {file_path}. Ensure the file is a valid "
            f"CSV (UTF-8) or Excel workbook. Error: {e}"
        ) from e

    rows = _frame_to_rows(df)
    logger.info(f"Read {len(rows)} row(s) with columns: {', '.join(map(str, df.columns))}")
    return rows


def read_json_records(file_path: Path) -> Tuple[List[Any], RecordShape]:
    """Read patients from a JSON database export or a bare JSON array.

    Args:
        file_path: Path to the JSON file

    Returns:
        Tuple of (rows, shape): JsonExport for ``{"patients": [...]}``,
        JsonArray for a top-level list

    Raises:
        FileNotFoundError: If the file does not exist
        ImportFormatError: If the file is not JSON or has neither structure
    """
    logger.info(f"Loading JSON records from {file_path}")

    if not file_path.exists():
        raise FileNotFoundError(f"JSON file not found: {file_path}")

    try:
        with open(file_path, encoding="utf-8") as f:
            document = json.load(f)
    except json.JSONDecodeError as e:
        raise ImportFormatError(f"Invalid JSON in {file_path}: {e}") from e

    if isinstance(document, dict) and isinstance(document.get("patients"), list):
        rows, shape = document["patients"], RecordShape.JSON_EXPORT
    elif isinstance(document, list):
        rows, shape = document, RecordShape.JSON_ARRAY
    else:
        raise ImportFormatError(
            "Invalid JSON format. Expected an array of patients or an object "
            "with a 'patients' array."
        )

    logger.info(f"Read {len(rows)} {shape.value} record(s)")
    return rows, shape


def read_records(file_path: Path) -> Tuple[List[Any], RecordShape]:
    """Read an import file of any supported type.

    Args:
        file_path: Path to a spreadsheet or JSON file

    Returns:
        Tuple of (rows, shape)

    Raises:
        FileNotFoundError: If the file does not exist
        ImportFormatError: If the file type is unsupported or unparseable
    """
    shape = shape_for_path(file_path)
    if shape == RecordShape.SPREADSHEET_ROW:
        return read_spreadsheet(file_path), shape
    return read_json_records(file_path)
