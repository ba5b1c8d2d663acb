"""Custom exception classes for Clinic Records.

All exceptions inherit from ClinicRecordsError to allow catching all custom exceptions.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import requests


class ClinicRecordsError(Exception):
    """Base exception for all Clinic Records custom exceptions."""

    pass


class MissingRequiredFieldError(ClinicRecordsError):
    """Raised when a record cannot be normalized because a required field is absent.

    The patient name is the only required field. At batch level the row is
    skipped and reported; at single-record level the caller must re-prompt.

    Attributes:
        field_name: Canonical name of the missing field
    """

    def __init__(self, field_name: str, message: Optional[str] = None) -> None:
        self.field_name = field_name
        super().__init__(message or f"Missing required field '{field_name}'")


class DuplicateCodeError(ClinicRecordsError):
    """Raised when a patient code collides with an existing record's code.

    Attributes:
        code: The colliding patient code
        existing_id: Id of the record already holding the code, if known
    """

    def __init__(self, code: str, existing_id: Optional[str] = None) -> None:
        self.code = code
        self.existing_id = existing_id
        owner = f" (record {existing_id})" if existing_id else ""
        super().__init__(f"Patient code {code} is already in use{owner}")


class StoreError(ClinicRecordsError):
    """Raised when the persistence collaborator fails.

    Examples:
        - Network failure reaching the document store
        - Permission denied by the store
        - Store-side validation rejecting the document
    """

    pass


class RecordNotFoundError(StoreError):
    """Raised when a record id does not exist in the store."""

    pass


class ImportFormatError(ClinicRecordsError):
    """Raised when an import file cannot be read into raw rows.

    Examples:
        - Spreadsheet without a data row
        - JSON that is neither an export object nor an array
        - Unsupported file extension
    """

    pass


class ConfigurationError(ClinicRecordsError):
    """Raised when configuration loading or validation fails.

    Examples:
        - Invalid configuration file format
        - Configuration value out of range
    """

    pass


class ErrorCategory(Enum):
    """Error categorization for handling strategy.

    Attributes:
        TRANSIENT: May succeed if retried later (timeouts, 5xx from the store)
        PERMANENT: Row data problem, retrying will not help (missing name, duplicate code)
        CRITICAL: Environment problem affecting every row (configuration, store unreachable)
    """

    TRANSIENT = "TRANSIENT"
    PERMANENT = "PERMANENT"
    CRITICAL = "CRITICAL"


@dataclass
class ErrorInfo:
    """Structured error information for a failed row.

    Attributes:
        category: Error category (TRANSIENT, PERMANENT, CRITICAL)
        error_type: Exception class name (e.g., "DuplicateCodeError")
        message: User-friendly error message
        remediation: Actionable guidance for resolving the error
        label: Identifying label of the affected row, if any
    """

    category: ErrorCategory
    error_type: str
    message: str
    remediation: str
    label: Optional[str] = None


def categorize_error(exception: Exception) -> ErrorCategory:
    """Categorize exception for error handling strategy.

    Args:
        exception: The exception to categorize

    Returns:
        ErrorCategory indicating handling strategy

    Example:
        >>> categorize_error(MissingRequiredFieldError("fullNameArabic"))
        <ErrorCategory.PERMANENT: 'PERMANENT'>
    """
    if isinstance(exception, ConfigurationError):
        return ErrorCategory.CRITICAL

    # ConnectTimeout is both a Timeout and a ConnectionError
    if isinstance(exception, requests.Timeout):
        return ErrorCategory.TRANSIENT

    if isinstance(exception, requests.ConnectionError):
        return ErrorCategory.CRITICAL

    if isinstance(exception, requests.HTTPError):
        response = getattr(exception, "response", None)
        if response is not None and 500 <= response.status_code < 600:
            return ErrorCategory.TRANSIENT
        return ErrorCategory.PERMANENT

    if isinstance(exception, RecordNotFoundError):
        return ErrorCategory.PERMANENT

    # Store failures wrap the underlying transport error
    if isinstance(exception, StoreError) and exception.__cause__ is not None:
        return categorize_error(exception.__cause__)

    if isinstance(exception, StoreError):
        return ErrorCategory.TRANSIENT

    return ErrorCategory.PERMANENT


def create_error_info(exception: Exception, label: Optional[str] = None) -> ErrorInfo:
    """Create structured error information from exception.

    Args:
        exception: Exception that occurred
        label: Optional identifying label of the affected row

    Returns:
        ErrorInfo with categorization and remediation guidance
    """
    category = categorize_error(exception)
    return ErrorInfo(
        category=category,
        error_type=type(exception).__name__,
        message=str(exception),
        remediation=_generate_remediation(exception),
        label=label,
    )


def _generate_remediation(exception: Exception) -> str:
    """Generate actionable remediation message for an error.

    Args:
        exception: Exception that occurred

    Returns:
        Actionable remediation message
    """
    if isinstance(exception, MissingRequiredFieldError):
        return (
            "Add a patient name to the row. Spreadsheets need a column named "
            "'Name', 'Name (Arabic)' or 'الاسم'."
        )

    if isinstance(exception, DuplicateCodeError):
        return (
            "Choose a different patient code or leave it empty so the next "
            "free code for the month is allocated."
        )

    if isinstance(exception, ConfigurationError):
        return "Check config/config.json and CLINIC_RECORDS_* environment variables."

    if isinstance(exception, StoreError):
        return "Check the record store is reachable and writable, then re-import the failed rows."

    return "Review the error message and the log file for details."
