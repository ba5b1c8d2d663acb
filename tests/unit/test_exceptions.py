"""Unit tests for error categorization and remediation messages."""

from unittest.mock import Mock

import pytest
import requests

from clinic_records.utils.exceptions import (
    ClinicRecordsError,
    ConfigurationError,
    DuplicateCodeError,
    ErrorCategory,
    ImportFormatError,
    MissingRequiredFieldError,
    RecordNotFoundError,
    StoreError,
    categorize_error,
    create_error_info,
)


def _http_error(status_code: int) -> requests.HTTPError:
    response = Mock()
    response.status_code = status_code
    return requests.HTTPError(f"HTTP {status_code}", response=response)


def _wrapped(cause: Exception) -> StoreError:
    try:
        raise StoreError("store call failed") from cause
    except StoreError as e:
        return e


class TestExceptionHierarchy:
    """Test all custom exceptions share the base class."""

    @pytest.mark.parametrize(
        "exception",
        [
            MissingRequiredFieldError("fullNameArabic"),
            DuplicateCodeError("2024/11/0001"),
            StoreError("down"),
            RecordNotFoundError("gone"),
            ImportFormatError("bad"),
            ConfigurationError("bad"),
        ],
    )
    def test_base_class(self, exception) -> None:
        assert isinstance(exception, ClinicRecordsError)

    def test_missing_field_default_message(self) -> None:
        assert str(MissingRequiredFieldError("fullNameArabic")) == "Missing required field 'fullNameArabic'"

    def test_duplicate_code_message(self) -> None:
        error = DuplicateCodeError("2024/11/0001", existing_id="a1")

        assert str(error) == "Patient code 2024/11/0001 is already in use (record a1)"


class TestCategorizeError:
    """Test error categorization for handling strategy."""

    @pytest.mark.parametrize(
        "exception,expected",
        [
            (MissingRequiredFieldError("fullNameArabic"), ErrorCategory.PERMANENT),
            (DuplicateCodeError("2024/11/0001"), ErrorCategory.PERMANENT),
            (ImportFormatError("bad"), ErrorCategory.PERMANENT),
            (ConfigurationError("bad"), ErrorCategory.CRITICAL),
            (StoreError("permission denied"), ErrorCategory.TRANSIENT),
            (RecordNotFoundError("gone"), ErrorCategory.PERMANENT),
            (requests.Timeout("slow"), ErrorCategory.TRANSIENT),
            (requests.ConnectTimeout("slow connect"), ErrorCategory.TRANSIENT),
            (requests.ConnectionError("refused"), ErrorCategory.CRITICAL),
            (ValueError("odd"), ErrorCategory.PERMANENT),
        ],
    )
    def test_categories(self, exception, expected) -> None:
        assert categorize_error(exception) == expected

    @pytest.mark.parametrize("status_code,expected", [(503, ErrorCategory.TRANSIENT), (422, ErrorCategory.PERMANENT)])
    def test_http_errors(self, status_code, expected) -> None:
        assert categorize_error(_http_error(status_code)) == expected

    def test_store_error_follows_cause(self) -> None:
        assert categorize_error(_wrapped(_http_error(400))) == ErrorCategory.PERMANENT
        assert categorize_error(_wrapped(requests.ConnectionError("refused"))) == ErrorCategory.CRITICAL


class TestCreateErrorInfo:
    """Test structured error information."""

    def test_error_info_fields(self) -> None:
        # Arrange
        error = MissingRequiredFieldError("fullNameArabic", "Name cell is empty")

        # Act
        info = create_error_info(error, label="row 2")

        # Assert
        assert info.category == ErrorCategory.PERMANENT
        assert info.error_type == "MissingRequiredFieldError"
        assert info.message == "Name cell is empty"
        assert info.label == "row 2"
        assert "الاسم" in info.remediation

    @pytest.mark.parametrize(
        "exception,fragment",
        [
            (DuplicateCodeError("c"), "different patient code"),
            (ConfigurationError("x"), "CLINIC_RECORDS_"),
            (StoreError("x"), "re-import the failed rows"),
            (RuntimeError("x"), "log file"),
        ],
    )
    def test_remediation(self, exception, fragment) -> None:
        assert fragment in create_error_info(exception).remediation
