"""Patient code allocation and validation."""

from clinic_records.codes.allocator import (
    BatchCodeCounter,
    ParsedCode,
    allocate_code,
    format_code,
    parse_code,
    validate_code,
)

__all__ = [
    "BatchCodeCounter",
    "ParsedCode",
    "allocate_code",
    "format_code",
    "parse_code",
    "validate_code",
]
