"""Custom log formatters.

This module provides the PII-redacting formatter used by every handler.
"""

import logging
import re
from typing import List, Tuple


class PIIRedactingFormatter(logging.Formatter):
    """Formatter that redacts patient names and phone numbers from log messages.

    Redaction is pattern based: ``name=...`` and ``fullNameArabic`` values,
    text following ``Patient:``, and phone numbers with eight or more digits.
    Names are Arabic as often as Latin, so name patterns match any text up to
    the next field separator rather than capitalized words.

    Attributes:
        redact_pii: Whether to enable PII redaction
        patterns: List of (regex_pattern, replacement_text) tuples for redaction

    Example:
        >>> formatter = PIIRedactingFormatter(redact_pii=True)
        >>> handler = logging.StreamHandler()
        >>> handler.setFormatter(formatter)
    """

    def __init__(
        self,
        fmt: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt: str | None = None,
        redact_pii: bool = False,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.redact_pii = redact_pii

        self.patterns: List[Tuple[re.Pattern[str], str]] = [
            # "fullNameArabic": "..." in logged documents
            (
                re.compile(r'("(?:fullNameArabic|fullName|name)"\s*:\s*)"[^"]*"'),
                r'\1"[NAME-REDACTED]"',
            ),
            # name=Ali Hassan, name="سارة أحمد" up to the next separator
            (re.compile(r'\bname=(?:"[^"]*"|\'[^\']*\'|[^,|;\n]+)'), "name=[NAME-REDACTED]"),
            # Patient: <name> up to the next separator
            (re.compile(r"\b(Patient|Name):\s*[^,|;\n]+"), r"\1: [NAME-REDACTED]"),
            # +964 770 123 4567, 07701234567, 0770-123-4567; dates never start with + or 0
            (re.compile(r"\+\d{1,3}(?:[\s-]?\d{2,4}){2,4}\b"), "[PHONE-REDACTED]"),
            (re.compile(r"\b0\d{2,3}[\s-]?\d{3}[\s-]?\d{4}\b"), "[PHONE-REDACTED]"),
        ]

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record with optional PII redaction."""
        formatted = super().format(record)
        if self.redact_pii:
            for pattern, replacement in self.patterns:
                formatted = pattern.sub(replacement, formatted)
        return formatted
