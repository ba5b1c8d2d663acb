"""Audit trail for record changes.

Every import, record creation and record update leaves one structured
``AUDIT [EVENT]`` log line.
"""

import time
import uuid
from typing import Any, Dict

from .logger import get_logger

logger = get_logger(__name__)

# Fields written first, in this order; the rest follow as given
FIELD_ORDER = [
    "status",
    "input_file",
    "record_count",
    "success_count",
    "error_count",
    "duration",
    "error_message",
    "correlation_id",
]


def log_audit_event(event_type: str, details: Dict[str, Any]) -> None:
    """Log an audit trail event.

    Events with status "failure" are logged at ERROR, "partial" at WARNING,
    everything else at INFO. ``details`` is not modified.

    Args:
        event_type: Type of operation, e.g. "IMPORT_COMPLETED", "RECORD_CREATED",
                   "RECORD_UPDATED", "EXPORT_WRITTEN"
        details: Event details. Common fields include:
                - status: "success", "partial" or "failure"
                - input_file: Path to input file (if applicable)
                - record_count: Number of records processed
                - duration: Operation duration in seconds
                - correlation_id: ID tying related events together

    Example:
        >>> log_audit_event("IMPORT_COMPLETED", {
        ...     "status": "partial",
        ...     "input_file": "patients.xlsx",
        ...     "record_count": 3,
        ...     "error_count": 1,
        ... })
    """
    details = dict(details)
    details.setdefault("timestamp", time.time())
    details.setdefault("correlation_id", str(uuid.uuid4()))

    message_parts = [f"AUDIT [{event_type}]"]
    for field in FIELD_ORDER:
        if field in details:
            value = details[field]
            if field == "duration" and isinstance(value, (int, float)):
                message_parts.append(f"{field}={value:.2f}s")
            else:
                message_parts.append(f"{field}={value}")

    for key, value in details.items():
        if key not in FIELD_ORDER and key != "timestamp":
            message_parts.append(f"{key}={value}")

    audit_message = " | ".join(message_parts)

    status = details.get("status", "unknown")
    if status == "failure":
        logger.error(audit_message)
    elif status == "partial":
        logger.warning(audit_message)
    else:
        logger.info(audit_message)
