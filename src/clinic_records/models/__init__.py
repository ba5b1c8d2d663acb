"""Models module.

This module provides data models and dataclasses for the application.
"""

from clinic_records.models.batch import ImportResult, RowResult, RowState
from clinic_records.models.record import (
    UNDIAGNOSED,
    FollowUp,
    Gender,
    PatientRecord,
    PatientStatus,
    RecordShape,
    Surgeon,
    SurgeryRecord,
)
from clinic_records.models.user import UserAccount, UserRole

__all__ = [
    "UNDIAGNOSED",
    "FollowUp",
    "Gender",
    "ImportResult",
    "PatientRecord",
    "PatientStatus",
    "RecordShape",
    "RowResult",
    "RowState",
    "Surgeon",
    "SurgeryRecord",
    "UserAccount",
    "UserRole",
]
