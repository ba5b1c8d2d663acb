"""User account data model.

Accounts are owned by the identity provider; this model only carries the
fields needed to decide whether cost fields may be shown.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class UserRole(str, Enum):
    """Account role."""

    ADMIN = "admin"
    DOCTOR = "doctor"
    USER = "user"


@dataclass
class UserAccount:
    """Clinic staff account.

    Attributes:
        email: Unique login email
        role: admin, doctor or user
        name: Display name
        can_view_financial: Whether cost fields are visible to this account
        id: Store identifier
    """

    email: str
    role: UserRole = UserRole.USER
    name: str = "Unnamed User"
    can_view_financial: bool = False
    id: Optional[str] = None

    @property
    def sees_financials(self) -> bool:
        """Admins always see financial fields; other roles need the flag."""
        return self.role == UserRole.ADMIN or self.can_view_financial

    def to_dict(self) -> Dict[str, Any]:
        # Passwords are never exported
        data = {
            "id": self.id,
            "email": self.email,
            "role": self.role.value,
            "name": self.name,
            "canViewFinancial": self.can_view_financial,
        }
        return {k: v for k, v in data.items() if v is not None}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserAccount":
        try:
            role = UserRole(data.get("role") or UserRole.USER.value)
        except ValueError:
            role = UserRole.USER
        return cls(
            email=str(data.get("email", "")),
            role=role,
            name=data.get("name") or "Unnamed User",
            can_view_financial=bool(data.get("canViewFinancial", False)),
            id=data.get("id"),
        )
