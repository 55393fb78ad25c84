from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from ..core.enums import AccountStatus, Role
from ..core.exceptions import AuthorizationError


@dataclass(frozen=True)
class Actor:
    """Caller identity handed over by the authentication collaborator.

    Role and department are taken as given; nothing here re-checks them.
    """

    user_id: str
    role: Role
    department: str
    status: AccountStatus = AccountStatus.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.status == AccountStatus.ACTIVE

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Actor":
        """Build from a session/claims mapping with keys id|user_id, role, department, status."""
        user_id = data.get("user_id") or data.get("id")
        if not user_id:
            raise AuthorizationError("Please sign in to continue")
        try:
            role = Role(str(data.get("role", "")).lower())
            status = AccountStatus(str(data.get("status") or AccountStatus.ACTIVE.value).lower())
        except ValueError:
            raise AuthorizationError("Unrecognized caller role or status")
        return cls(user_id=str(user_id), role=role, department=str(data.get("department") or "").strip(), status=status)
