from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Holiday:
    holiday_id: int
    holiday_date: str
    reason: str
    # None means college-wide
    department: Optional[str] = None
    is_active: bool = True

    def to_dict(self) -> dict:
        return {
            "holiday_id": self.holiday_id,
            "date": self.holiday_date,
            "reason": self.reason,
            "department": self.department,
            "is_active": self.is_active,
        }
