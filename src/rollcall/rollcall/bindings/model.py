from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class ClassAssignment:
    """Stored ownership of one class by one faculty.

    ``retired_at`` is set once the assignment was superseded or retired; at
    most one unretired assignment exists per composite key.
    """

    assignment_id: int
    faculty_id: str
    composite_key: str
    department: str
    assigned_by: str
    assigned_at: datetime
    retired_by: Optional[str] = None
    retired_at: Optional[datetime] = None
    notes: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.retired_at is None

    @property
    def binding(self) -> "FacultyBinding":
        return FacultyBinding(faculty_id=self.faculty_id, composite_key=self.composite_key)

    def to_dict(self) -> dict:
        return {
            "assignment_id": self.assignment_id,
            "faculty_id": self.faculty_id,
            "composite_key": self.composite_key,
            "department": self.department,
            "assigned_by": self.assigned_by,
            "assigned_at": self.assigned_at.isoformat(),
            "retired_by": self.retired_by,
            "retired_at": self.retired_at.isoformat() if self.retired_at else None,
            "notes": self.notes,
        }


@dataclass(frozen=True)
class FacultyBinding:
    """Derived pair: this faculty currently owns this class."""

    faculty_id: str
    composite_key: str


@dataclass(frozen=True)
class BindingDecision:
    authorized: bool
    reason: str
    rule: Optional[str] = None
