from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

from ..core.enums import LedgerStatus
from ..core.exceptions import InvariantViolation
from ..students.model import roll_sort_key


def _percentage(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


def compute_marks(known_roster: Iterable[str], absent_rolls: Iterable[str]) -> tuple[frozenset[str], frozenset[str]]:
    """Split a roster into present/absent sets.

    Any absent roll number outside the roster is rejected rather than
    dropped, so a typo never turns into a silent "present".
    """
    roster = frozenset(str(r).strip() for r in known_roster)
    absent = frozenset(str(r).strip() for r in absent_rolls if str(r).strip())
    unknown = absent - roster
    if unknown:
        raise InvariantViolation(
            "Roll numbers are not on the class roster",
            details={"unknown": sorted(unknown, key=roll_sort_key)},
        )
    return roster - absent, absent


@dataclass(frozen=True)
class LedgerEntry:
    """One day's attendance for one class, owned by one faculty.

    ``total_students`` is always derived from the two sets.
    """

    entry_id: int
    owner_faculty_id: str
    composite_key: str
    attendance_date: str
    department: str
    present: frozenset[str]
    absent: frozenset[str]
    status: LedgerStatus
    created_by: str
    created_at: datetime
    updated_by: Optional[str] = None
    updated_at: Optional[datetime] = None
    notes: Optional[str] = None

    def __post_init__(self):
        overlap = self.present & self.absent
        if overlap:
            raise InvariantViolation(
                "Roll numbers cannot be both present and absent",
                details={"rolls": sorted(overlap, key=roll_sort_key)},
            )

    @property
    def total_students(self) -> int:
        return len(self.present) + len(self.absent)

    @property
    def attendance_percentage(self) -> float:
        return _percentage(len(self.present), self.total_students)

    def to_dict(self) -> dict:
        return {
            "entry_id": self.entry_id,
            "owner_faculty_id": self.owner_faculty_id,
            "composite_key": self.composite_key,
            "date": self.attendance_date,
            "department": self.department,
            "present": sorted(self.present, key=roll_sort_key),
            "absent": sorted(self.absent, key=roll_sort_key),
            "total_students": self.total_students,
            "present_count": len(self.present),
            "absent_count": len(self.absent),
            "attendance_percentage": self.attendance_percentage,
            "status": self.status.value,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat(),
            "updated_by": self.updated_by,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass(frozen=True)
class StudentAttendanceSummary:
    roll_number: str
    present: int
    absent: int

    @property
    def recorded(self) -> int:
        return self.present + self.absent

    @property
    def percentage(self) -> float:
        return _percentage(self.present, self.recorded)

    def to_dict(self) -> dict:
        return {
            "roll_number": self.roll_number,
            "present": self.present,
            "absent": self.absent,
            "recorded": self.recorded,
            "percentage": self.percentage,
        }


@dataclass(frozen=True)
class AttendanceReport:
    """Aggregate over the ledger entries of one class in a date range."""

    composite_key: str
    start_date: str
    end_date: str
    sessions: int
    students: tuple[StudentAttendanceSummary, ...] = field(default_factory=tuple)

    @property
    def total_present(self) -> int:
        return sum(s.present for s in self.students)

    @property
    def total_marks(self) -> int:
        return sum(s.recorded for s in self.students)

    @property
    def class_percentage(self) -> float:
        return _percentage(self.total_present, self.total_marks)

    def for_roll(self, roll_number: str) -> Optional[StudentAttendanceSummary]:
        return next((s for s in self.students if s.roll_number == roll_number), None)

    def to_dict(self) -> dict:
        return {
            "composite_key": self.composite_key,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "sessions": self.sessions,
            "total_present": self.total_present,
            "total_marks": self.total_marks,
            "class_percentage": self.class_percentage,
            "students": [s.to_dict() for s in self.students],
        }
