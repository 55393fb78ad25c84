from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Iterator, Optional, Union

from ..classes.model import ClassContext
from ..classes.normalizer import try_identity
from ..core.enums import EnrollmentStatus, StudentStatus

_DIGITS_RE = re.compile(r"(\d+)")


def roll_sort_key(roll_number: str) -> tuple:
    """Natural ordering so R2 sorts before R10."""
    parts = _DIGITS_RE.split(str(roll_number))
    return tuple((0, int(p), "") if p.isdigit() else (1, 0, p.lower()) for p in parts if p)


@dataclass(frozen=True)
class SemesterEnrollment:
    """A student's membership in one class offering for one term.

    Canonical identity claim. ``composite_key`` and the discrete fields may be
    missing on rows written before the enrollment array was migrated.
    """

    enrollment_id: int
    student_id: str
    batch: Optional[str]
    year_label: Optional[str]
    semester_label: Optional[str]
    section: Optional[str]
    department: Optional[str]
    faculty_id: Optional[str]
    composite_key: Optional[str]
    status: EnrollmentStatus = EnrollmentStatus.ACTIVE
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status == EnrollmentStatus.ACTIVE

    def fields(self) -> tuple:
        return (self.batch, self.year_label, self.semester_label, self.section)

    def normalized_identity(self) -> Optional[tuple[str, str, str, str]]:
        return try_identity(
            batch=self.batch, year=self.year_label, semester=self.semester_label, section=self.section
        )

    def describes(self, context: ClassContext) -> bool:
        if self.composite_key:
            return self.composite_key == context.composite_key
        return self.normalized_identity() == context.identity()


@dataclass(frozen=True)
class LegacyMirror:
    """Scalar copies of the "current" enrollment kept for old readers.

    Legacy identity claim. When it disagrees with the enrollment array the
    array wins.
    """

    class_id: Optional[str] = None
    batch: Optional[str] = None
    year: Optional[str] = None
    semester: Optional[str] = None
    section: Optional[str] = None
    department: Optional[str] = None
    faculty_id: Optional[str] = None

    def is_empty(self) -> bool:
        return not any(
            (self.class_id, self.batch, self.year, self.semester, self.section, self.department, self.faculty_id)
        )

    def fields(self) -> tuple:
        return (self.batch, self.year, self.semester, self.section)

    def normalized_identity(self) -> Optional[tuple[str, str, str, str]]:
        return try_identity(batch=self.batch, year=self.year, semester=self.semester, section=self.section)


IdentityClaim = Union[SemesterEnrollment, LegacyMirror]


@dataclass(frozen=True)
class StudentRecord:
    user_id: str
    roll_number: str
    name: str
    email: str
    department: str
    batch_year: str
    section: str
    enrollments: tuple[SemesterEnrollment, ...] = ()
    mirror: Optional[LegacyMirror] = None
    status: StudentStatus = StudentStatus.ACTIVE
    created_by: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == StudentStatus.ACTIVE

    @property
    def roll_key(self) -> str:
        return f"{self.batch_year}|{self.section}|{self.roll_number}"

    def claims(self) -> Iterator[IdentityClaim]:
        yield from self.enrollments
        if self.mirror is not None and not self.mirror.is_empty():
            yield self.mirror

    def active_enrollments(self) -> list[SemesterEnrollment]:
        return [e for e in self.enrollments if e.is_active]

    def relevant_enrollment(self, context: ClassContext) -> Optional[SemesterEnrollment]:
        """The active enrollment for this context: exact key first, then matching fields."""
        active = self.active_enrollments()
        for e in active:
            if e.composite_key == context.composite_key:
                return e
        for e in active:
            if not e.composite_key and e.normalized_identity() == context.identity():
                return e
        return None

    def mirror_matches(self) -> bool:
        """True when the legacy mirror is absent or describes exactly one enrollment.

        A mirror with no enrollments beside it has nothing to diverge from.
        """
        if self.mirror is None or self.mirror.is_empty() or not self.enrollments:
            return True
        ident = self.mirror.normalized_identity()
        hits = [
            e
            for e in self.enrollments
            if (self.mirror.class_id and e.composite_key == self.mirror.class_id)
            or (ident is not None and e.normalized_identity() == ident)
        ]
        return len(hits) == 1

    def with_enrollments(self, enrollments: tuple[SemesterEnrollment, ...]) -> "StudentRecord":
        return replace(self, enrollments=enrollments)

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "roll_number": self.roll_number,
            "name": self.name,
            "email": self.email,
            "department": self.department,
            "batch_year": self.batch_year,
            "section": self.section,
            "status": self.status.value,
        }


@dataclass(frozen=True)
class NewStudent:
    user_id: str
    roll_number: str
    name: str
    email: str
    department: str
    batch_year: str
    section: str
    created_by: Optional[str] = None
    mirror: LegacyMirror = field(default_factory=LegacyMirror)


@dataclass(frozen=True)
class EnrollmentFields:
    """Values written into one enrollment; ``None`` leaves a column alone."""

    batch: Optional[str] = None
    year_label: Optional[str] = None
    semester_label: Optional[str] = None
    section: Optional[str] = None
    department: Optional[str] = None
    faculty_id: Optional[str] = None
    composite_key: Optional[str] = None
    status: Optional[EnrollmentStatus] = None
    created_by: Optional[str] = None

    @classmethod
    def from_context(cls, context: ClassContext, *, faculty_id: Optional[str], created_by: Optional[str] = None):
        return cls(
            batch=context.batch_year,
            year_label=context.year_label,
            semester_label=context.semester_label,
            section=context.section,
            department=context.department,
            faculty_id=faculty_id,
            composite_key=context.composite_key,
            status=EnrollmentStatus.ACTIVE,
            created_by=created_by,
        )

    def as_changes(self) -> dict:
        return {
            k: (v.value if isinstance(v, EnrollmentStatus) else v)
            for k, v in self.__dict__.items()
            if v is not None and k != "created_by"
        }


@dataclass(frozen=True)
class EnrollmentCorrection:
    """One reconciliation write against a single student.

    ``enrollment_id`` is ``None`` when the student only had a legacy mirror
    and a canonical enrollment has to be upserted for it.
    """

    student_id: str
    enrollment_id: Optional[int]
    target_key: str
    fields: EnrollmentFields
    before: dict = field(default_factory=dict)

    @property
    def after(self) -> dict:
        return self.fields.as_changes()

    def diff(self) -> dict[str, dict]:
        after = self.after
        return {
            k: {"before": self.before.get(k), "after": v}
            for k, v in after.items()
            if self.before.get(k) != v
        }
