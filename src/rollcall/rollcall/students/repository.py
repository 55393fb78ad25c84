from __future__ import annotations

from typing import Optional, Protocol, Sequence

from ..audit.model import AuditEntry
from ..core.enums import EnrollmentStatus
from .model import EnrollmentCorrection, EnrollmentFields, NewStudent, StudentRecord


class StudentRepository(Protocol):
    """Student store.

    Note: every read goes to the store; implementations keep no cache.
    """

    def get(self, user_id: str) -> Optional[StudentRecord]:
        raise NotImplementedError

    def get_by_email(self, email: str) -> Optional[StudentRecord]:
        raise NotImplementedError

    def get_active_by_roll(self, *, batch_year: str, section: str, roll_number: str) -> Optional[StudentRecord]:
        raise NotImplementedError

    def find_active_in_department(self, department: str) -> Sequence[StudentRecord]:
        raise NotImplementedError

    def create(self, student: NewStudent, enrollment: Optional[EnrollmentFields] = None) -> StudentRecord:
        """Insert the student and its first enrollment in one transaction.

        Raises DuplicateEntry on an email or active roll-number clash.
        """

        raise NotImplementedError

    def add_enrollment(self, student_id: str, fields: EnrollmentFields) -> int:
        """Insert; raises DuplicateEntry if the student already has this composite key."""

        raise NotImplementedError

    def set_enrollment_status(self, *, student_id: str, enrollment_id: int, status: EnrollmentStatus) -> bool:
        raise NotImplementedError

    def remove_enrollment(self, *, student_id: str, enrollment_id: int) -> bool:
        raise NotImplementedError

    def soft_delete(self, student_id: str) -> bool:
        """Mark deleted and clear legacy mirrors; the row itself stays."""

        raise NotImplementedError

    def has_enrollment_for_faculty(self, *, faculty_id: str, composite_key: str) -> bool:
        raise NotImplementedError

    def apply_correction(self, correction: EnrollmentCorrection, audit: AuditEntry) -> bool:
        """Atomically apply one enrollment correction together with its audit row.

        The update is conditional on the enrollment not already carrying the
        target faculty and key, so re-applying is a no-op that returns False
        and writes no audit row. If the audit row cannot be written the
        correction is rolled back.
        """

        raise NotImplementedError
