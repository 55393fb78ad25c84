from __future__ import annotations

import logging
import uuid
from typing import Any, Mapping, Optional

from ..bindings.service import BindingService
from ..classes.model import ClassContext
from ..classes.normalizer import context_from_key, context_from_mapping, normalize_context
from ..common.validators import require_email, require_max_length, require_non_empty
from ..core.enums import EnrollmentStatus, Role
from ..core.exceptions import DuplicateEntry, NotFound, ValidationError
from ..users.model import Actor
from .model import EnrollmentFields, NewStudent, SemesterEnrollment, StudentRecord
from .repository import StudentRepository

logger = logging.getLogger(__name__)


class StudentService:
    """Admission and term-to-term enrollment of students.

    Every write is gated by the Binding Validator for the class involved.
    """

    def __init__(self, students: StudentRepository, bindings: BindingService):
        self._students = students
        self._bindings = bindings

    def _context(self, actor: Actor, raw: Mapping[str, Any]) -> ClassContext:
        params = dict(raw)
        if not params.get("department"):
            params["department"] = actor.department
        return context_from_mapping(params)

    def _owner_for(self, actor: Actor, context: ClassContext) -> Optional[str]:
        binding = self._bindings.get_active(context.composite_key)
        if binding is not None:
            return binding.faculty_id
        return actor.user_id if actor.role == Role.FACULTY else None

    def get(self, student_id: str) -> StudentRecord:
        student = self._students.get(student_id)
        if not student:
            raise NotFound("Student not found")
        return student

    def admit(self, actor: Actor, data: Mapping[str, Any]) -> StudentRecord:
        """Create a student together with its first enrollment.

        ``data`` carries name, email, roll_number (or rollNumber), an
        optional user_id, and the class parameters of the first term.
        """
        name = require_max_length(require_non_empty(data.get("name"), "Name"), "Name", 100)
        email = require_email(data.get("email"))
        roll_number = require_non_empty(data.get("roll_number") or data.get("rollNumber"), "Roll number")
        context = self._context(actor, data)

        self._bindings.require(actor, context, purpose="student.admit")

        if self._students.get_by_email(email):
            raise DuplicateEntry("Email already registered", details={"email": email})
        if self._students.get_active_by_roll(
            batch_year=context.batch_year, section=context.section, roll_number=roll_number
        ):
            raise DuplicateEntry(
                "Roll number already exists in this batch and section",
                details={"roll_number": roll_number, "composite_key": context.composite_key},
            )

        user_id = str(data.get("user_id") or uuid.uuid4().hex)
        student = NewStudent(
            user_id=user_id,
            roll_number=roll_number,
            name=name,
            email=email,
            department=context.department,
            batch_year=context.batch_year,
            section=context.section,
            created_by=actor.user_id,
        )
        first = EnrollmentFields.from_context(
            context, faculty_id=self._owner_for(actor, context), created_by=actor.user_id
        )
        created = self._students.create(student, first)
        logger.info("admitted %s (%s) into %s", user_id, roll_number, context.composite_key)
        return created

    def enroll(self, actor: Actor, student_id: str, raw_context: Mapping[str, Any]) -> StudentRecord:
        """Start a new term; earlier active enrollments become completed."""
        student = self.get(student_id)
        if not student.is_active:
            raise ValidationError("Student has been removed")
        if student.department.strip().lower() != actor.department.strip().lower():
            raise ValidationError("Student belongs to a different department")

        params = dict(raw_context)
        params.setdefault("department", student.department)
        context = self._context(actor, params)
        self._bindings.require(actor, context, purpose="student.enroll")

        if any(e.describes(context) for e in student.enrollments):
            raise DuplicateEntry(
                "Student is already enrolled in this class", details={"composite_key": context.composite_key}
            )

        new_id = self._students.add_enrollment(
            student.user_id,
            EnrollmentFields.from_context(context, faculty_id=self._owner_for(actor, context), created_by=actor.user_id),
        )
        for previous in student.active_enrollments():
            if previous.enrollment_id != new_id:
                self._students.set_enrollment_status(
                    student_id=student.user_id, enrollment_id=previous.enrollment_id, status=EnrollmentStatus.COMPLETED
                )
        return self.get(student.user_id)

    def _enrollment_context(self, student: StudentRecord, enrollment: SemesterEnrollment) -> ClassContext:
        department = enrollment.department or student.department
        if enrollment.composite_key:
            return context_from_key(enrollment.composite_key, department)
        return normalize_context(
            year=enrollment.year_label,
            semester=enrollment.semester_label,
            section=enrollment.section,
            batch=enrollment.batch,
            department=department,
        )

    def withdraw_enrollment(self, actor: Actor, student_id: str, enrollment_id: int) -> StudentRecord:
        """Remove one enrollment; the last one going soft-deletes the student."""
        student = self.get(student_id)
        enrollment = next((e for e in student.enrollments if e.enrollment_id == int(enrollment_id)), None)
        if enrollment is None:
            raise NotFound("Enrollment not found")

        context = self._enrollment_context(student, enrollment)
        self._bindings.require(actor, context, purpose="student.withdraw")

        if not self._students.remove_enrollment(student_id=student.user_id, enrollment_id=enrollment.enrollment_id):
            raise NotFound("Enrollment not found")

        remaining = self.get(student.user_id)
        if not remaining.enrollments and remaining.is_active:
            self._students.soft_delete(student.user_id)
            logger.info("student %s has no enrollments left, soft-deleted", student.user_id)
            remaining = self.get(student.user_id)
        return remaining
