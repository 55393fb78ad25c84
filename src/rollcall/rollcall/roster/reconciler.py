from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Optional

from ..audit.service import AuditLog
from ..classes.model import ClassContext
from ..common.datetime_utils import now_utc
from ..core.enums import AuditOperation, StrategyName
from ..students.model import EnrollmentCorrection, EnrollmentFields, StudentRecord
from ..students.repository import StudentRepository

logger = logging.getLogger(__name__)


class Reconciler:
    """The only writer of corrective class-identity fields.

    Each correction targets one enrollment of one student and is stored
    together with its audit row; roll number, name, email and the legacy
    mirror are never touched. Without an owner faculty only missing
    identity fields are filled and ``faculty_id`` stays as stored.
    """

    def __init__(self, students: StudentRepository):
        self._students = students

    def plan(
        self,
        student: StudentRecord,
        owner_faculty_id: Optional[str],
        context: ClassContext,
        *,
        actor_id: str,
    ) -> Optional[EnrollmentCorrection]:
        key = context.composite_key
        enrollment = student.relevant_enrollment(context)

        if enrollment is None:
            if any(e.describes(context) for e in student.enrollments):
                # completed term for this class; the array already decided
                return None
            return EnrollmentCorrection(
                student_id=student.user_id,
                enrollment_id=None,
                target_key=key,
                fields=EnrollmentFields.from_context(context, faculty_id=owner_faculty_id, created_by=actor_id),
            )

        faculty_settled = owner_faculty_id is None or enrollment.faculty_id == owner_faculty_id
        if faculty_settled and enrollment.composite_key == key:
            return None

        fields = EnrollmentFields(
            batch=None if enrollment.batch else context.batch_year,
            year_label=None if enrollment.year_label else context.year_label,
            semester_label=None if enrollment.semester_label else context.semester_label,
            section=None if enrollment.section else context.section,
            department=None if enrollment.department else context.department,
            faculty_id=owner_faculty_id,
            composite_key=None if enrollment.composite_key else key,
        )
        before = {
            "batch": enrollment.batch,
            "year_label": enrollment.year_label,
            "semester_label": enrollment.semester_label,
            "section": enrollment.section,
            "department": enrollment.department,
            "faculty_id": enrollment.faculty_id,
            "composite_key": enrollment.composite_key,
        }
        return EnrollmentCorrection(
            student_id=student.user_id,
            enrollment_id=enrollment.enrollment_id,
            target_key=key,
            fields=fields,
            before=before,
        )

    def reconcile(
        self,
        students: Iterable[StudentRecord],
        owner_faculty_id: Optional[str],
        context: ClassContext,
        *,
        actor_id: str,
        strategy: Optional[StrategyName] = None,
        now: Optional[datetime] = None,
    ) -> int:
        """Apply every needed correction; returns how many were written."""
        now = now or now_utc()
        corrected = 0
        for student in students:
            correction = self.plan(student, owner_faculty_id, context, actor_id=actor_id)
            if correction is None:
                continue

            entry = AuditLog.build(
                AuditOperation.RECONCILE,
                actor_id=actor_id,
                composite_key=correction.target_key,
                strategy=strategy.value if strategy else None,
                subject_id=student.user_id,
                changes=correction.diff(),
                details={
                    "enrollment_id": correction.enrollment_id,
                    "owner_faculty_id": owner_faculty_id,
                    "upsert": correction.enrollment_id is None,
                },
                now=now,
            )
            if self._students.apply_correction(correction, entry):
                corrected += 1
                logger.info(
                    "reconciled %s into %s (owner %s, enrollment %s)",
                    student.user_id,
                    correction.target_key,
                    owner_faculty_id,
                    correction.enrollment_id,
                )
        return corrected
