from __future__ import annotations

from ..students.repository import StudentRepository
from ..users.model import Actor
from .model import BindingDecision
from .repository import ClassAssignmentRepository

RULE_INACTIVE = "inactive_account"
RULE_DEPARTMENT = "department_mismatch"
RULE_OWNER = "class_owner"
RULE_ENROLLMENT = "enrollment_faculty"
RULE_ADMINISTRATIVE = "administrative_role"
RULE_UNBOUND = "not_bound"


class FacultyClassBindingValidator:
    """Decides whether a caller may operate on a class.

    Read-only: consults the active class assignment and the enrollment
    store, never writes. Callers audit and enforce the decision.
    """

    def __init__(self, assignments: ClassAssignmentRepository, students: StudentRepository):
        self._assignments = assignments
        self._students = students

    def authorize(self, actor: Actor, composite_key: str, *, department: str) -> BindingDecision:
        if not actor.is_active:
            return BindingDecision(False, "Account is not active", RULE_INACTIVE)

        # department mismatch wins over every grant below
        if (actor.department or "").strip().lower() != (department or "").strip().lower():
            return BindingDecision(
                False,
                f"Caller department {actor.department!r} does not match class department {department!r}",
                RULE_DEPARTMENT,
            )

        active = self._assignments.get_active(composite_key)
        if active is not None and active.faculty_id == actor.user_id:
            return BindingDecision(True, "Caller holds the active class assignment", RULE_OWNER)

        if self._students.has_enrollment_for_faculty(faculty_id=actor.user_id, composite_key=composite_key):
            return BindingDecision(True, "Caller is the faculty on enrollments of this class", RULE_ENROLLMENT)

        if actor.role.is_administrative:
            return BindingDecision(True, f"{actor.role.value} of the class department", RULE_ADMINISTRATIVE)

        return BindingDecision(False, "Caller is not bound to this class", RULE_UNBOUND)
