from __future__ import annotations

from typing import Optional

from ...classes.model import ClassContext
from ...core.enums import StrategyName
from ...students.model import IdentityClaim, StudentRecord
from .base import RosterStrategy, mirror_identity, same_department, usable_mirror


class DepartmentScopedStrategy(RosterStrategy):
    """Last resort: loosely written fields, re-normalized, on a claim of the same department.

    Accepts spellings such as ``"2nd"``, ``"3"``, ``"2022_2026"`` or ``"a"``
    but only when the claim itself names the context's department.
    """

    name = StrategyName.DEPARTMENT_BROAD

    def match(self, student: StudentRecord, context: ClassContext) -> Optional[IdentityClaim]:
        wanted = context.identity()
        for enrollment in student.active_enrollments():
            if enrollment.composite_key:
                continue
            if same_department(enrollment.department, context) and enrollment.normalized_identity() == wanted:
                return enrollment

        mirror = usable_mirror(student, context)
        if mirror is not None and same_department(mirror.department, context) and mirror_identity(mirror) == wanted:
            return mirror
        return None
