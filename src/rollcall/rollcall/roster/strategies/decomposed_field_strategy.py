from __future__ import annotations

from typing import Optional

from ...classes.model import ClassContext
from ...core.enums import StrategyName
from ...students.model import IdentityClaim, StudentRecord
from .base import RosterStrategy, usable_mirror


class DecomposedFieldStrategy(RosterStrategy):
    """Exact batch/year/semester/section equality where no key string was ever written."""

    name = StrategyName.DECOMPOSED_FIELDS

    def match(self, student: StudentRecord, context: ClassContext) -> Optional[IdentityClaim]:
        wanted = context.identity()
        for enrollment in student.active_enrollments():
            if not enrollment.composite_key and enrollment.fields() == wanted:
                return enrollment

        mirror = usable_mirror(student, context)
        if mirror is not None and not mirror.class_id and mirror.fields() == wanted:
            return mirror
        return None
