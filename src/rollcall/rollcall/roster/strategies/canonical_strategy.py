from __future__ import annotations

from typing import Optional

from ...classes.model import ClassContext
from ...core.enums import StrategyName
from ...students.model import IdentityClaim, StudentRecord
from .base import RosterStrategy


class CanonicalStrategy(RosterStrategy):
    """Active enrollment carrying exactly the context's composite key."""

    name = StrategyName.CANONICAL

    def match(self, student: StudentRecord, context: ClassContext) -> Optional[IdentityClaim]:
        key = context.composite_key
        for enrollment in student.active_enrollments():
            if enrollment.composite_key == key:
                return enrollment
        return None
