from __future__ import annotations

from typing import Optional

from ...classes.model import ClassContext
from ...core.enums import StrategyName
from ...students.model import IdentityClaim, StudentRecord
from .base import RosterStrategy, usable_mirror


class CompositeStringStrategy(RosterStrategy):
    """Legacy class id string equal to the composite key (record not yet migrated)."""

    name = StrategyName.COMPOSITE_STRING

    def match(self, student: StudentRecord, context: ClassContext) -> Optional[IdentityClaim]:
        mirror = usable_mirror(student, context)
        if mirror is not None and mirror.class_id == context.composite_key:
            return mirror
        return None
