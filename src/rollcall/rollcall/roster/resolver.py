from __future__ import annotations

import logging
from typing import Optional, Sequence

from ..classes.model import ClassContext
from ..core.enums import StrategyName
from ..core.exceptions import NotFound
from ..students.model import IdentityClaim, StudentRecord, roll_sort_key
from ..students.repository import StudentRepository
from .factory import RosterStrategyFactory
from .model import RosterMember, RosterResult

logger = logging.getLogger(__name__)


class RosterResolver:
    """Finds the authoritative student set of a class.

    Strategies run in order against a fresh read of the department's
    students; the first strategy with a non-empty answer wins and weaker
    ones are never consulted.
    """

    def __init__(self, students: StudentRepository, *, strategy_factory: RosterStrategyFactory | None = None):
        self._students = students
        self._factory = strategy_factory or RosterStrategyFactory()

    def _candidates(self, context: ClassContext) -> list[StudentRecord]:
        return [s for s in self._students.find_active_in_department(context.department) if s.is_active]

    def resolve(
        self, owner_faculty_id: Optional[str], context: ClassContext, authorize_corrections: bool = False
    ) -> RosterResult:
        candidates = self._candidates(context)

        for strategy in self._factory.chain():
            matched: dict[str, RosterMember] = {}
            for student in candidates:
                if student.user_id in matched:
                    continue
                claim = strategy.match(student, context)
                if claim is not None:
                    matched[student.user_id] = RosterMember(student=student, claim=claim)

            logger.debug("strategy %s matched %d for %s", strategy.name.value, len(matched), context.composite_key)
            if not matched:
                continue

            members = tuple(sorted(matched.values(), key=lambda m: roll_sort_key(m.student.roll_number)))
            needs = bool(authorize_corrections) and strategy.name != StrategyName.CANONICAL
            logger.info(
                "roster %s for owner %s resolved via %s (%d students)",
                context.composite_key,
                owner_faculty_id,
                strategy.name.value,
                len(members),
            )
            return RosterResult(
                context=context,
                strategy_used=strategy.name,
                members=members,
                needs_reconciliation=needs,
            )

        raise NotFound(
            f"No students found for class {context.composite_key}",
            details={"composite_key": context.composite_key, "department": context.department},
        )

    def scan(self, context: ClassContext) -> Sequence[tuple[StudentRecord, StrategyName, IdentityClaim]]:
        """Strongest claim per student across the whole chain, without stopping early."""
        chain = self._factory.chain()
        found: list[tuple[StudentRecord, StrategyName, IdentityClaim]] = []
        for student in self._candidates(context):
            hit: Optional[tuple[StrategyName, IdentityClaim]] = None
            for strategy in chain:
                claim = strategy.match(student, context)
                if claim is not None:
                    hit = (strategy.name, claim)
                    break
            if hit is not None:
                found.append((student, hit[0], hit[1]))
        found.sort(key=lambda row: roll_sort_key(row[0].roll_number))
        return found
