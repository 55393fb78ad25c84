from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Optional

from ..classes.model import ClassContext
from ..core.enums import StrategyName
from ..students.model import IdentityClaim, LegacyMirror, StudentRecord


@dataclass(frozen=True)
class RosterMember:
    student: StudentRecord
    claim: IdentityClaim

    @property
    def via_legacy_mirror(self) -> bool:
        return isinstance(self.claim, LegacyMirror)


@dataclass(frozen=True)
class RosterResult:
    """Authoritative roster of one class as found by a single strategy.

    ``needs_reconciliation`` is set when corrections were authorized and a
    non-canonical strategy won; ``corrected`` once the Reconciler wrote at
    least one correction.
    """

    context: ClassContext
    strategy_used: StrategyName
    members: tuple[RosterMember, ...]
    needs_reconciliation: bool = False
    corrected: bool = False
    corrected_count: int = 0

    @property
    def composite_key(self) -> str:
        return self.context.composite_key

    @property
    def students(self) -> list[StudentRecord]:
        return [m.student for m in self.members]

    @property
    def roll_numbers(self) -> frozenset[str]:
        return frozenset(m.student.roll_number for m in self.members)

    def with_corrections(self, count: int) -> "RosterResult":
        return replace(self, corrected=count > 0, corrected_count=int(count))

    def to_dict(self) -> dict:
        return {
            "composite_key": self.composite_key,
            "context": self.context.to_dict(),
            "strategy_used": self.strategy_used.value,
            "corrected": self.corrected,
            "corrected_count": self.corrected_count,
            "total": len(self.members),
            "students": [m.student.to_dict() for m in self.members],
        }


@dataclass(frozen=True)
class DriftIssue:
    """One disagreement between a student's identity claims for a class."""

    student_id: str
    roll_number: str
    kind: str
    strategy: Optional[StrategyName] = None
    detail: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "student_id": self.student_id,
            "roll_number": self.roll_number,
            "kind": self.kind,
            "strategy": self.strategy.value if self.strategy else None,
            "detail": self.detail,
        }
