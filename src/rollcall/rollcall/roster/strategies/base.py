from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from ...classes.model import ClassContext
from ...classes.normalizer import parse_composite_key, try_identity
from ...core.enums import StrategyName
from ...core.exceptions import MalformedContext
from ...students.model import IdentityClaim, LegacyMirror, StudentRecord


class RosterStrategy(ABC):
    """Strategy Pattern: one way of deciding that a student belongs to a class.

    Implementations are pure; they look at one already-loaded record and
    return the claim that placed the student in the class, or ``None``.
    """

    name: StrategyName

    @abstractmethod
    def match(self, student: StudentRecord, context: ClassContext) -> Optional[IdentityClaim]:
        raise NotImplementedError


def usable_mirror(student: StudentRecord, context: ClassContext) -> Optional[LegacyMirror]:
    """The legacy mirror, unless the enrollment array already settles this class.

    A completed enrollment for the class means the student has moved on;
    a stale mirror must not pull them back into the roster.
    """
    mirror = student.mirror
    if mirror is None or mirror.is_empty():
        return None
    if any(not e.is_active and e.describes(context) for e in student.enrollments):
        return None
    return mirror


def mirror_identity(mirror: LegacyMirror) -> Optional[tuple[str, str, str, str]]:
    """Tolerant identity of a mirror: its class id when parseable, else its fields."""
    if mirror.class_id:
        try:
            batch, year, semester, section = parse_composite_key(mirror.class_id)
        except MalformedContext:
            return None
        return try_identity(batch=batch, year=year, semester=semester, section=section)
    return mirror.normalized_identity()


def same_department(value: Optional[str], context: ClassContext) -> bool:
    return bool(value) and value.strip().lower() == context.department.strip().lower()
