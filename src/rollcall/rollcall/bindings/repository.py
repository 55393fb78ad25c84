from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from .model import ClassAssignment


class ClassAssignmentRepository(Protocol):
    def get_active(self, composite_key: str) -> Optional[ClassAssignment]:
        raise NotImplementedError

    def list_for_faculty(self, faculty_id: str, *, include_retired: bool = False) -> Sequence[ClassAssignment]:
        raise NotImplementedError

    def insert_active(
        self,
        *,
        faculty_id: str,
        composite_key: str,
        department: str,
        assigned_by: str,
        assigned_at: datetime,
        notes: Optional[str] = None,
        retire_id: Optional[int] = None,
    ) -> ClassAssignment:
        """Insert the new active assignment, retiring ``retire_id`` first in the same transaction.

        Raises DuplicateEntry when another active assignment holds the key
        (including when ``retire_id`` was already retired by someone else).
        """

        raise NotImplementedError

    def retire(self, *, assignment_id: int, retired_by: str, retired_at: datetime) -> bool:
        raise NotImplementedError
