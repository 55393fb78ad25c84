from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import LedgerStatus
from .model import LedgerEntry


class LedgerRepository(Protocol):
    """Ledger store; (owner_faculty_id, composite_key, attendance_date) is unique in the store itself."""

    def get(self, *, owner_faculty_id: str, composite_key: str, attendance_date: str) -> Optional[LedgerEntry]:
        raise NotImplementedError

    def insert(
        self,
        *,
        owner_faculty_id: str,
        composite_key: str,
        attendance_date: str,
        department: str,
        present: frozenset[str],
        absent: frozenset[str],
        status: LedgerStatus,
        notes: Optional[str],
        actor_id: str,
        now: datetime,
    ) -> LedgerEntry:
        """Unique-constrained insert; raises DuplicateEntry when the day is already recorded."""

        raise NotImplementedError

    def update_marks(
        self,
        *,
        entry_id: int,
        present: frozenset[str],
        absent: frozenset[str],
        status: LedgerStatus,
        notes: Optional[str],
        actor_id: str,
        now: datetime,
    ) -> Optional[LedgerEntry]:
        raise NotImplementedError

    def transition(
        self,
        *,
        entry_id: int,
        from_status: LedgerStatus,
        to_status: LedgerStatus,
        actor_id: str,
        now: datetime,
    ) -> bool:
        """Conditional status change; False when the entry was not in ``from_status``."""

        raise NotImplementedError

    def list_range(
        self,
        composite_key: str,
        start: str,
        end: str,
        *,
        owner_faculty_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> Sequence[LedgerEntry]:
        """Entries with ``start <= attendance_date <= end``, newest day first."""

        raise NotImplementedError
