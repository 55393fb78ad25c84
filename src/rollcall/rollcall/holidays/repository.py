from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import Holiday


class HolidayRepository(Protocol):
    def find_for_day(self, day: str, department: str) -> Optional[Holiday]:
        """Active holiday on ``day`` for the department or the whole college."""

        raise NotImplementedError

    def add(self, *, day: str, reason: str, department: Optional[str]) -> Holiday:
        raise NotImplementedError

    def deactivate(self, holiday_id: int) -> bool:
        raise NotImplementedError

    def list_between(self, start: str, end: str, *, department: Optional[str] = None) -> Sequence[Holiday]:
        raise NotImplementedError
