from __future__ import annotations

from typing import Optional, Sequence

from ..common.datetime_utils import DayLike, calendar_day, day_range
from ..common.validators import require_max_length, require_non_empty
from ..core.constants import DEFAULT_TIMEZONE
from ..core.exceptions import AuthorizationError, HolidayDate, NotFound
from ..users.model import Actor
from .model import Holiday
from .repository import HolidayRepository


class HolidayCalendar:
    def __init__(self, holidays: HolidayRepository, *, tz_name: str = DEFAULT_TIMEZONE):
        self._holidays = holidays
        self._tz_name = tz_name

    def ensure_open(self, day: DayLike, department: str) -> None:
        day_str = calendar_day(day, tz_name=self._tz_name)
        holiday = self._holidays.find_for_day(day_str, department)
        if holiday:
            raise HolidayDate(
                f"Cannot mark attendance on a holiday: {holiday.reason}",
                details={"date": day_str, "holiday_id": holiday.holiday_id},
            )

    def declare(self, actor: Actor, day: DayLike, reason: str, *, department: Optional[str] = None) -> Holiday:
        if not actor.is_active or not actor.role.is_administrative:
            raise AuthorizationError("Only administrators can declare holidays")
        if department is not None and department.strip().lower() != actor.department.strip().lower():
            raise AuthorizationError("Cannot declare holidays for another department")
        reason = require_max_length(require_non_empty(reason, "Reason"), "Reason", 200)
        return self._holidays.add(
            day=calendar_day(day, tz_name=self._tz_name), reason=reason, department=department
        )

    def cancel(self, actor: Actor, holiday_id: int) -> None:
        if not actor.is_active or not actor.role.is_administrative:
            raise AuthorizationError("Only administrators can cancel holidays")
        if not self._holidays.deactivate(holiday_id):
            raise NotFound("Holiday not found")

    def between(self, start: DayLike, end: DayLike, *, department: Optional[str] = None) -> Sequence[Holiday]:
        start_day, end_day = day_range(start, end, tz_name=self._tz_name)
        return self._holidays.list_between(start_day, end_day, department=department)
