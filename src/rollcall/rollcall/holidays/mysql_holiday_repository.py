from __future__ import annotations

from typing import Any, Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, translate_duplicate
from .model import Holiday
from .repository import HolidayRepository


def _row_to_holiday(r: dict[str, Any]) -> Holiday:
    return Holiday(
        holiday_id=int(r["holiday_id"]),
        holiday_date=r["holiday_date"],
        reason=r["reason"],
        department=r.get("department"),
        is_active=bool(r.get("is_active", 1)),
    )


class MySQLHolidayRepository(HolidayRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def find_for_day(self, day: str, department: str) -> Optional[Holiday]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT holiday_id, holiday_date, reason, department, is_active
                FROM holidays
                WHERE holiday_date=%s AND is_active=1 AND (department IS NULL OR department=%s)
                ORDER BY department IS NULL, holiday_id
                LIMIT 1
                """,
                (day, department),
            )
            r = fetchone(cur)
            return _row_to_holiday(r) if r else None

    def add(self, *, day: str, reason: str, department: Optional[str]) -> Holiday:
        with translate_duplicate("Holiday already declared for this date"):
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    "INSERT INTO holidays(holiday_date, reason, department, is_active) VALUES(%s,%s,%s,1)",
                    (day, reason, department),
                )
                holiday_id = int(cur.lastrowid)
        return Holiday(holiday_id=holiday_id, holiday_date=day, reason=reason, department=department)

    def deactivate(self, holiday_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE holidays SET is_active=0 WHERE holiday_id=%s AND is_active=1", (int(holiday_id),))
            return cur.rowcount > 0

    def list_between(self, start: str, end: str, *, department: Optional[str] = None) -> Sequence[Holiday]:
        sql = """
            SELECT holiday_id, holiday_date, reason, department, is_active
            FROM holidays
            WHERE holiday_date BETWEEN %s AND %s AND is_active=1
        """
        params: list[Any] = [start, end]
        if department is not None:
            sql += " AND (department IS NULL OR department=%s)"
            params.append(department)
        sql += " ORDER BY holiday_date"
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(params))
            return [_row_to_holiday(r) for r in fetchall(cur)]
