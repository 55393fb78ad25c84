from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Any, Optional, Sequence

from ..common.datetime_utils import as_utc
from ..core.enums import LedgerStatus
from ..core.exceptions import InvariantViolation
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, dump_rolls, fetchall, fetchone, load_rolls, translate_duplicate
from .model import LedgerEntry
from .repository import LedgerRepository

_COLUMNS = """
    entry_id, owner_faculty_id, composite_key, attendance_date, department, present_rolls, absent_rolls,
    status, notes, created_by, updated_by, created_at, updated_at
"""


def _naive_utc(value: datetime) -> datetime:
    return as_utc(value).replace(tzinfo=None)


def _row_to_entry(r: dict[str, Any]) -> LedgerEntry:
    return LedgerEntry(
        entry_id=int(r["entry_id"]),
        owner_faculty_id=r["owner_faculty_id"],
        composite_key=r["composite_key"],
        attendance_date=r["attendance_date"],
        department=r["department"],
        present=load_rolls(r.get("present_rolls")),
        absent=load_rolls(r.get("absent_rolls")),
        status=LedgerStatus(r["status"]),
        notes=r.get("notes"),
        created_by=r["created_by"],
        updated_by=r.get("updated_by"),
        created_at=as_utc(r["created_at"]),
        updated_at=as_utc(r["updated_at"]) if r.get("updated_at") else None,
    )


class MySQLLedgerRepository(LedgerRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _get_by_id(self, entry_id: int) -> Optional[LedgerEntry]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM attendance_ledger WHERE entry_id=%s", (int(entry_id),))
            r = fetchone(cur)
            return _row_to_entry(r) if r else None

    def get(self, *, owner_faculty_id: str, composite_key: str, attendance_date: str) -> Optional[LedgerEntry]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_ledger
                WHERE owner_faculty_id=%s AND composite_key=%s AND attendance_date=%s
                """,
                (owner_faculty_id, composite_key, attendance_date),
            )
            r = fetchone(cur)
            return _row_to_entry(r) if r else None

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
        # validates the set invariant before anything reaches the store
        entry = LedgerEntry(
            entry_id=0,
            owner_faculty_id=owner_faculty_id,
            composite_key=composite_key,
            attendance_date=attendance_date,
            department=department,
            present=frozenset(present),
            absent=frozenset(absent),
            status=status,
            notes=notes,
            created_by=actor_id,
            updated_by=actor_id,
            created_at=as_utc(now),
            updated_at=as_utc(now),
        )
        with translate_duplicate("Attendance already recorded for this class and date"):
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO attendance_ledger(
                        owner_faculty_id, composite_key, attendance_date, department, present_rolls, absent_rolls,
                        total_students, status, notes, created_by, updated_by, created_at, updated_at
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (
                        owner_faculty_id,
                        composite_key,
                        attendance_date,
                        department,
                        dump_rolls(entry.present),
                        dump_rolls(entry.absent),
                        entry.total_students,
                        status.value,
                        notes,
                        actor_id,
                        actor_id,
                        _naive_utc(now),
                        _naive_utc(now),
                    ),
                )
                new_id = int(cur.lastrowid)
        return replace(entry, entry_id=new_id)

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
        if present & absent:
            raise InvariantViolation("Roll numbers cannot be both present and absent")
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE attendance_ledger
                SET present_rolls=%s, absent_rolls=%s, total_students=%s, status=%s,
                    notes=COALESCE(%s, notes), updated_by=%s, updated_at=%s
                WHERE entry_id=%s
                """,
                (
                    dump_rolls(present),
                    dump_rolls(absent),
                    len(present) + len(absent),
                    status.value,
                    notes,
                    actor_id,
                    _naive_utc(now),
                    int(entry_id),
                ),
            )
        return self._get_by_id(entry_id)

    def transition(
        self,
        *,
        entry_id: int,
        from_status: LedgerStatus,
        to_status: LedgerStatus,
        actor_id: str,
        now: datetime,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE attendance_ledger
                SET status=%s, updated_by=%s, updated_at=%s
                WHERE entry_id=%s AND status=%s
                """,
                (to_status.value, actor_id, _naive_utc(now), int(entry_id), from_status.value),
            )
            return cur.rowcount > 0

    def list_range(
        self,
        composite_key: str,
        start: str,
        end: str,
        *,
        owner_faculty_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> Sequence[LedgerEntry]:
        sql = f"""
            SELECT {_COLUMNS}
            FROM attendance_ledger
            WHERE composite_key=%s AND attendance_date BETWEEN %s AND %s
        """
        params: list[Any] = [composite_key, start, end]
        if owner_faculty_id is not None:
            sql += " AND owner_faculty_id=%s"
            params.append(owner_faculty_id)
        sql += " ORDER BY attendance_date DESC, entry_id DESC"
        if limit is not None:
            sql += " LIMIT %s"
            params.append(int(limit))
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(params))
            return [_row_to_entry(r) for r in fetchall(cur)]
