from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Sequence

from ..common.datetime_utils import as_utc
from ..core.exceptions import DuplicateEntry
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, translate_duplicate
from .model import ClassAssignment
from .repository import ClassAssignmentRepository

_COLUMNS = """
    assignment_id, faculty_id, composite_key, department, assigned_by, assigned_at,
    retired_by, retired_at, notes
"""


def _naive_utc(value: datetime) -> datetime:
    return as_utc(value).replace(tzinfo=None)


def _row_to_assignment(r: dict[str, Any]) -> ClassAssignment:
    return ClassAssignment(
        assignment_id=int(r["assignment_id"]),
        faculty_id=r["faculty_id"],
        composite_key=r["composite_key"],
        department=r["department"],
        assigned_by=r["assigned_by"],
        assigned_at=as_utc(r["assigned_at"]),
        retired_by=r.get("retired_by"),
        retired_at=as_utc(r["retired_at"]) if r.get("retired_at") else None,
        notes=r.get("notes"),
    )


class MySQLClassAssignmentRepository(ClassAssignmentRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_active(self, composite_key: str) -> Optional[ClassAssignment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM class_assignments WHERE active_key=%s", (composite_key,))
            r = fetchone(cur)
            return _row_to_assignment(r) if r else None

    def list_for_faculty(self, faculty_id: str, *, include_retired: bool = False) -> Sequence[ClassAssignment]:
        where = "faculty_id=%s" if include_retired else "faculty_id=%s AND active_key IS NOT NULL"
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM class_assignments WHERE {where} ORDER BY assigned_at DESC",
                (faculty_id,),
            )
            return [_row_to_assignment(r) for r in fetchall(cur)]

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
        with translate_duplicate("Class already has an active faculty assignment"):
            with db_cursor(self._conn_factory) as (_, cur):
                if retire_id is not None:
                    cur.execute(
                        """
                        UPDATE class_assignments
                        SET active_key=NULL, retired_by=%s, retired_at=%s
                        WHERE assignment_id=%s AND active_key IS NOT NULL
                        """,
                        (assigned_by, _naive_utc(assigned_at), int(retire_id)),
                    )
                    if cur.rowcount <= 0:
                        raise DuplicateEntry("Assignment to supersede is no longer active")

                cur.execute(
                    """
                    INSERT INTO class_assignments(
                        faculty_id, composite_key, department, active_key, assigned_by, assigned_at, notes
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (faculty_id, composite_key, department, composite_key, assigned_by, _naive_utc(assigned_at), notes),
                )
                new_id = int(cur.lastrowid)

        return ClassAssignment(
            assignment_id=new_id,
            faculty_id=faculty_id,
            composite_key=composite_key,
            department=department,
            assigned_by=assigned_by,
            assigned_at=as_utc(assigned_at),
            notes=notes,
        )

    def retire(self, *, assignment_id: int, retired_by: str, retired_at: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE class_assignments
                SET active_key=NULL, retired_by=%s, retired_at=%s
                WHERE assignment_id=%s AND active_key IS NOT NULL
                """,
                (retired_by, _naive_utc(retired_at), int(assignment_id)),
            )
            return cur.rowcount > 0
