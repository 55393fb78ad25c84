from __future__ import annotations

from typing import Any, Sequence

from ..common.datetime_utils import as_utc
from ..core.enums import AuditOperation
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, dump_json, fetchall, load_json
from .model import AuditEntry
from .repository import AuditRepository

_COLUMNS = "audit_id, operation, composite_key, strategy, actor_id, subject_id, changes, details, created_at"


def insert_audit_row(cur, entry: AuditEntry) -> int:
    """Write one audit row on an open cursor so callers can share a transaction."""
    cur.execute(
        """
        INSERT INTO audit_log(operation, composite_key, strategy, actor_id, subject_id, changes, details, created_at)
        VALUES(%s,%s,%s,%s,%s,%s,%s,%s)
        """,
        (
            entry.operation.value,
            entry.composite_key,
            entry.strategy,
            entry.actor_id,
            entry.subject_id,
            dump_json(entry.changes),
            dump_json(entry.details),
            as_utc(entry.created_at).replace(tzinfo=None),
        ),
    )
    return int(cur.lastrowid)


def _row_to_entry(r: dict[str, Any]) -> AuditEntry:
    return AuditEntry(
        audit_id=int(r["audit_id"]),
        operation=AuditOperation(r["operation"]),
        composite_key=r.get("composite_key"),
        strategy=r.get("strategy"),
        actor_id=r["actor_id"],
        subject_id=r.get("subject_id"),
        changes=load_json(r.get("changes")) or {},
        details=load_json(r.get("details")) or {},
        created_at=as_utc(r["created_at"]),
    )


class MySQLAuditRepository(AuditRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def append(self, entry: AuditEntry) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            return insert_audit_row(cur, entry)

    def list_by_composite_key(self, composite_key: str, *, limit: int) -> Sequence[AuditEntry]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM audit_log
                WHERE composite_key=%s
                ORDER BY created_at DESC, audit_id DESC
                LIMIT %s
                """,
                (composite_key, int(limit)),
            )
            return [_row_to_entry(r) for r in fetchall(cur)]

    def list_by_actor(self, actor_id: str, *, limit: int) -> Sequence[AuditEntry]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM audit_log
                WHERE actor_id=%s
                ORDER BY created_at DESC, audit_id DESC
                LIMIT %s
                """,
                (actor_id, int(limit)),
            )
            return [_row_to_entry(r) for r in fetchall(cur)]
