from __future__ import annotations

import json
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Optional

import mysql.connector
from mysql.connector import errorcode

from ..core.exceptions import DuplicateEntry
from .connection import DatabaseConnection


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True):
    """One connection, one transaction: commit on success, rollback on any error."""
    conn = conn_factory.connect()
    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return list(rows or [])


def is_duplicate_key(err: Exception) -> bool:
    return isinstance(err, mysql.connector.IntegrityError) and getattr(err, "errno", None) == errorcode.ER_DUP_ENTRY


@contextmanager
def translate_duplicate(message: str):
    """Turn the driver's duplicate-key IntegrityError into DuplicateEntry."""
    try:
        yield
    except mysql.connector.IntegrityError as e:
        if is_duplicate_key(e):
            raise DuplicateEntry(message) from e
        raise


def dump_rolls(values: Iterable[str]) -> str:
    return json.dumps(sorted(values))


def load_rolls(value: Any) -> frozenset[str]:
    if not value:
        return frozenset()
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    return frozenset(json.loads(value))


def dump_json(value: Any) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, sort_keys=True, default=str)


def load_json(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    return json.loads(value)
