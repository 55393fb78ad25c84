from __future__ import annotations

from datetime import datetime, timezone

import pytest

from rollcall.audit.service import AuditLog
from rollcall.core.enums import AuditOperation
from rollcall.core.exceptions import NotFound
from rollcall.students.model import EnrollmentCorrection, EnrollmentFields, NewStudent
from rollcall.students.mysql_student_repository import MySQLStudentRepository
from tests.fakes import KEY


class _Cursor:
    def __init__(self, rowcount=1):
        self.statements = []
        self.rowcount = rowcount
        self.lastrowid = 1

    def execute(self, sql, params=()):
        self.statements.append((" ".join(sql.split()), tuple(params)))

    def fetchall(self):
        return []

    def fetchone(self):
        return None

    def close(self):
        pass


class _Connection:
    def __init__(self, cursor):
        self._cursor = cursor

    def cursor(self, dictionary=True):
        return self._cursor

    def commit(self):
        pass

    def rollback(self):
        pass

    def close(self):
        pass


class _ConnectionFactory:
    def __init__(self, rowcount=1):
        self.cursor = _Cursor(rowcount)

    def connect(self):
        return _Connection(self.cursor)


def test_create_raises_not_found_when_row_cannot_be_read_back():
    repo = MySQLStudentRepository(_ConnectionFactory())
    student = NewStudent("S1", "R1", "Asha", "asha@college.test", "CSE", "2022-2026", "A")

    with pytest.raises(NotFound):
        repo.create(student)


def test_identity_only_correction_leaves_faculty_column_out():
    factory = _ConnectionFactory()
    correction = EnrollmentCorrection(
        student_id="S1",
        enrollment_id=7,
        target_key=KEY,
        fields=EnrollmentFields(department="CSE", composite_key=KEY),
    )
    audit = AuditLog.build(
        AuditOperation.RECONCILE,
        actor_id="H1",
        composite_key=KEY,
        now=datetime(2025, 3, 10, tzinfo=timezone.utc),
    )

    assert MySQLStudentRepository(factory).apply_correction(correction, audit) is True

    (update, params), (insert_audit, _) = factory.cursor.statements
    assert "faculty_id=%s" not in update
    assert "NOT (composite_key <=> %s)" in update
    assert params[-1] == KEY
    assert insert_audit.startswith("INSERT INTO audit_log")
