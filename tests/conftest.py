from __future__ import annotations

from datetime import datetime, timezone

import pytest

from rollcall.container import assemble
from rollcall.core.enums import Role
from rollcall.users.model import Actor
from tests.fakes import FakeAssignmentRepo, FakeAuditRepo, FakeHolidayRepo, FakeLedgerRepo, FakeStudentRepo


@pytest.fixture
def fixed_now():
    # 10:00 in Asia/Kolkata
    return datetime(2025, 3, 10, 4, 30, 0, tzinfo=timezone.utc)


@pytest.fixture
def audit_repo():
    return FakeAuditRepo()


@pytest.fixture
def students_repo(audit_repo):
    return FakeStudentRepo(audit_repo)


@pytest.fixture
def assignments_repo():
    return FakeAssignmentRepo()


@pytest.fixture
def ledger_repo():
    return FakeLedgerRepo()


@pytest.fixture
def holidays_repo():
    return FakeHolidayRepo()


@pytest.fixture
def container(students_repo, assignments_repo, ledger_repo, audit_repo, holidays_repo):
    return assemble(
        students_repo=students_repo,
        assignments_repo=assignments_repo,
        ledger_repo=ledger_repo,
        audit_repo=audit_repo,
        holidays_repo=holidays_repo,
    )


@pytest.fixture
def faculty():
    return Actor(user_id="F1", role=Role.FACULTY, department="CSE")


@pytest.fixture
def other_faculty():
    return Actor(user_id="F2", role=Role.FACULTY, department="CSE")


@pytest.fixture
def hod():
    return Actor(user_id="H1", role=Role.HOD, department="CSE")
