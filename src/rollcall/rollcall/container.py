from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .attendance.mysql_attendance_repository import MySQLLedgerRepository
from .attendance.repository import LedgerRepository
from .attendance.service import AttendanceLedgerService
from .audit.mysql_audit_repository import MySQLAuditRepository
from .audit.repository import AuditRepository
from .audit.service import AuditLog
from .bindings.mysql_binding_repository import MySQLClassAssignmentRepository
from .bindings.repository import ClassAssignmentRepository
from .bindings.service import BindingService
from .bindings.validator import FacultyClassBindingValidator
from .core.constants import DEFAULT_EDIT_WINDOW_DAYS, DEFAULT_TIMEZONE
from .database.connection import DBConfig, DatabaseConnection
from .holidays.mysql_holiday_repository import MySQLHolidayRepository
from .holidays.repository import HolidayRepository
from .holidays.service import HolidayCalendar
from .roster.factory import RosterStrategyFactory
from .roster.reconciler import Reconciler
from .roster.resolver import RosterResolver
from .roster.service import RosterService
from .students.mysql_student_repository import MySQLStudentRepository
from .students.repository import StudentRepository
from .students.service import StudentService


@dataclass(frozen=True)
class Container:
    conn: Optional[DatabaseConnection]

    students_repo: StudentRepository
    assignments_repo: ClassAssignmentRepository
    ledger_repo: LedgerRepository
    audit_repo: AuditRepository
    holidays_repo: HolidayRepository

    audit_log: AuditLog
    binding_validator: FacultyClassBindingValidator
    binding_service: BindingService
    roster_service: RosterService
    student_service: StudentService
    holiday_calendar: HolidayCalendar
    ledger_service: AttendanceLedgerService


def assemble(
    *,
    students_repo: StudentRepository,
    assignments_repo: ClassAssignmentRepository,
    ledger_repo: LedgerRepository,
    audit_repo: AuditRepository,
    holidays_repo: HolidayRepository,
    conn: Optional[DatabaseConnection] = None,
    edit_window_days: int = DEFAULT_EDIT_WINDOW_DAYS,
    tz_name: str = DEFAULT_TIMEZONE,
    auto_reconcile: bool = True,
) -> Container:
    """Wire services over any set of repositories (MySQL in production, fakes in tests)."""
    audit_log = AuditLog(audit_repo)
    binding_validator = FacultyClassBindingValidator(assignments_repo, students_repo)
    binding_service = BindingService(assignments_repo, binding_validator, audit_log)
    roster_service = RosterService(
        RosterResolver(students_repo, strategy_factory=RosterStrategyFactory()),
        Reconciler(students_repo),
        binding_service,
        audit_log,
    )
    student_service = StudentService(students_repo, binding_service)
    holiday_calendar = HolidayCalendar(holidays_repo, tz_name=tz_name)
    ledger_service = AttendanceLedgerService(
        ledger_repo,
        roster_service,
        binding_service,
        holiday_calendar,
        audit_log,
        edit_window_days=edit_window_days,
        tz_name=tz_name,
        auto_reconcile=auto_reconcile,
    )

    return Container(
        conn=conn,
        students_repo=students_repo,
        assignments_repo=assignments_repo,
        ledger_repo=ledger_repo,
        audit_repo=audit_repo,
        holidays_repo=holidays_repo,
        audit_log=audit_log,
        binding_validator=binding_validator,
        binding_service=binding_service,
        roster_service=roster_service,
        student_service=student_service,
        holiday_calendar=holiday_calendar,
        ledger_service=ledger_service,
    )


def build_container(
    *,
    db_config: dict,
    edit_window_days: int = DEFAULT_EDIT_WINDOW_DAYS,
    tz_name: str = DEFAULT_TIMEZONE,
    auto_reconcile: bool = True,
) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_dict(db_config))
    return assemble(
        students_repo=MySQLStudentRepository(conn),
        assignments_repo=MySQLClassAssignmentRepository(conn),
        ledger_repo=MySQLLedgerRepository(conn),
        audit_repo=MySQLAuditRepository(conn),
        holidays_repo=MySQLHolidayRepository(conn),
        conn=conn,
        edit_window_days=edit_window_days,
        tz_name=tz_name,
        auto_reconcile=auto_reconcile,
    )
