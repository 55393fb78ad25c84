"""In-memory stand-ins for the MySQL repositories.

A lock stands in for store-level atomicity and the inserts enforce the same
uniqueness the schema does.
"""
from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime
from typing import Optional

from rollcall.attendance.model import LedgerEntry
from rollcall.audit.model import AuditEntry
from rollcall.bindings.model import ClassAssignment
from rollcall.core.enums import EnrollmentStatus, LedgerStatus, StudentStatus
from rollcall.core.exceptions import DuplicateEntry, InvariantViolation
from rollcall.holidays.model import Holiday
from rollcall.students.model import (
    EnrollmentCorrection,
    EnrollmentFields,
    LegacyMirror,
    NewStudent,
    SemesterEnrollment,
    StudentRecord,
)

_FILLABLE = ("batch", "year_label", "semester_label", "section", "department", "composite_key")


class FakeAuditRepo:
    def __init__(self):
        self._lock = threading.Lock()
        self._next_id = 1
        self.entries: list[AuditEntry] = []
        self.fail_next = False

    def append(self, entry: AuditEntry) -> int:
        with self._lock:
            if self.fail_next:
                self.fail_next = False
                raise RuntimeError("audit store unavailable")
            audit_id = self._next_id
            self._next_id += 1
            self.entries.append(replace(entry, audit_id=audit_id))
            return audit_id

    def _newest_first(self, rows, limit):
        return sorted(rows, key=lambda e: (e.created_at, e.audit_id), reverse=True)[:limit]

    def list_by_composite_key(self, composite_key, *, limit):
        return self._newest_first([e for e in self.entries if e.composite_key == composite_key], limit)

    def list_by_actor(self, actor_id, *, limit):
        return self._newest_first([e for e in self.entries if e.actor_id == actor_id], limit)

    def of(self, operation):
        return [e for e in self.entries if e.operation == operation]


class FakeStudentRepo:
    def __init__(self, audit: FakeAuditRepo):
        self._lock = threading.RLock()
        self._audit = audit
        self._students: dict[str, StudentRecord] = {}
        self._next_enrollment_id = 100
        self.reads = 0

    # test helpers
    def seed(self, *students: StudentRecord) -> None:
        for s in students:
            self._students[s.user_id] = s
            for e in s.enrollments:
                self._next_enrollment_id = max(self._next_enrollment_id, e.enrollment_id + 1)

    def enrollment(self, student_id: str, enrollment_id: int) -> SemesterEnrollment:
        return next(e for e in self._students[student_id].enrollments if e.enrollment_id == enrollment_id)

    def _new_enrollment_id(self) -> int:
        eid = self._next_enrollment_id
        self._next_enrollment_id += 1
        return eid

    def _put_enrollments(self, student_id: str, enrollments) -> None:
        s = self._students[student_id]
        self._students[student_id] = s.with_enrollments(tuple(sorted(enrollments, key=lambda e: e.enrollment_id)))

    # repository protocol
    def get(self, user_id):
        self.reads += 1
        return self._students.get(user_id)

    def get_by_email(self, email):
        return next((s for s in self._students.values() if s.email == email.lower()), None)

    def get_active_by_roll(self, *, batch_year, section, roll_number):
        key = f"{batch_year}|{section}|{roll_number}"
        return next((s for s in self._students.values() if s.is_active and s.roll_key == key), None)

    def find_active_in_department(self, department):
        self.reads += 1
        with self._lock:
            return [s for s in self._students.values() if s.department == department and s.is_active]

    def create(self, student: NewStudent, enrollment: Optional[EnrollmentFields] = None):
        with self._lock:
            if self.get_by_email(student.email) or self.get_active_by_roll(
                batch_year=student.batch_year, section=student.section, roll_number=student.roll_number
            ):
                raise DuplicateEntry("Student email or roll number already exists")
            self._students[student.user_id] = StudentRecord(
                user_id=student.user_id,
                roll_number=student.roll_number,
                name=student.name,
                email=student.email,
                department=student.department,
                batch_year=student.batch_year,
                section=student.section,
                mirror=None if student.mirror.is_empty() else student.mirror,
                created_by=student.created_by,
            )
            if enrollment is not None:
                self.add_enrollment(student.user_id, enrollment)
            return self._students[student.user_id]

    def _build_enrollment(self, student_id: str, fields: EnrollmentFields, created_at=None) -> SemesterEnrollment:
        return SemesterEnrollment(
            enrollment_id=self._new_enrollment_id(),
            student_id=student_id,
            batch=fields.batch,
            year_label=fields.year_label,
            semester_label=fields.semester_label,
            section=fields.section,
            department=fields.department,
            faculty_id=fields.faculty_id,
            composite_key=fields.composite_key,
            status=fields.status or EnrollmentStatus.ACTIVE,
            created_by=fields.created_by,
            created_at=created_at,
        )

    def add_enrollment(self, student_id, fields: EnrollmentFields):
        with self._lock:
            current = self._students[student_id].enrollments
            if fields.composite_key and any(e.composite_key == fields.composite_key for e in current):
                raise DuplicateEntry("Student is already enrolled in this class")
            created = self._build_enrollment(student_id, fields)
            self._put_enrollments(student_id, current + (created,))
            return created.enrollment_id

    def set_enrollment_status(self, *, student_id, enrollment_id, status):
        with self._lock:
            current = self._students[student_id].enrollments
            if not any(e.enrollment_id == enrollment_id for e in current):
                return False
            self._put_enrollments(
                student_id,
                [replace(e, status=status) if e.enrollment_id == enrollment_id else e for e in current],
            )
            return True

    def remove_enrollment(self, *, student_id, enrollment_id):
        with self._lock:
            current = self._students[student_id].enrollments
            kept = [e for e in current if e.enrollment_id != enrollment_id]
            if len(kept) == len(current):
                return False
            self._put_enrollments(student_id, kept)
            return True

    def soft_delete(self, student_id):
        with self._lock:
            s = self._students.get(student_id)
            if not s or s.status == StudentStatus.DELETED:
                return False
            self._students[student_id] = replace(s, status=StudentStatus.DELETED, mirror=None)
            return True

    def has_enrollment_for_faculty(self, *, faculty_id, composite_key):
        return any(
            s.is_active and e.faculty_id == faculty_id and e.composite_key == composite_key
            for s in self._students.values()
            for e in s.enrollments
        )

    def apply_correction(self, correction: EnrollmentCorrection, audit: AuditEntry) -> bool:
        fields = correction.fields
        with self._lock:
            current = list(self._students[correction.student_id].enrollments)
            if correction.enrollment_id is None:
                same = next((e for e in current if e.composite_key == correction.target_key), None)
                if same is None:
                    updated = current + [self._build_enrollment(correction.student_id, fields)]
                elif fields.faculty_id is not None and same.faculty_id != fields.faculty_id:
                    updated = [replace(e, faculty_id=fields.faculty_id) if e is same else e for e in current]
                else:
                    return False
            else:
                target = next(
                    (e for e in current if e.enrollment_id == correction.enrollment_id and e.is_active), None
                )
                if target is None:
                    return False
                faculty_settled = fields.faculty_id is None or target.faculty_id == fields.faculty_id
                if faculty_settled and target.composite_key == correction.target_key:
                    return False
                changes = {} if fields.faculty_id is None else {"faculty_id": fields.faculty_id}
                for col in _FILLABLE:
                    value = getattr(fields, col)
                    if value is not None and getattr(target, col) is None:
                        changes[col] = value
                updated = [replace(e, **changes) if e is target else e for e in current]

            # audit first: a failure leaves the enrollment untouched
            self._audit.append(audit)
            self._put_enrollments(correction.student_id, updated)
            return True


class FakeAssignmentRepo:
    def __init__(self):
        self._lock = threading.Lock()
        self._rows: dict[int, ClassAssignment] = {}
        self._next_id = 1

    def get_active(self, composite_key):
        return next((a for a in self._rows.values() if a.composite_key == composite_key and a.is_active), None)

    def list_for_faculty(self, faculty_id, *, include_retired=False):
        return [a for a in self._rows.values() if a.faculty_id == faculty_id and (include_retired or a.is_active)]

    def insert_active(
        self, *, faculty_id, composite_key, department, assigned_by, assigned_at, notes=None, retire_id=None
    ):
        with self._lock:
            if retire_id is not None:
                old = self._rows.get(retire_id)
                if old is None or not old.is_active:
                    raise DuplicateEntry("Assignment to supersede is no longer active")
                self._rows[retire_id] = replace(old, retired_by=assigned_by, retired_at=assigned_at)
            if self.get_active(composite_key):
                raise DuplicateEntry("Class already has an active faculty assignment")
            row = ClassAssignment(
                assignment_id=self._next_id,
                faculty_id=faculty_id,
                composite_key=composite_key,
                department=department,
                assigned_by=assigned_by,
                assigned_at=assigned_at,
                notes=notes,
            )
            self._rows[row.assignment_id] = row
            self._next_id += 1
            return row

    def retire(self, *, assignment_id, retired_by, retired_at):
        with self._lock:
            row = self._rows.get(assignment_id)
            if row is None or not row.is_active:
                return False
            self._rows[assignment_id] = replace(row, retired_by=retired_by, retired_at=retired_at)
            return True


class FakeLedgerRepo:
    def __init__(self):
        self._lock = threading.Lock()
        self._rows: dict[tuple[str, str, str], LedgerEntry] = {}
        self._next_id = 1
        self.insert_barrier: Optional[threading.Barrier] = None
        self.insert_attempts = 0

    def all(self) -> list[LedgerEntry]:
        return list(self._rows.values())

    def get(self, *, owner_faculty_id, composite_key, attendance_date):
        return self._rows.get((owner_faculty_id, composite_key, attendance_date))

    def insert(
        self, *, owner_faculty_id, composite_key, attendance_date, department, present, absent, status, notes,
        actor_id, now: datetime,
    ):
        if self.insert_barrier is not None:
            self.insert_barrier.wait(timeout=5)
        with self._lock:
            self.insert_attempts += 1
            key = (owner_faculty_id, composite_key, attendance_date)
            if key in self._rows:
                raise DuplicateEntry("Attendance already recorded for this class and date")
            entry = LedgerEntry(
                entry_id=self._next_id,
                owner_faculty_id=owner_faculty_id,
                composite_key=composite_key,
                attendance_date=attendance_date,
                department=department,
                present=frozenset(present),
                absent=frozenset(absent),
                status=status,
                notes=notes,
                created_by=actor_id,
                created_at=now,
                updated_by=actor_id,
                updated_at=now,
            )
            self._next_id += 1
            self._rows[key] = entry
            return entry

    def _find(self, entry_id):
        return next(((k, e) for k, e in self._rows.items() if e.entry_id == entry_id), (None, None))

    def update_marks(self, *, entry_id, present, absent, status, notes, actor_id, now):
        if present & absent:
            raise InvariantViolation("Roll numbers cannot be both present and absent")
        with self._lock:
            key, entry = self._find(entry_id)
            if entry is None:
                return None
            self._rows[key] = replace(
                entry,
                present=frozenset(present),
                absent=frozenset(absent),
                status=status,
                notes=notes if notes is not None else entry.notes,
                updated_by=actor_id,
                updated_at=now,
            )
            return self._rows[key]

    def transition(self, *, entry_id, from_status: LedgerStatus, to_status: LedgerStatus, actor_id, now):
        with self._lock:
            key, entry = self._find(entry_id)
            if entry is None or entry.status != from_status:
                return False
            self._rows[key] = replace(entry, status=to_status, updated_by=actor_id, updated_at=now)
            return True

    def list_range(self, composite_key, start, end, *, owner_faculty_id=None, limit=None):
        rows = [
            e
            for e in self._rows.values()
            if e.composite_key == composite_key
            and start <= e.attendance_date <= end
            and (owner_faculty_id is None or e.owner_faculty_id == owner_faculty_id)
        ]
        rows.sort(key=lambda e: (e.attendance_date, e.entry_id), reverse=True)
        return rows[:limit] if limit is not None else rows


class FakeHolidayRepo:
    def __init__(self):
        self._rows: list[Holiday] = []

    def find_for_day(self, day, department):
        return next(
            (h for h in self._rows if h.is_active and h.holiday_date == day and h.department in (None, department)),
            None,
        )

    def add(self, *, day, reason, department):
        if any(h.holiday_date == day and h.department == department for h in self._rows):
            raise DuplicateEntry("Holiday already declared for this date")
        holiday = Holiday(holiday_id=len(self._rows) + 1, holiday_date=day, reason=reason, department=department)
        self._rows.append(holiday)
        return holiday

    def deactivate(self, holiday_id):
        for i, h in enumerate(self._rows):
            if h.holiday_id == holiday_id and h.is_active:
                self._rows[i] = replace(h, is_active=False)
                return True
        return False

    def list_between(self, start, end, *, department=None):
        return [
            h
            for h in self._rows
            if h.is_active and start <= h.holiday_date <= end and (department is None or h.department in (None, department))
        ]


def make_enrollment(
    enrollment_id: int,
    student_id: str,
    *,
    batch="2022-2026",
    year_label="2nd Year",
    semester_label="Sem 3",
    section="A",
    department="CSE",
    faculty_id: Optional[str] = "F1",
    composite_key: Optional[str] = "2022-2026_2nd Year_Sem 3_A",
    status=EnrollmentStatus.ACTIVE,
) -> SemesterEnrollment:
    return SemesterEnrollment(
        enrollment_id=enrollment_id,
        student_id=student_id,
        batch=batch,
        year_label=year_label,
        semester_label=semester_label,
        section=section,
        department=department,
        faculty_id=faculty_id,
        composite_key=composite_key,
        status=status,
    )


def make_student(
    user_id: str,
    roll_number: str,
    *,
    department="CSE",
    enrollments=(),
    mirror: Optional[LegacyMirror] = None,
    status=StudentStatus.ACTIVE,
) -> StudentRecord:
    return StudentRecord(
        user_id=user_id,
        roll_number=roll_number,
        name=f"Student {roll_number}",
        email=f"{user_id.lower()}@college.test",
        department=department,
        batch_year="2022-2026",
        section="A",
        enrollments=tuple(enrollments),
        mirror=mirror,
        status=status,
    )


CTX = {"batch": "2022-2026", "year": "2nd Year", "semester": "Sem 3", "section": "A", "department": "CSE"}
KEY = "2022-2026_2nd Year_Sem 3_A"
