from __future__ import annotations

from collections import defaultdict
from typing import Any, Optional, Sequence

from ..audit.model import AuditEntry
from ..audit.mysql_audit_repository import insert_audit_row
from ..common.datetime_utils import as_utc
from ..core.enums import EnrollmentStatus, StudentStatus
from ..core.exceptions import NotFound
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, translate_duplicate
from .model import (
    EnrollmentCorrection,
    EnrollmentFields,
    LegacyMirror,
    NewStudent,
    SemesterEnrollment,
    StudentRecord,
)
from .repository import StudentRepository

_STUDENT_COLUMNS = """
    s.user_id, s.roll_number, s.name, s.email, s.department, s.batch_year, s.section, s.status, s.created_by,
    s.legacy_class_id, s.legacy_batch, s.legacy_year, s.legacy_semester, s.legacy_section,
    s.legacy_department, s.legacy_faculty_id
"""

_ENROLLMENT_COLUMNS = """
    e.enrollment_id, e.student_id, e.batch, e.year_label, e.semester_label, e.section, e.department,
    e.faculty_id, e.composite_key, e.status, e.created_by, e.created_at
"""

# Columns a correction may fill when they are still NULL.
_FILLABLE = ("batch", "year_label", "semester_label", "section", "department", "composite_key")


def _row_to_enrollment(r: dict[str, Any]) -> SemesterEnrollment:
    return SemesterEnrollment(
        enrollment_id=int(r["enrollment_id"]),
        student_id=r["student_id"],
        batch=r.get("batch"),
        year_label=r.get("year_label"),
        semester_label=r.get("semester_label"),
        section=r.get("section"),
        department=r.get("department"),
        faculty_id=r.get("faculty_id"),
        composite_key=r.get("composite_key"),
        status=EnrollmentStatus(r["status"]),
        created_by=r.get("created_by"),
        created_at=as_utc(r["created_at"]) if r.get("created_at") else None,
    )


def _row_to_student(r: dict[str, Any], enrollments: Sequence[SemesterEnrollment]) -> StudentRecord:
    mirror = LegacyMirror(
        class_id=r.get("legacy_class_id"),
        batch=r.get("legacy_batch"),
        year=r.get("legacy_year"),
        semester=r.get("legacy_semester"),
        section=r.get("legacy_section"),
        department=r.get("legacy_department"),
        faculty_id=r.get("legacy_faculty_id"),
    )
    return StudentRecord(
        user_id=r["user_id"],
        roll_number=r["roll_number"],
        name=r["name"],
        email=r["email"],
        department=r["department"],
        batch_year=r["batch_year"],
        section=r["section"],
        enrollments=tuple(sorted(enrollments, key=lambda e: e.enrollment_id)),
        mirror=None if mirror.is_empty() else mirror,
        status=StudentStatus(r["status"]),
        created_by=r.get("created_by"),
    )


def _insert_enrollment(cur, student_id: str, fields: EnrollmentFields) -> int:
    cur.execute(
        """
        INSERT INTO semester_enrollments(
            student_id, batch, year_label, semester_label, section, department,
            faculty_id, composite_key, status, created_by
        )
        VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
        """,
        (
            student_id,
            fields.batch,
            fields.year_label,
            fields.semester_label,
            fields.section,
            fields.department,
            fields.faculty_id,
            fields.composite_key,
            (fields.status or EnrollmentStatus.ACTIVE).value,
            fields.created_by,
        ),
    )
    return int(cur.lastrowid)


class MySQLStudentRepository(StudentRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _load(self, cur, where: str, params: tuple) -> list[StudentRecord]:
        cur.execute(f"SELECT {_STUDENT_COLUMNS} FROM students s WHERE {where} ORDER BY s.roll_number", params)
        rows = fetchall(cur)
        if not rows:
            return []

        cur.execute(
            f"""
            SELECT {_ENROLLMENT_COLUMNS}
            FROM semester_enrollments e
            JOIN students s ON s.user_id = e.student_id
            WHERE {where}
            """,
            params,
        )
        by_student: dict[str, list[SemesterEnrollment]] = defaultdict(list)
        for r in fetchall(cur):
            by_student[r["student_id"]].append(_row_to_enrollment(r))

        return [_row_to_student(r, by_student.get(r["user_id"], [])) for r in rows]

    def get(self, user_id: str) -> Optional[StudentRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            found = self._load(cur, "s.user_id=%s", (user_id,))
            return found[0] if found else None

    def get_by_email(self, email: str) -> Optional[StudentRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            found = self._load(cur, "s.email=%s", (email.lower(),))
            return found[0] if found else None

    def get_active_by_roll(self, *, batch_year: str, section: str, roll_number: str) -> Optional[StudentRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            found = self._load(cur, "s.roll_key=%s", (f"{batch_year}|{section}|{roll_number}",))
            return found[0] if found else None

    def find_active_in_department(self, department: str) -> Sequence[StudentRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            return self._load(cur, "s.department=%s AND s.status=%s", (department, StudentStatus.ACTIVE.value))

    def create(self, student: NewStudent, enrollment: Optional[EnrollmentFields] = None) -> StudentRecord:
        m = student.mirror
        with translate_duplicate("Student email or roll number already exists"):
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO students(
                        user_id, roll_number, name, email, department, batch_year, section, status, roll_key,
                        created_by, legacy_class_id, legacy_batch, legacy_year, legacy_semester, legacy_section,
                        legacy_department, legacy_faculty_id
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (
                        student.user_id,
                        student.roll_number,
                        student.name,
                        student.email,
                        student.department,
                        student.batch_year,
                        student.section,
                        StudentStatus.ACTIVE.value,
                        f"{student.batch_year}|{student.section}|{student.roll_number}",
                        student.created_by,
                        m.class_id,
                        m.batch,
                        m.year,
                        m.semester,
                        m.section,
                        m.department,
                        m.faculty_id,
                    ),
                )
                if enrollment is not None:
                    _insert_enrollment(cur, student.user_id, enrollment)
        created = self.get(student.user_id)
        if created is None:
            raise NotFound(f"Student {student.user_id} vanished right after it was created")
        return created

    def add_enrollment(self, student_id: str, fields: EnrollmentFields) -> int:
        with translate_duplicate("Student is already enrolled in this class"):
            with db_cursor(self._conn_factory) as (_, cur):
                return _insert_enrollment(cur, student_id, fields)

    def set_enrollment_status(self, *, student_id: str, enrollment_id: int, status: EnrollmentStatus) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE semester_enrollments SET status=%s WHERE enrollment_id=%s AND student_id=%s",
                (status.value, int(enrollment_id), student_id),
            )
            return cur.rowcount > 0

    def remove_enrollment(self, *, student_id: str, enrollment_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "DELETE FROM semester_enrollments WHERE enrollment_id=%s AND student_id=%s",
                (int(enrollment_id), student_id),
            )
            return cur.rowcount > 0

    def soft_delete(self, student_id: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE students
                SET status=%s, roll_key=NULL,
                    legacy_class_id=NULL, legacy_batch=NULL, legacy_year=NULL, legacy_semester=NULL,
                    legacy_section=NULL, legacy_department=NULL, legacy_faculty_id=NULL
                WHERE user_id=%s AND status<>%s
                """,
                (StudentStatus.DELETED.value, student_id, StudentStatus.DELETED.value),
            )
            return cur.rowcount > 0

    def has_enrollment_for_faculty(self, *, faculty_id: str, composite_key: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT 1 AS hit
                FROM semester_enrollments e
                JOIN students s ON s.user_id = e.student_id
                WHERE e.faculty_id=%s AND e.composite_key=%s AND s.status=%s
                LIMIT 1
                """,
                (faculty_id, composite_key, StudentStatus.ACTIVE.value),
            )
            return fetchone(cur) is not None

    def apply_correction(self, correction: EnrollmentCorrection, audit: AuditEntry) -> bool:
        fields = correction.fields
        with db_cursor(self._conn_factory) as (_, cur):
            if correction.enrollment_id is None:
                cur.execute(
                    """
                    INSERT INTO semester_enrollments(
                        student_id, batch, year_label, semester_label, section, department,
                        faculty_id, composite_key, status, created_by
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                    ON DUPLICATE KEY UPDATE faculty_id=COALESCE(VALUES(faculty_id), faculty_id)
                    """,
                    (
                        correction.student_id,
                        fields.batch,
                        fields.year_label,
                        fields.semester_label,
                        fields.section,
                        fields.department,
                        fields.faculty_id,
                        correction.target_key,
                        EnrollmentStatus.ACTIVE.value,
                        fields.created_by,
                    ),
                )
            else:
                assignments: list[str] = []
                params: list[object] = []
                if fields.faculty_id is not None:
                    assignments.append("faculty_id=%s")
                    params.append(fields.faculty_id)
                for col in _FILLABLE:
                    value = getattr(fields, col)
                    if value is not None:
                        assignments.append(f"{col}=COALESCE({col}, %s)")
                        params.append(value)
                params.extend([int(correction.enrollment_id), correction.student_id, EnrollmentStatus.ACTIVE.value])
                if fields.faculty_id is not None:
                    settled = "faculty_id <=> %s AND composite_key <=> %s"
                    params.extend([fields.faculty_id, correction.target_key])
                else:
                    settled = "composite_key <=> %s"
                    params.append(correction.target_key)
                cur.execute(
                    f"""
                    UPDATE semester_enrollments
                    SET {", ".join(assignments)}
                    WHERE enrollment_id=%s AND student_id=%s AND status=%s
                      AND NOT ({settled})
                    """,
                    tuple(params),
                )

            if cur.rowcount <= 0:
                return False
            insert_audit_row(cur, audit)
            return True
