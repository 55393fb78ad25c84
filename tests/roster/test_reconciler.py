from __future__ import annotations

import threading

import pytest

from rollcall.classes.normalizer import context_from_mapping
from rollcall.core.enums import AuditOperation, EnrollmentStatus, StrategyName
from rollcall.roster.reconciler import Reconciler
from rollcall.students.model import LegacyMirror
from tests.fakes import CTX, KEY, make_enrollment, make_student

CONTEXT = context_from_mapping(CTX)


def test_fills_missing_key_and_sets_faculty(students_repo, audit_repo, fixed_now):
    e = make_enrollment(1, "S1", composite_key=None, faculty_id="F2", department=None)
    students_repo.seed(make_student("S1", "R1", enrollments=[e]))

    count = Reconciler(students_repo).reconcile(
        [students_repo.get("S1")], "F1", CONTEXT, actor_id="F1", strategy=StrategyName.DECOMPOSED_FIELDS, now=fixed_now
    )

    fixed = students_repo.enrollment("S1", 1)
    assert count == 1
    assert (fixed.faculty_id, fixed.composite_key, fixed.department) == ("F1", KEY, "CSE")

    (entry,) = audit_repo.of(AuditOperation.RECONCILE)
    assert entry.strategy == StrategyName.DECOMPOSED_FIELDS.value
    assert entry.changes["faculty_id"] == {"before": "F2", "after": "F1"}
    assert entry.changes["composite_key"] == {"before": None, "after": KEY}


def test_only_the_matched_enrollment_and_no_identity_fields_change(students_repo):
    other = make_enrollment(1, "S1", composite_key="2021-2025_3rd Year_Sem 5_A", faculty_id="F9")
    matched = make_enrollment(2, "S1", composite_key=None, faculty_id=None)
    students_repo.seed(make_student("S1", "R1", enrollments=[other, matched]))
    before = students_repo.get("S1")

    Reconciler(students_repo).reconcile([before], "F1", CONTEXT, actor_id="F1")

    after = students_repo.get("S1")
    assert students_repo.enrollment("S1", 1) == other
    assert students_repo.enrollment("S1", 2).faculty_id == "F1"
    assert (after.roll_number, after.name, after.email, after.mirror) == (
        before.roll_number,
        before.name,
        before.email,
        before.mirror,
    )


def test_existing_loose_fields_are_left_as_written(students_repo):
    e = make_enrollment(1, "S1", composite_key=None, year_label="2nd", semester_label="3")
    students_repo.seed(make_student("S1", "R1", enrollments=[e]))

    Reconciler(students_repo).reconcile([students_repo.get("S1")], "F1", CONTEXT, actor_id="F1")

    fixed = students_repo.enrollment("S1", 1)
    assert fixed.composite_key == KEY
    assert (fixed.year_label, fixed.semester_label) == ("2nd", "3")


def test_legacy_only_student_gets_an_enrollment(students_repo):
    mirror = LegacyMirror(class_id=KEY, faculty_id="F2")
    students_repo.seed(make_student("S1", "R1", mirror=mirror))

    count = Reconciler(students_repo).reconcile([students_repo.get("S1")], "F1", CONTEXT, actor_id="H1")

    (created,) = students_repo.get("S1").enrollments
    assert count == 1
    assert (created.composite_key, created.faculty_id, created.status) == (KEY, "F1", EnrollmentStatus.ACTIVE)
    assert students_repo.get("S1").mirror == mirror


def test_completed_term_is_not_reopened(students_repo):
    done = make_enrollment(1, "S1", status=EnrollmentStatus.COMPLETED, faculty_id="F2")
    students_repo.seed(make_student("S1", "R1", enrollments=[done], mirror=LegacyMirror(class_id=KEY)))

    assert Reconciler(students_repo).reconcile([students_repo.get("S1")], "F1", CONTEXT, actor_id="F1") == 0
    assert students_repo.enrollment("S1", 1) == done


def test_reconciling_twice_is_a_no_op(students_repo, audit_repo):
    students_repo.seed(make_student("S1", "R1", enrollments=[make_enrollment(1, "S1", composite_key=None)]))
    reconciler = Reconciler(students_repo)

    first = reconciler.reconcile([students_repo.get("S1")], "F1", CONTEXT, actor_id="F1")
    second = reconciler.reconcile([students_repo.get("S1")], "F1", CONTEXT, actor_id="F1")

    assert (first, second) == (1, 0)
    assert len(audit_repo.of(AuditOperation.RECONCILE)) == 1


def test_concurrent_reconciliations_of_one_student_converge(students_repo):
    students_repo.seed(make_student("S1", "R1", enrollments=[make_enrollment(1, "S1", composite_key=None)]))
    stale = students_repo.get("S1")
    reconciler = Reconciler(students_repo)
    counts = []

    threads = [
        threading.Thread(target=lambda: counts.append(reconciler.reconcile([stale], "F1", CONTEXT, actor_id="F1")))
        for _ in range(4)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    fixed = students_repo.enrollment("S1", 1)
    assert sum(counts) == 1
    assert (fixed.faculty_id, fixed.composite_key) == ("F1", KEY)


def test_audit_failure_aborts_the_correction(students_repo, audit_repo):
    original = make_enrollment(1, "S1", composite_key=None, faculty_id="F2")
    students_repo.seed(make_student("S1", "R1", enrollments=[original]))
    audit_repo.fail_next = True

    with pytest.raises(RuntimeError):
        Reconciler(students_repo).reconcile([students_repo.get("S1")], "F1", CONTEXT, actor_id="F1")

    assert students_repo.enrollment("S1", 1) == original
    assert audit_repo.entries == []


def test_without_owner_only_identity_fields_are_filled(students_repo, audit_repo):
    e = make_enrollment(1, "S1", composite_key=None, faculty_id="F2", department=None)
    students_repo.seed(make_student("S1", "R1", enrollments=[e]))

    count = Reconciler(students_repo).reconcile([students_repo.get("S1")], None, CONTEXT, actor_id="H1")

    fixed = students_repo.enrollment("S1", 1)
    assert count == 1
    assert (fixed.faculty_id, fixed.composite_key, fixed.department) == ("F2", KEY, "CSE")
    (entry,) = audit_repo.of(AuditOperation.RECONCILE)
    assert "faculty_id" not in entry.changes
    assert entry.details["owner_faculty_id"] is None


def test_without_owner_a_keyed_enrollment_needs_nothing(students_repo, audit_repo):
    students_repo.seed(make_student("S1", "R1", enrollments=[make_enrollment(1, "S1", faculty_id="F2")]))

    count = Reconciler(students_repo).reconcile([students_repo.get("S1")], None, CONTEXT, actor_id="H1")

    assert count == 0
    assert audit_repo.of(AuditOperation.RECONCILE) == []
