from __future__ import annotations

import pytest

from rollcall.classes.normalizer import context_from_mapping
from rollcall.core.enums import AuditOperation, Role, StrategyName
from rollcall.core.exceptions import MalformedContext, NotFound, Unauthorized
from rollcall.roster.service import (
    DRIFT_FACULTY_MISMATCH,
    DRIFT_LEGACY_ONLY,
    DRIFT_MIRROR_DIVERGENCE,
    DRIFT_MISSING_KEY,
)
from rollcall.students.model import LegacyMirror
from rollcall.users.model import Actor
from tests.fakes import CTX, KEY, make_enrollment, make_student


def test_canonical_match_keeps_mismatched_faculty(container, students_repo, audit_repo, faculty, hod):
    # S1 is enrolled under F2 with the right composite key; F1 owns the class
    students_repo.seed(make_student("S1", "R1", enrollments=[make_enrollment(1, "S1", faculty_id="F2")]))
    container.binding_service.assign(hod, context_from_mapping(CTX), "F1")

    result = container.roster_service.resolve_roster(faculty, CTX, authorize_corrections=True)

    assert [s.user_id for s in result.students] == ["S1"]
    assert result.strategy_used == StrategyName.CANONICAL
    assert result.corrected is False
    assert students_repo.enrollment("S1", 1).faculty_id == "F2"
    assert audit_repo.of(AuditOperation.RECONCILE) == []


def test_resolving_twice_corrects_only_once(container, students_repo, audit_repo, faculty, hod):
    container.binding_service.assign(hod, context_from_mapping(CTX), "F1")
    students_repo.seed(
        make_student("S1", "R1", enrollments=[make_enrollment(1, "S1", composite_key=None)]),
        make_student("S2", "R2", enrollments=[make_enrollment(2, "S2", composite_key=None, faculty_id="F1")]),
    )

    first = container.roster_service.resolve_roster(faculty, CTX, authorize_corrections=True)
    second = container.roster_service.resolve_roster(faculty, CTX, authorize_corrections=True)

    assert first.strategy_used == StrategyName.DECOMPOSED_FIELDS
    assert first.corrected_count == 2
    assert second.strategy_used == StrategyName.CANONICAL
    assert second.corrected is False
    assert [s.user_id for s in second.students] == [s.user_id for s in first.students]
    assert len(audit_repo.of(AuditOperation.RECONCILE)) == 2


def test_stronger_strategy_hides_weaker_claims(container, students_repo, faculty, hod):
    container.binding_service.assign(hod, context_from_mapping(CTX), "F1")
    students_repo.seed(
        make_student("S1", "R1", mirror=LegacyMirror(class_id=KEY)),
        make_student("S2", "R2", enrollments=[make_enrollment(2, "S2", composite_key=None)]),
    )

    result = container.roster_service.resolve_roster(faculty, CTX, authorize_corrections=True)

    assert result.strategy_used == StrategyName.COMPOSITE_STRING
    assert [s.user_id for s in result.students] == ["S1"]
    assert students_repo.enrollment("S2", 2).composite_key is None


def test_corrections_require_binding(container, students_repo):
    students_repo.seed(make_student("S1", "R1", enrollments=[make_enrollment(1, "S1", composite_key=None)]))
    outsider = Actor(user_id="F7", role=Role.FACULTY, department="CSE")

    with pytest.raises(Unauthorized):
        container.roster_service.resolve_roster(outsider, CTX, authorize_corrections=True)

    # reading without corrections stays possible and writes nothing
    result = container.roster_service.resolve_roster(outsider, CTX)
    assert result.strategy_used == StrategyName.DECOMPOSED_FIELDS
    assert students_repo.enrollment("S1", 1).composite_key is None


def test_every_resolution_is_audited(container, audit_repo, faculty):
    with pytest.raises(NotFound):
        container.roster_service.resolve_roster(faculty, CTX)

    (entry,) = audit_repo.of(AuditOperation.RESOLVE)
    assert entry.details["found"] is False
    assert entry.composite_key == KEY


def test_malformed_context_is_rejected_before_resolution(container, students_repo, faculty):
    with pytest.raises(MalformedContext):
        container.roster_service.resolve_roster(faculty, {**CTX, "semester": "Sem 5"})

    assert students_repo.reads == 0


def test_detect_drift_reports_without_writing(container, students_repo, faculty):
    students_repo.seed(
        make_student("S1", "R1", enrollments=[make_enrollment(1, "S1", faculty_id="F2")]),
        make_student("S2", "R2", enrollments=[make_enrollment(2, "S2", composite_key=None)]),
        make_student("S3", "R3", mirror=LegacyMirror(class_id=KEY)),
    )

    issues = container.roster_service.detect_drift(faculty, CTX)

    kinds = {(i.student_id, i.kind) for i in issues}
    assert kinds == {
        ("S1", DRIFT_FACULTY_MISMATCH),
        ("S2", DRIFT_MISSING_KEY),
        ("S3", DRIFT_LEGACY_ONLY),
    }
    assert students_repo.enrollment("S2", 2).composite_key is None


def test_hod_corrections_point_at_the_assigned_faculty(container, students_repo, hod):
    container.binding_service.assign(hod, context_from_mapping(CTX), "F1")
    students_repo.seed(
        make_student("S1", "R1", enrollments=[make_enrollment(1, "S1", composite_key=None, faculty_id="F2")])
    )

    result = container.roster_service.resolve_roster(hod, CTX, authorize_corrections=True)

    assert result.corrected_count == 1
    assert students_repo.enrollment("S1", 1).faculty_id == "F1"
    assert students_repo.enrollment("S1", 1).composite_key == KEY


def test_hod_corrections_without_assignment_keep_stored_faculty(container, students_repo, hod):
    students_repo.seed(
        make_student("S1", "R1", enrollments=[make_enrollment(1, "S1", composite_key=None, faculty_id="F2")])
    )

    container.roster_service.resolve_roster(hod, CTX, authorize_corrections=True)

    assert students_repo.enrollment("S1", 1).faculty_id == "F2"
    assert students_repo.enrollment("S1", 1).composite_key == KEY


def test_detect_drift_flags_mirror_pointing_elsewhere(container, students_repo, faculty):
    stale = LegacyMirror(class_id="2021-2025_3rd Year_Sem 5_A")
    students_repo.seed(make_student("S1", "R1", enrollments=[make_enrollment(1, "S1")], mirror=stale))

    issues = container.roster_service.detect_drift(faculty, CTX)

    assert [(i.student_id, i.kind) for i in issues] == [("S1", DRIFT_MIRROR_DIVERGENCE)]
