from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping, Optional, Union

from ..audit.service import AuditLog
from ..bindings.service import BindingService
from ..classes.model import ClassContext
from ..classes.normalizer import context_from_mapping
from ..core.enums import AuditOperation, StrategyName
from ..core.exceptions import NotFound
from ..students.model import LegacyMirror
from ..users.model import Actor
from .model import DriftIssue, RosterResult
from .reconciler import Reconciler
from .resolver import RosterResolver

logger = logging.getLogger(__name__)

RawContext = Union[ClassContext, Mapping[str, Any]]

DRIFT_LEGACY_ONLY = "legacy_only"
DRIFT_MIRROR_DIVERGENCE = "mirror_divergence"
DRIFT_MISSING_KEY = "missing_composite_key"
DRIFT_FACULTY_MISMATCH = "faculty_mismatch"


def as_context(raw: RawContext) -> ClassContext:
    if isinstance(raw, ClassContext):
        return raw
    return context_from_mapping(raw)


class RosterService:
    def __init__(
        self,
        resolver: RosterResolver,
        reconciler: Reconciler,
        bindings: BindingService,
        audit: AuditLog,
    ):
        self._resolver = resolver
        self._reconciler = reconciler
        self._bindings = bindings
        self._audit = audit

    def resolve_roster(
        self,
        actor: Actor,
        raw_context: RawContext,
        *,
        owner_faculty_id: Optional[str] = None,
        authorize_corrections: bool = False,
        now: Optional[datetime] = None,
    ) -> RosterResult:
        """Normalize, resolve and, when authorized, reconcile.

        Corrections are a mutation, so they need the caller to pass the
        Binding Validator first, and they point enrollments at the class
        owner rather than at whoever asked.
        """
        context = as_context(raw_context)
        owner = owner_faculty_id or actor.user_id
        if authorize_corrections:
            decision = self._bindings.require(actor, context, purpose=AuditOperation.RECONCILE.value)
            owner = self._bindings.correction_owner(actor, context, decision)
        return self.resolve_context(
            actor,
            context,
            owner_faculty_id=owner,
            authorize_corrections=authorize_corrections,
            now=now,
        )

    def resolve_context(
        self,
        actor: Actor,
        context: ClassContext,
        *,
        owner_faculty_id: Optional[str],
        authorize_corrections: bool,
        now: Optional[datetime] = None,
    ) -> RosterResult:
        """Resolution for callers that already ran the binding check.

        A ``None`` owner limits corrections to missing identity fields.
        """
        try:
            result = self._resolver.resolve(owner_faculty_id, context, authorize_corrections)
        except NotFound:
            self._audit.record(
                AuditOperation.RESOLVE,
                actor_id=actor.user_id,
                composite_key=context.composite_key,
                details={"owner_faculty_id": owner_faculty_id, "found": False},
                now=now,
            )
            raise

        if result.needs_reconciliation:
            count = self._reconciler.reconcile(
                result.students,
                owner_faculty_id,
                context,
                actor_id=actor.user_id,
                strategy=result.strategy_used,
                now=now,
            )
            result = result.with_corrections(count)

        self._audit.record(
            AuditOperation.RESOLVE,
            actor_id=actor.user_id,
            composite_key=context.composite_key,
            strategy=result.strategy_used.value,
            details={
                "owner_faculty_id": owner_faculty_id,
                "found": True,
                "total": len(result.members),
                "authorize_corrections": bool(authorize_corrections),
                "corrected_count": result.corrected_count,
            },
            now=now,
        )
        return result

    def detect_drift(
        self,
        actor: Actor,
        raw_context: RawContext,
        *,
        owner_faculty_id: Optional[str] = None,
    ) -> list[DriftIssue]:
        """Report identity drift for a class without writing anything.

        The expected faculty is the active class assignment when there is
        one, otherwise ``owner_faculty_id`` (default: the caller).
        """
        context = as_context(raw_context)
        binding = self._bindings.get_active(context.composite_key)
        expected_faculty = binding.faculty_id if binding else (owner_faculty_id or actor.user_id)

        issues: list[DriftIssue] = []
        for student, strategy, claim in self._resolver.scan(context):
            if not student.mirror_matches():
                issues.append(
                    DriftIssue(
                        student.user_id,
                        student.roll_number,
                        DRIFT_MIRROR_DIVERGENCE,
                        strategy,
                        {"mirror_class_id": student.mirror.class_id if student.mirror else None},
                    )
                )

            if isinstance(claim, LegacyMirror):
                issues.append(DriftIssue(student.user_id, student.roll_number, DRIFT_LEGACY_ONLY, strategy))
                continue

            if strategy != StrategyName.CANONICAL:
                issues.append(
                    DriftIssue(
                        student.user_id,
                        student.roll_number,
                        DRIFT_MISSING_KEY,
                        strategy,
                        {"enrollment_id": claim.enrollment_id},
                    )
                )
            if claim.faculty_id != expected_faculty:
                issues.append(
                    DriftIssue(
                        student.user_id,
                        student.roll_number,
                        DRIFT_FACULTY_MISMATCH,
                        strategy,
                        {"enrollment_id": claim.enrollment_id, "found": claim.faculty_id, "expected": expected_faculty},
                    )
                )

        if issues:
            logger.info("drift in %s: %d issue(s)", context.composite_key, len(issues))
        return issues
