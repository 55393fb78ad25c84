from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from ..audit.service import AuditLog
from ..classes.model import ClassContext
from ..common.datetime_utils import now_utc
from ..common.validators import require_max_length, require_non_empty
from ..core.constants import MAX_NOTES_LENGTH
from ..core.enums import AuditOperation
from ..core.exceptions import DuplicateEntry, NotFound, Unauthorized
from ..users.model import Actor
from .model import BindingDecision, ClassAssignment
from .repository import ClassAssignmentRepository
from .validator import RULE_ADMINISTRATIVE, FacultyClassBindingValidator

logger = logging.getLogger(__name__)


class BindingService:
    def __init__(
        self,
        assignments: ClassAssignmentRepository,
        validator: FacultyClassBindingValidator,
        audit: AuditLog,
    ):
        self._assignments = assignments
        self._validator = validator
        self._audit = audit

    def get_active(self, composite_key: str) -> Optional[ClassAssignment]:
        return self._assignments.get_active(composite_key)

    def check(self, actor: Actor, context: ClassContext, *, purpose: str) -> BindingDecision:
        """Run the validator and audit its decision; never raises on denial."""
        decision = self._validator.authorize(actor, context.composite_key, department=context.department)
        self._audit.record(
            AuditOperation.BINDING_DECISION,
            actor_id=actor.user_id,
            composite_key=context.composite_key,
            details={
                "purpose": purpose,
                "authorized": decision.authorized,
                "rule": decision.rule,
                "reason": decision.reason,
                "department": context.department,
            },
        )
        if not decision.authorized:
            logger.warning(
                "binding denied actor=%s key=%s rule=%s", actor.user_id, context.composite_key, decision.rule
            )
        return decision

    def require(self, actor: Actor, context: ClassContext, *, purpose: str) -> BindingDecision:
        decision = self.check(actor, context, purpose=purpose)
        if not decision.authorized:
            raise Unauthorized(decision.reason, details={"rule": decision.rule})
        return decision

    def correction_owner(self, actor: Actor, context: ClassContext, decision: BindingDecision) -> Optional[str]:
        """Faculty that reconciled enrollments of ``context`` should point at.

        The holder of the active class assignment wins. An administrator
        let in only by role owns nothing, so ``None`` is returned and the
        stored ``faculty_id`` is left alone.
        """
        active = self.get_active(context.composite_key)
        if active is not None:
            return active.faculty_id
        if decision.rule == RULE_ADMINISTRATIVE:
            return None
        return actor.user_id

    def _require_administrator(self, actor: Actor, context: ClassContext) -> None:
        if not actor.is_active or not actor.role.is_administrative:
            raise Unauthorized("Only department administrators can change class assignments")
        if actor.department.strip().lower() != context.department.strip().lower():
            raise Unauthorized("Class belongs to a different department")

    def assign(
        self,
        actor: Actor,
        context: ClassContext,
        faculty_id: str,
        *,
        supersede: bool = False,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ClassAssignment:
        """Bind ``faculty_id`` to the class.

        An existing binding for another faculty is only replaced when
        ``supersede`` is set; the old one is retired in the same write.
        """
        self._require_administrator(actor, context)
        faculty_id = require_non_empty(faculty_id, "Faculty")
        if notes is not None:
            require_max_length(notes, "Notes", MAX_NOTES_LENGTH)
        now = now or now_utc()
        key = context.composite_key

        current = self._assignments.get_active(key)
        if current is not None and current.faculty_id == faculty_id:
            return current
        if current is not None and not supersede:
            raise DuplicateEntry(
                "Class already has an active faculty; supersede it explicitly",
                details={"composite_key": key, "faculty_id": current.faculty_id},
            )

        created = self._assignments.insert_active(
            faculty_id=faculty_id,
            composite_key=key,
            department=context.department,
            assigned_by=actor.user_id,
            assigned_at=now,
            notes=notes,
            retire_id=current.assignment_id if current is not None else None,
        )

        if current is not None:
            self._audit.record(
                AuditOperation.BINDING_RETIRE,
                actor_id=actor.user_id,
                composite_key=key,
                subject_id=current.faculty_id,
                changes={"faculty_id": {"before": current.faculty_id, "after": faculty_id}},
                details={"assignment_id": current.assignment_id, "superseded_by": created.assignment_id},
                now=now,
            )
        self._audit.record(
            AuditOperation.BINDING_ASSIGN,
            actor_id=actor.user_id,
            composite_key=key,
            subject_id=faculty_id,
            details={"assignment_id": created.assignment_id, "supersede": bool(current)},
            now=now,
        )
        logger.info("class %s assigned to %s by %s", key, faculty_id, actor.user_id)
        return created

    def retire(self, actor: Actor, context: ClassContext, *, now: Optional[datetime] = None) -> ClassAssignment:
        self._require_administrator(actor, context)
        now = now or now_utc()
        current = self._assignments.get_active(context.composite_key)
        if current is None:
            raise NotFound("Class has no active faculty assignment")
        if not self._assignments.retire(assignment_id=current.assignment_id, retired_by=actor.user_id, retired_at=now):
            raise NotFound("Class assignment was already retired")

        self._audit.record(
            AuditOperation.BINDING_RETIRE,
            actor_id=actor.user_id,
            composite_key=context.composite_key,
            subject_id=current.faculty_id,
            details={"assignment_id": current.assignment_id},
            now=now,
        )
        return current
