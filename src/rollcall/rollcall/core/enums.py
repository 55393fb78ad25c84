from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Caller roles as supplied by the authentication collaborator."""

    ADMIN = "admin"
    PRINCIPAL = "principal"
    HOD = "hod"
    FACULTY = "faculty"
    STUDENT = "student"

    @property
    def is_administrative(self) -> bool:
        return self in {Role.ADMIN, Role.PRINCIPAL, Role.HOD}


class AccountStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class StudentStatus(str, Enum):
    ACTIVE = "active"
    DELETED = "deleted"


class EnrollmentStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


class LedgerStatus(str, Enum):
    """Ledger entry lifecycle: draft -> finalized -> modified."""

    DRAFT = "draft"
    FINALIZED = "finalized"
    MODIFIED = "modified"

    @property
    def is_settled(self) -> bool:
        return self in {LedgerStatus.FINALIZED, LedgerStatus.MODIFIED}


class StrategyName(str, Enum):
    """Roster lookup strategies, strongest first."""

    CANONICAL = "canonical_match"
    COMPOSITE_STRING = "composite_string_match"
    DECOMPOSED_FIELDS = "decomposed_field_match"
    DEPARTMENT_BROAD = "department_scoped_broad_match"


class AuditOperation(str, Enum):
    RESOLVE = "roster.resolve"
    RECONCILE = "roster.reconcile"
    BINDING_DECISION = "binding.decision"
    BINDING_ASSIGN = "binding.assign"
    BINDING_RETIRE = "binding.retire"
    LEDGER_MARK = "ledger.mark"
    LEDGER_EDIT = "ledger.edit"
    LEDGER_FINALIZE = "ledger.finalize"
