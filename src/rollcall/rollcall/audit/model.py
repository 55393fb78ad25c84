from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from ..core.enums import AuditOperation


@dataclass(frozen=True)
class AuditEntry:
    """One append-only audit record.

    ``changes`` maps a field name to ``{"before": ..., "after": ...}`` for
    every value a correction rewrote.
    """

    operation: AuditOperation
    actor_id: str
    created_at: datetime
    composite_key: Optional[str] = None
    strategy: Optional[str] = None
    subject_id: Optional[str] = None
    changes: dict[str, dict[str, Any]] = field(default_factory=dict)
    details: dict[str, Any] = field(default_factory=dict)
    audit_id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "audit_id": self.audit_id,
            "operation": self.operation.value,
            "composite_key": self.composite_key,
            "strategy": self.strategy,
            "actor_id": self.actor_id,
            "subject_id": self.subject_id,
            "changes": self.changes,
            "details": self.details,
            "created_at": self.created_at.isoformat(),
        }
