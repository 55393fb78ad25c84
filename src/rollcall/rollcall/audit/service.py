from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional, Sequence

from ..common.datetime_utils import now_utc
from ..core.constants import DEFAULT_AUDIT_FEED_LIMIT
from ..core.enums import AuditOperation
from ..core.exceptions import ValidationError
from .model import AuditEntry
from .repository import AuditRepository

logger = logging.getLogger(__name__)


class AuditLog:
    """Append-only record of resolution, reconciliation and binding decisions."""

    def __init__(self, audit: AuditRepository):
        self._audit = audit

    @staticmethod
    def build(
        operation: AuditOperation,
        *,
        actor_id: str,
        composite_key: Optional[str] = None,
        strategy: Optional[str] = None,
        subject_id: Optional[str] = None,
        changes: Optional[dict[str, dict[str, Any]]] = None,
        details: Optional[dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> AuditEntry:
        return AuditEntry(
            operation=operation,
            actor_id=str(actor_id),
            composite_key=composite_key,
            strategy=strategy,
            subject_id=subject_id,
            changes=dict(changes or {}),
            details=dict(details or {}),
            created_at=now or now_utc(),
        )

    def record(self, operation: AuditOperation, **kwargs: Any) -> int:
        entry = self.build(operation, **kwargs)
        audit_id = self._audit.append(entry)
        logger.debug("audit %s key=%s actor=%s id=%s", operation.value, entry.composite_key, entry.actor_id, audit_id)
        return audit_id

    def feed_for_class(self, composite_key: str, *, limit: int = DEFAULT_AUDIT_FEED_LIMIT) -> Sequence[AuditEntry]:
        if not composite_key:
            raise ValidationError("composite_key is required")
        return self._audit.list_by_composite_key(composite_key, limit=int(limit))

    def feed_for_actor(self, actor_id: str, *, limit: int = DEFAULT_AUDIT_FEED_LIMIT) -> Sequence[AuditEntry]:
        if not actor_id:
            raise ValidationError("actor_id is required")
        return self._audit.list_by_actor(str(actor_id), limit=int(limit))
