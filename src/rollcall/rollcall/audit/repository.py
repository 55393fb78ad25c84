from __future__ import annotations

from typing import Protocol, Sequence

from .model import AuditEntry


class AuditRepository(Protocol):
    """Append-only store: there is deliberately no update or delete."""

    def append(self, entry: AuditEntry) -> int:
        raise NotImplementedError

    def list_by_composite_key(self, composite_key: str, *, limit: int) -> Sequence[AuditEntry]:
        raise NotImplementedError

    def list_by_actor(self, actor_id: str, *, limit: int) -> Sequence[AuditEntry]:
        raise NotImplementedError
