"""Audit trail records for privileged operations."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class AuditEvent:
    actor: str
    entity_type: str
    entity_id: str
    event_type: str
    before: dict[str, object] | None
    after: dict[str, object] | None
    occurred_at: datetime
