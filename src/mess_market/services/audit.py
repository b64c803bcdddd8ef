"""Audit trail for admin operations that bypass ownership checks."""

import logging
from dataclasses import dataclass
from typing import Protocol

from mess_market.domain.audit import AuditEvent
from mess_market.domain.expiry import market_now

logger = logging.getLogger(__name__)


class AuditRepository(Protocol):
    """Persistence interface for audit events."""

    def create_event(self, event: AuditEvent) -> None:
        """Append an audit event."""


@dataclass
class AuditService:
    """Stamps admin actions with market time and stores them."""

    repository: AuditRepository
    timezone_name: str = "Asia/Kolkata"

    def record_event(  # noqa: PLR0913
        self,
        actor: str,
        entity_type: str,
        entity_id: str,
        event_type: str,
        before: dict[str, object] | None,
        after: dict[str, object] | None,
    ) -> AuditEvent:
        event = AuditEvent(
            actor=actor,
            entity_type=entity_type,
            entity_id=entity_id,
            event_type=event_type,
            before=before,
            after=after,
            occurred_at=market_now(self.timezone_name),
        )
        self.repository.create_event(event)
        logger.info(
            "Admin action recorded",
            extra={"actor": actor, "event_type": event_type, "entity_id": entity_id},
        )
        return event
