"""Supabase repository for the admin audit trail."""

from dataclasses import dataclass

from supabase import Client

from mess_market.domain.audit import AuditEvent
from mess_market.services.audit import AuditRepository


@dataclass
class SupabaseAuditRepository(AuditRepository):
    client: Client

    def create_event(self, event: AuditEvent) -> None:
        response = (
            self.client.table("audit_events")
            .insert(
                {
                    "actor": event.actor,
                    "entity_type": event.entity_type,
                    "entity_id": event.entity_id,
                    "event_type": event.event_type,
                    "before_json": event.before,
                    "after_json": event.after,
                    "created_at": event.occurred_at.isoformat(),
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to record audit event")
