"""Supabase repository for the notification feed."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from pydantic import TypeAdapter
from supabase import Client

from mess_market.domain.notifications import NotificationPayload, NotificationRecord
from mess_market.services.notifications import NotificationRepository

_PAYLOAD_ADAPTER: TypeAdapter[NotificationPayload] = TypeAdapter(NotificationPayload)


@dataclass
class SupabaseNotificationRepository(NotificationRepository):
    """Supabase implementation over the notifications table."""

    client: Client

    def create_notification(
        self,
        user_id: str,
        notification_type: str,
        title: str,
        message: str,
        data: dict[str, object],
    ) -> None:
        """Insert a notification row."""
        self.client.table("notifications").insert(
            {
                "user_id": user_id,
                "type": notification_type,
                "title": title,
                "message": message,
                "data": data,
                "read": False,
            }
        ).execute()

    def list_notifications(self, user_id: str, limit: int) -> list[NotificationRecord]:
        """Return the newest notifications for a user."""
        response = (
            self.client.table("notifications")
            .select("id, user_id, title, message, data, read, created_at")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return [_parse_notification(row) for row in response.data or []]

    def mark_read(self, user_id: str, notification_id: UUID | None) -> None:
        """Mark one notification, or every unread one, as read."""
        query = (
            self.client.table("notifications")
            .update({"read": True})
            .eq("user_id", user_id)
        )
        if notification_id is None:
            query = query.eq("read", False)
        else:
            query = query.eq("id", str(notification_id))
        query.execute()


def _parse_notification(row: dict[str, object]) -> NotificationRecord:
    created_at = row.get("created_at")
    return NotificationRecord(
        id=UUID(str(row["id"])),
        user_id=str(row["user_id"]),
        title=str(row.get("title") or ""),
        message=str(row.get("message") or ""),
        payload=_PAYLOAD_ADAPTER.validate_python(row.get("data") or {}),
        read=bool(row.get("read")),
        created_at=datetime.fromisoformat(str(created_at)) if created_at else None,
    )
