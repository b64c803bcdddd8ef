"""Per-user notification feed."""

import logging
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from mess_market.domain.notifications import (
    BidAccepted,
    BidCancelled,
    BidPlaced,
    BidUpdated,
    ListingExpired,
    NotificationPayload,
    NotificationRecord,
    PaymentMarked,
    PaymentReceived,
)

logger = logging.getLogger(__name__)


class NotificationRepository(Protocol):
    """Persistence interface for the notification feed."""

    def create_notification(
        self,
        user_id: str,
        notification_type: str,
        title: str,
        message: str,
        data: dict[str, object],
    ) -> None:
        """Append a notification row."""

    def list_notifications(self, user_id: str, limit: int) -> list[NotificationRecord]:
        """Return the newest notifications for a user."""

    def mark_read(self, user_id: str, notification_id: UUID | None) -> None:
        """Mark one notification, or all when id is None, as read."""


@dataclass
class NotificationService:
    """Fire-and-forget publisher for marketplace events."""

    repository: NotificationRepository

    def notify(self, user_id: str, payload: NotificationPayload) -> bool:
        """Write a notification; failures are logged and never raised."""
        title, message = render(payload)
        try:
            self.repository.create_notification(
                user_id=user_id,
                notification_type=payload.type,
                title=title,
                message=message,
                data=payload.model_dump(mode="json"),
            )
        except Exception:
            logger.exception(
                "Failed to send notification",
                extra={"user_id": user_id, "notification_type": payload.type},
            )
            return False
        return True

    def list_notifications(
        self, user_id: str, limit: int = 20
    ) -> list[NotificationRecord]:
        """Return recent notifications for a user."""
        return self.repository.list_notifications(user_id, limit)

    def unread_count(self, user_id: str, limit: int = 100) -> int:
        return sum(
            1 for item in self.repository.list_notifications(user_id, limit)
            if not item.read
        )

    def mark_read(self, user_id: str, notification_id: UUID | None = None) -> None:
        """Mark a notification (or the whole feed) as read."""
        self.repository.mark_read(user_id, notification_id)


def render(payload: NotificationPayload) -> tuple[str, str]:  # noqa: PLR0911
    """Return the title and message for a payload."""
    slot = f"{payload.mess} {payload.meal}"
    if isinstance(payload, BidPlaced):
        return (
            "New Bid Received",
            f"{payload.buyer_name} placed a bid of ₹{_price(payload.price)} "
            f"on your {slot} listing.",
        )
    if isinstance(payload, BidUpdated):
        return (
            "Bid Updated",
            f"A bid on your {slot} listing has been updated to "
            f"₹{_price(payload.price)}.",
        )
    if isinstance(payload, BidAccepted):
        phone = payload.counterpart_phone or "N/A"
        if payload.recipient_role == "buyer":
            return (
                "Bid Accepted!",
                f"Your bid of ₹{_price(payload.price)} for {slot} has been "
                f"accepted. Please contact {payload.counterpart_name} at {phone} "
                "to complete the transaction.",
            )
        return (
            "Bid Accepted",
            f"You've accepted {payload.counterpart_name}'s bid of "
            f"₹{_price(payload.price)} for your {slot} listing. "
            f"You can contact them at {phone}.",
        )
    if isinstance(payload, BidCancelled):
        return (
            "Acceptance Cancelled",
            f"The seller cancelled your accepted bid of ₹{_price(payload.price)} "
            f"for {slot}. Do not make a payment; place a new bid if you still "
            "want the meal.",
        )
    if isinstance(payload, PaymentMarked):
        suffix = (
            " Your meal QR is now available."
            if payload.has_token
            else " The meal QR is not available yet; contact the seller."
        )
        return (
            "Payment Confirmed",
            f"Your payment of ₹{_price(payload.price)} for {slot} has been "
            f"confirmed by {payload.seller_name}.{suffix}",
        )
    if isinstance(payload, PaymentReceived):
        return (
            "Payment Received",
            f"You've confirmed receiving payment of ₹{_price(payload.price)} "
            f"for your {slot} listing.",
        )
    if isinstance(payload, ListingExpired):
        return (
            "Listing Expired",
            f"Your {slot} listing for {payload.date} expired without a sale.",
        )
    return "Notification", slot


def _price(value: float) -> str:
    if float(value).is_integer():
        return f"{value:.0f}"
    return f"{value:.2f}"
