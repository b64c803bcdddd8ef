"""Request bodies accepted by the HTTP API."""

from datetime import date
from uuid import UUID

from pydantic import BaseModel


class ListingCreate(BaseModel):
    date: date
    meal: str
    min_price: float


class ListingUpdate(BaseModel):
    min_price: float


class BidRequest(BaseModel):
    bid_price: float


class ContactUpdate(BaseModel):
    """Profile fields a user may change about themselves."""

    name: str | None = None
    email: str | None = None
    phone_number: str | None = None
    api_key: str | None = None


class NotificationsRead(BaseModel):
    """Mark one notification as read, or all of them when id is omitted."""

    notification_id: UUID | None = None
