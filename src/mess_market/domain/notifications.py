"""Notification payloads delivered through the per-user feed."""

from datetime import datetime
from typing import Annotated, Literal
from uuid import UUID

from pydantic import BaseModel, Field


class _ListingPayload(BaseModel):
    listing_id: UUID
    mess: str
    meal: str


class BidPlaced(_ListingPayload):
    """Seller-facing: a new bid arrived."""

    type: Literal["bid_placed"] = "bid_placed"
    buyer_id: str
    buyer_name: str
    price: float


class BidUpdated(_ListingPayload):
    """Seller-facing: a bid price changed."""

    type: Literal["bid_updated"] = "bid_updated"
    buyer_id: str
    price: float


class BidAccepted(_ListingPayload):
    """Sent to both parties with the counterpart's contact."""

    type: Literal["bid_accepted"] = "bid_accepted"
    bid_id: UUID
    seller_id: str
    buyer_id: str
    price: float
    counterpart_name: str
    counterpart_phone: str | None
    recipient_role: Literal["buyer", "seller"]


class BidCancelled(_ListingPayload):
    """Buyer-facing: the seller withdrew their acceptance."""

    type: Literal["bid_cancelled"] = "bid_cancelled"
    bid_id: UUID
    seller_id: str
    price: float


class PaymentMarked(_ListingPayload):
    """Buyer-facing: payment confirmed, redemption token available."""

    type: Literal["payment_marked"] = "payment_marked"
    bid_id: UUID | None = None
    seller_id: str
    seller_name: str
    price: float
    transaction_id: UUID
    has_token: bool


class PaymentReceived(_ListingPayload):
    """Seller-facing record of a completed sale."""

    type: Literal["payment_received"] = "payment_received"
    bid_id: UUID | None = None
    buyer_id: str
    price: float
    transaction_id: UUID


class ListingExpired(_ListingPayload):
    """Seller-facing: the sweep removed an unsold listing."""

    type: Literal["listing_expired"] = "listing_expired"
    date: str


NotificationPayload = Annotated[
    BidPlaced
    | BidUpdated
    | BidAccepted
    | BidCancelled
    | PaymentMarked
    | PaymentReceived
    | ListingExpired,
    Field(discriminator="type"),
]


class NotificationRecord(BaseModel):
    """Stored feed entry."""

    id: UUID
    user_id: str
    title: str
    message: str
    payload: NotificationPayload
    read: bool = False
    created_at: datetime | None = None
