"""Domain models for listings and bids."""

from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID


@dataclass(frozen=True)
class Listing:
    """A seller's offer of one meal slot."""

    id: UUID
    seller_id: str
    date: date
    meal: str
    mess: str
    min_price: float
    created_at: datetime
    settlement_version: int = 0
    accepted_bid_id: UUID | None = None
    paid: bool = False


@dataclass(frozen=True)
class Bid:
    """A buyer's offer against a listing."""

    id: UUID
    listing_id: UUID
    buyer_id: str
    bid_price: float
    created_at: datetime
    accepted: bool = False
    paid: bool = False
    accepted_version: int = 0


@dataclass(frozen=True)
class BidView:
    """Bid enriched with the buyer's display identity."""

    bid: Bid
    buyer_name: str
    buyer_phone: str | None


@dataclass(frozen=True)
class BidPlacement:
    """Result of placing or updating a bid."""

    bid: Bid
    below_minimum: bool


@dataclass(frozen=True)
class ListingSummary:
    """Open listing row as shown on the marketplace."""

    listing: Listing
    seller_name: str
    bid_count: int


@dataclass(frozen=True)
class SellerListing:
    """Seller's own listing with its current bids."""

    listing: Listing
    bids: list[Bid]


@dataclass(frozen=True)
class BuyerBid:
    """Buyer's bid with the listing it targets, if it still exists."""

    bid: Bid
    listing: Listing | None
