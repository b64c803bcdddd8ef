"""Bid ledger: one bid per buyer and listing."""

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Protocol
from uuid import UUID

from mess_market.domain.errors import (
    AlreadyAccepted,
    BidNotFound,
    DuplicateBid,
    InvalidInput,
    ListingNotFound,
    NotBuyer,
)
from mess_market.domain.expiry import is_expired, market_now, to_market_time
from mess_market.domain.listings import Bid, BidPlacement, BidView, BuyerBid, Listing
from mess_market.domain.notifications import BidPlaced, BidUpdated
from mess_market.services.listings import ListingRepository, validate_price
from mess_market.services.notifications import NotificationService
from mess_market.services.users import UserService

logger = logging.getLogger(__name__)


class BidRepository(Protocol):
    """Persistence interface for bids."""

    def create_bid(self, listing_id: UUID, buyer_id: str, bid_price: float) -> Bid:
        """Insert a bid; raises DuplicateBid on the (buyer, listing) constraint."""

    def get_bid(self, bid_id: UUID) -> Bid | None:
        """Return a bid by id, if present."""

    def find_bid(self, buyer_id: str, listing_id: UUID) -> Bid | None:
        """Return the buyer's bid on a listing, if present."""

    def list_bids(self, listing_id: UUID) -> list[Bid]:
        """Return bids for a listing in arrival order."""

    def list_bids_for_listings(self, listing_ids: list[UUID]) -> list[Bid]:
        """Return bids for several listings."""

    def list_buyer_bids(self, buyer_id: str) -> list[Bid]:
        """Return a buyer's bids, newest first."""

    def list_paid_bids(self) -> list[Bid]:
        """Return bids marked paid whose listing was not cleaned up."""

    def update_unaccepted_price(self, bid_id: UUID, bid_price: float) -> bool:
        """Change the price unless the bid is accepted; returns whether it did."""

    # Acceptance writes carry the listing settlement_version they were made
    # under and only touch rows stamped with an older version, so a late
    # writer never overrides a newer acceptance.

    def flag_accepted(self, bid_id: UUID, version: int) -> bool:
        """Set accepted on the bid unless it carries a newer stamp."""

    def unflag_accepted(self, bid_id: UUID, version: int) -> None:
        """Clear accepted if the bid still carries exactly this stamp."""

    def clear_accepted(
        self, listing_id: UUID, except_bid_id: UUID, version: int
    ) -> None:
        """Clear accepted on the listing's other unpaid, older-stamped bids."""

    def mark_paid(self, bid_id: UUID, version: int) -> bool:
        """Set paid and accepted in one row write unless a newer stamp exists."""

    def delete_bid(self, bid_id: UUID) -> None:
        """Delete a bid."""

    def delete_unaccepted_bid(self, bid_id: UUID) -> bool:
        """Delete the bid unless accepted; returns whether it did."""

    def delete_bids_for_listing(self, listing_id: UUID) -> None:
        """Delete every bid on a listing."""

    def delete_bids_for_listings(self, listing_ids: list[UUID]) -> None:
        """Delete every bid on several listings."""


@dataclass
class BidService:
    """Buyer-side bid operations."""

    repository: BidRepository
    listing_repository: ListingRepository
    user_service: UserService
    notification_service: NotificationService
    timezone_name: str

    def place_bid(
        self,
        buyer_id: str,
        listing_id: UUID,
        price: float,
        now: datetime | None = None,
    ) -> BidPlacement:
        """Create the buyer's first bid on a listing."""
        validate_price(price, "Bid price")
        listing = self._biddable_listing(listing_id, buyer_id, now)
        if self.repository.find_bid(buyer_id, listing_id) is not None:
            raise DuplicateBid(
                "You've already placed a bid on this listing. "
                "Update your existing bid instead.",
                {"listing_id": str(listing_id)},
            )
        bid = self.repository.create_bid(listing_id, buyer_id, float(price))
        self.notification_service.notify(
            listing.seller_id,
            BidPlaced(
                listing_id=listing.id,
                mess=listing.mess,
                meal=listing.meal,
                buyer_id=buyer_id,
                buyer_name=self.user_service.display_name(buyer_id),
                price=bid.bid_price,
            ),
        )
        return BidPlacement(bid=bid, below_minimum=bid.bid_price < listing.min_price)

    def update_bid(
        self,
        buyer_id: str,
        listing_id: UUID,
        price: float,
        now: datetime | None = None,
    ) -> BidPlacement:
        """Change the price of the buyer's existing bid."""
        validate_price(price, "Bid price")
        listing = self._biddable_listing(listing_id, buyer_id, now)
        existing = self.repository.find_bid(buyer_id, listing_id)
        if existing is None:
            raise BidNotFound("You have no bid on this listing")
        if existing.accepted:
            raise AlreadyAccepted(
                "This bid has already been accepted and cannot be updated."
            )
        if not self.repository.update_unaccepted_price(existing.id, float(price)):
            raise AlreadyAccepted(
                "This bid has already been accepted and cannot be updated."
            )
        bid = replace(existing, bid_price=float(price))
        self.notification_service.notify(
            listing.seller_id,
            BidUpdated(
                listing_id=listing.id,
                mess=listing.mess,
                meal=listing.meal,
                buyer_id=buyer_id,
                price=bid.bid_price,
            ),
        )
        return BidPlacement(bid=bid, below_minimum=bid.bid_price < listing.min_price)

    def withdraw_bid(self, buyer_id: str, bid_id: UUID) -> bool:
        """Delete the buyer's unaccepted bid; returns False if already gone."""
        bid = self.repository.get_bid(bid_id)
        if bid is None:
            return False
        if bid.buyer_id != buyer_id:
            raise NotBuyer("Only the bidder can withdraw this bid")
        listing = self.listing_repository.get_listing(bid.listing_id)
        accepted = bid.accepted or (
            listing is not None and listing.accepted_bid_id == bid.id
        )
        if accepted or not self.repository.delete_unaccepted_bid(bid_id):
            raise AlreadyAccepted("An accepted bid cannot be withdrawn")
        return True

    def list_bids_for_listing(self, listing_id: UUID) -> list[BidView]:
        """Return bids by price descending, ties in arrival order."""
        bids = self.repository.list_bids(listing_id)
        ordered = sorted(
            enumerate(bids),
            key=lambda pair: (-pair[1].bid_price, pair[1].created_at, pair[0]),
        )
        profiles = self.user_service.get_profiles([bid.buyer_id for bid in bids])
        views = []
        for _, bid in ordered:
            profile = profiles.get(bid.buyer_id)
            views.append(
                BidView(
                    bid=bid,
                    buyer_name=profile.name if profile else "Unknown",
                    buyer_phone=profile.phone_number if profile else None,
                )
            )
        return views

    def list_bids_for_buyer(self, buyer_id: str) -> list[BuyerBid]:
        """Return the buyer's bids with their listings."""
        bids = self.repository.list_buyer_bids(buyer_id)
        listings: dict[UUID, Listing | None] = {}
        for bid in bids:
            if bid.listing_id not in listings:
                listings[bid.listing_id] = self.listing_repository.get_listing(
                    bid.listing_id
                )
        return [BuyerBid(bid=bid, listing=listings[bid.listing_id]) for bid in bids]

    def _biddable_listing(
        self, listing_id: UUID, buyer_id: str, now: datetime | None
    ) -> Listing:
        listing = self.listing_repository.get_listing(listing_id)
        if listing is None:
            raise ListingNotFound("Listing not found", {"listing_id": str(listing_id)})
        if listing.seller_id == buyer_id:
            raise InvalidInput("You cannot bid on your own listing")
        current = (
            market_now(self.timezone_name)
            if now is None
            else to_market_time(now, self.timezone_name)
        )
        if is_expired(listing.date, listing.meal, current):
            raise InvalidInput("This meal slot has already expired")
        if listing.accepted_bid_id is not None:
            raise AlreadyAccepted("The seller has already accepted a bid")
        return listing
