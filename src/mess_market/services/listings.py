"""Listing store: creation, price edits, withdrawal and marketplace reads."""

import logging
import math
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import TYPE_CHECKING, Protocol
from uuid import UUID

from mess_market.adapters.mess_client import MessClient
from mess_market.domain.errors import (
    AlreadyAccepted,
    AlreadyPaid,
    InvalidInput,
    ListingNotFound,
    LoginRequired,
    NotSeller,
)
from mess_market.domain.expiry import (
    can_list,
    is_expired,
    market_now,
    normalize_meal,
    to_market_time,
)
from mess_market.domain.listings import Listing, ListingSummary, SellerListing
from mess_market.domain.notifications import BidCancelled
from mess_market.services.notifications import NotificationService
from mess_market.services.users import UserService

if TYPE_CHECKING:
    from mess_market.services.bids import BidRepository
    from mess_market.services.purchases import TransactionRepository

logger = logging.getLogger(__name__)


class ListingRepository(Protocol):
    """Persistence interface for listings."""

    def create_listing(  # noqa: PLR0913
        self,
        seller_id: str,
        meal_date: date,
        meal: str,
        mess: str,
        min_price: float,
    ) -> Listing:
        """Insert a listing and return it."""

    def get_listing(self, listing_id: UUID) -> Listing | None:
        """Return a listing by id, if present."""

    def list_listings(self) -> list[Listing]:
        """Return all listings, newest first."""

    def list_seller_listings(self, seller_id: str) -> list[Listing]:
        """Return a seller's listings, newest first."""

    def list_listings_until(self, day: date) -> list[Listing]:
        """Return listings whose meal date is on or before the day."""

    def update_min_price(self, listing_id: UUID, min_price: float) -> None:
        """Change the minimum price of a listing."""

    def claim_settlement(
        self,
        listing_id: UUID,
        expected_version: int,
        accepted_bid_id: UUID | None,
        paid: bool = False,
    ) -> bool:
        """Point the listing at a bid if the version still matches, bumping it.

        ``paid`` moves the listing into the paid state; a paid listing takes no
        further claims.
        """

    def delete_listing(self, listing_id: UUID) -> None:
        """Delete a listing."""

    def delete_listings(self, listing_ids: list[UUID]) -> None:
        """Delete several listings."""


@dataclass
class ListingService:
    """Seller-side listing operations and marketplace queries."""

    repository: ListingRepository
    bid_repository: "BidRepository"
    transaction_repository: "TransactionRepository"
    user_service: UserService
    notification_service: NotificationService
    mess_client: MessClient
    timezone_name: str

    async def create_listing(
        self,
        seller_id: str,
        meal_date: date,
        meal: str,
        min_price: float,
        now: datetime | None = None,
    ) -> Listing:
        """Validate the slot, resolve the seller's mess and insert a listing."""
        canonical_meal = normalize_meal(meal)
        if canonical_meal is None:
            raise InvalidInput(f"Unknown meal type: {meal}")
        validate_price(min_price, "Minimum price")
        current = self._now(now)
        if not can_list(meal_date, canonical_meal, current):
            raise InvalidInput(
                f"Cannot sell {canonical_meal.lower()} for {meal_date.isoformat()} "
                "any more",
                {"date": meal_date.isoformat(), "meal": canonical_meal},
            )

        api_key = self.user_service.get_api_key(seller_id)
        if not api_key:
            raise LoginRequired("Please set your mess API key to create a listing")
        registration = await self.mess_client.get_registration(
            api_key, meal_date, canonical_meal
        )
        if registration.cancelled:
            raise InvalidInput("This meal has been cancelled")
        if registration.availed:
            raise InvalidInput("This meal has been availed in the mess already")

        listing = self.repository.create_listing(
            seller_id=seller_id,
            meal_date=meal_date,
            meal=canonical_meal,
            mess=registration.mess_name,
            min_price=float(min_price),
        )
        logger.info(
            "Listing created",
            extra={"listing_id": str(listing.id), "seller_id": seller_id},
        )
        return listing

    def update_min_price(
        self, listing_id: UUID, seller_id: str, min_price: float
    ) -> Listing:
        """Change the minimum price before any bid is accepted."""
        validate_price(min_price, "Minimum price")
        listing = self.get_owned_listing(listing_id, seller_id)
        if listing.accepted_bid_id is not None:
            raise AlreadyAccepted("Listing price cannot change after acceptance")
        self.repository.update_min_price(listing_id, float(min_price))
        return replace(listing, min_price=float(min_price))

    def delete_listing(self, listing_id: UUID, seller_id: str) -> bool:
        """Withdraw a listing and its bids; returns False if already gone."""
        listing = self.repository.get_listing(listing_id)
        if listing is None:
            return False
        if listing.seller_id != seller_id:
            raise NotSeller("Only the seller can delete this listing")
        if listing.paid:
            raise AlreadyPaid("A listing that is being paid for cannot be withdrawn")
        bids = self.bid_repository.list_bids(listing_id)
        self.bid_repository.delete_bids_for_listing(listing_id)
        self.repository.delete_listing(listing_id)
        for bid in bids:
            if bid.accepted and not bid.paid:
                self.notification_service.notify(
                    bid.buyer_id,
                    BidCancelled(
                        listing_id=listing.id,
                        mess=listing.mess,
                        meal=listing.meal,
                        bid_id=bid.id,
                        seller_id=listing.seller_id,
                        price=bid.bid_price,
                    ),
                )
        return True

    def get_listing(self, listing_id: UUID) -> Listing:
        listing = self.repository.get_listing(listing_id)
        if listing is None:
            raise ListingNotFound("Listing not found", {"listing_id": str(listing_id)})
        return listing

    def get_owned_listing(self, listing_id: UUID, seller_id: str) -> Listing:
        """Return the listing, checking that the caller is its seller."""
        listing = self.get_listing(listing_id)
        if listing.seller_id != seller_id:
            raise NotSeller("Only the seller can modify this listing")
        return listing

    def list_open_listings(self, now: datetime | None = None) -> list[ListingSummary]:
        """Return listings a buyer can still bid on."""
        current = self._now(now)
        listings = [
            listing
            for listing in self.repository.list_listings()
            if listing.accepted_bid_id is None
            and not is_expired(listing.date, listing.meal, current)
        ]
        if not listings:
            return []
        listing_ids = [listing.id for listing in listings]
        settled = self.transaction_repository.list_settled_listing_ids(listing_ids)
        bids = self.bid_repository.list_bids_for_listings(listing_ids)
        accepted = {bid.listing_id for bid in bids if bid.accepted}
        counts: dict[UUID, int] = {}
        for bid in bids:
            counts[bid.listing_id] = counts.get(bid.listing_id, 0) + 1
        profiles = self.user_service.get_profiles(
            [listing.seller_id for listing in listings]
        )
        summaries = []
        for listing in listings:
            if listing.id in settled or listing.id in accepted:
                continue
            profile = profiles.get(listing.seller_id)
            summaries.append(
                ListingSummary(
                    listing=listing,
                    seller_name=profile.name if profile else "Unknown",
                    bid_count=counts.get(listing.id, 0),
                )
            )
        return summaries

    def list_seller_listings(self, seller_id: str) -> list[SellerListing]:
        """Return the seller's listings with bids, highest price first."""
        listings = self.repository.list_seller_listings(seller_id)
        if not listings:
            return []
        bids = self.bid_repository.list_bids_for_listings(
            [listing.id for listing in listings]
        )
        grouped: dict[UUID, list] = {listing.id: [] for listing in listings}
        for bid in bids:
            grouped.setdefault(bid.listing_id, []).append(bid)
        return [
            SellerListing(
                listing=listing,
                bids=sorted(
                    grouped[listing.id],
                    key=lambda bid: (-bid.bid_price, bid.created_at),
                ),
            )
            for listing in listings
        ]

    def _now(self, now: datetime | None) -> datetime:
        if now is None:
            return market_now(self.timezone_name)
        return to_market_time(now, self.timezone_name)


def validate_price(value: float, label: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise InvalidInput(f"{label} must be a number")
    if math.isnan(value) or math.isinf(value) or value < 0:
        raise InvalidInput(f"{label} must be a non-negative number")
