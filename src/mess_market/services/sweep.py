"""Expiry sweep for listings whose meal window has passed."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from mess_market.domain.errors import SweepFailed
from mess_market.domain.expiry import is_expired, market_now, to_market_time
from mess_market.domain.listings import Listing
from mess_market.domain.notifications import ListingExpired
from mess_market.services.bids import BidRepository
from mess_market.services.listings import ListingRepository
from mess_market.services.notifications import NotificationService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SweepResult:
    """Listings removed by one sweep run."""

    deleted: int
    listing_ids: list[UUID] = field(default_factory=list)


@dataclass
class ExpirySweep:
    """Deletes expired listings together with their bids."""

    listing_repository: ListingRepository
    bid_repository: BidRepository
    notification_service: NotificationService
    timezone_name: str
    batch_size: int = 100

    def sweep(self, now: datetime | None = None) -> SweepResult:
        """Delete every expired listing and return how many went."""
        current = (
            market_now(self.timezone_name)
            if now is None
            else to_market_time(now, self.timezone_name)
        )
        logger.info("Running cleanup at %s", current.isoformat())
        try:
            candidates = self.listing_repository.list_listings_until(current.date())
        except Exception as exc:
            logger.exception("Error loading listings for cleanup")
            raise SweepFailed("Failed to load listings for cleanup", deleted=0) from exc
        expired = [
            listing
            for listing in candidates
            if is_expired(listing.date, listing.meal, current)
        ]
        if not expired:
            return SweepResult(deleted=0)

        logger.info("Found %s expired listings to delete", len(expired))
        deleted: list[UUID] = []
        for batch in _batches(expired, max(self.batch_size, 1)):
            listing_ids = [listing.id for listing in batch]
            try:
                self.bid_repository.delete_bids_for_listings(listing_ids)
                self.listing_repository.delete_listings(listing_ids)
            except Exception as exc:
                logger.exception(
                    "Error deleting expired listings",
                    extra={"deleted": len(deleted), "pending": len(expired)},
                )
                raise SweepFailed(
                    "Failed to delete expired listings", deleted=len(deleted)
                ) from exc
            deleted.extend(listing_ids)
            for listing in batch:
                self.notification_service.notify(
                    listing.seller_id,
                    ListingExpired(
                        listing_id=listing.id,
                        mess=listing.mess,
                        meal=listing.meal,
                        date=listing.date.isoformat(),
                    ),
                )
        return SweepResult(deleted=len(deleted), listing_ids=deleted)


def _batches(listings: list[Listing], size: int) -> list[list[Listing]]:
    return [listings[start : start + size] for start in range(0, len(listings), size)]
