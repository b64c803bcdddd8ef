"""Privileged maintenance operations, each one audited."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from mess_market.domain.listings import Listing
from mess_market.services.audit import AuditService
from mess_market.services.bids import BidRepository
from mess_market.services.listings import ListingRepository
from mess_market.services.settlement import SettlementService
from mess_market.services.sweep import ExpirySweep, SweepResult


@dataclass
class AdminService:
    """Operations that bypass ownership checks."""

    sweep: ExpirySweep
    settlement_service: SettlementService
    listing_repository: ListingRepository
    bid_repository: BidRepository
    audit_service: AuditService

    def run_sweep(self, actor: str, now: datetime | None = None) -> SweepResult:
        """Run the expiry sweep and audit what it removed."""
        result = self.sweep.sweep(now)
        if result.deleted:
            self.audit_service.record_event(
                actor=actor,
                entity_type="listing",
                entity_id="*",
                event_type="expiry_sweep",
                before=None,
                after={
                    "deleted": result.deleted,
                    "listing_ids": [str(item) for item in result.listing_ids],
                },
            )
        return result

    async def reconcile(self, actor: str) -> int:
        """Finish interrupted settlements."""
        repaired = await self.settlement_service.reconcile()
        self.audit_service.record_event(
            actor=actor,
            entity_type="listing",
            entity_id="*",
            event_type="reconcile",
            before=None,
            after={"repaired": repaired},
        )
        return repaired

    def force_delete_listing(self, listing_id: UUID, actor: str, reason: str) -> bool:
        """Remove a listing regardless of owner; returns False if absent."""
        listing = self.listing_repository.get_listing(listing_id)
        if listing is None:
            return False
        self.bid_repository.delete_bids_for_listing(listing_id)
        self.listing_repository.delete_listing(listing_id)
        self.audit_service.record_event(
            actor=actor,
            entity_type="listing",
            entity_id=str(listing_id),
            event_type="force_delete",
            before=_serialize_listing(listing),
            after={"reason": reason},
        )
        return True


def _serialize_listing(listing: Listing) -> dict[str, object]:
    return {
        "seller_id": listing.seller_id,
        "date": listing.date.isoformat(),
        "meal": listing.meal,
        "mess": listing.mess,
        "min_price": listing.min_price,
        "accepted_bid_id": str(listing.accepted_bid_id)
        if listing.accepted_bid_id
        else None,
    }
