"""Settlement state machine for accepted bids.

A listing moves ``Open -> BidAccepted -> Paid -> Settled`` and the store gives
no cross-row transactions, so every step here is a separate write. Two guards
keep the listing consistent:

* a per-listing ``asyncio.Lock`` serialises settlement calls handled by this
  process;
* ``listings.settlement_version`` is compared-and-swapped on every transition,
  so a writer in another process that read a stale listing fails with
  ``ConcurrentSettlement`` instead of overwriting the newer state.

The listing row is the source of truth: ``accepted_bid_id`` names the accepted
bid and ``paid`` marks a payment in progress, after which no acceptance can
claim the listing. The ``accepted`` and ``paid`` flags on bids follow it. Each
flag write carries the version it was claimed under and skips rows stamped by
a newer claim, so a late writer cannot undo a newer acceptance, and ``paid`` is
only ever written together with ``accepted``.

``mark_paid`` is written as a resumable saga: the transaction and purchase are
looked up before being created, so calling it again (or running
``reconcile``) after a partial failure finishes the remaining steps.
"""

import asyncio
import logging
import weakref
from dataclasses import dataclass, field, replace
from uuid import UUID

from mess_market.adapters.mess_client import MessClient
from mess_market.domain.errors import (
    AlreadyPaid,
    BidNotAccepted,
    BidNotFound,
    ConcurrentSettlement,
    ListingNotFound,
    NotSeller,
    SettlementIncomplete,
)
from mess_market.domain.expiry import market_now
from mess_market.domain.listings import Bid, Listing
from mess_market.domain.notifications import (
    BidAccepted,
    BidCancelled,
    PaymentMarked,
    PaymentReceived,
)
from mess_market.domain.transactions import SettlementResult, TransactionRecord
from mess_market.services.bids import BidRepository
from mess_market.services.listings import ListingRepository
from mess_market.services.notifications import NotificationService
from mess_market.services.purchases import PurchaseRepository, TransactionRepository
from mess_market.services.users import UserService

logger = logging.getLogger(__name__)


@dataclass
class SettlementService:
    """Seller-driven acceptance, payment and cancellation of bids."""

    listing_repository: ListingRepository
    bid_repository: BidRepository
    transaction_repository: TransactionRepository
    purchase_repository: PurchaseRepository
    user_service: UserService
    notification_service: NotificationService
    mess_client: MessClient
    timezone_name: str
    _locks: weakref.WeakValueDictionary[UUID, asyncio.Lock] = field(
        default_factory=weakref.WeakValueDictionary, init=False, repr=False
    )

    async def accept_bid(self, listing_id: UUID, bid_id: UUID, seller_id: str) -> Bid:
        """Make ``bid_id`` the single accepted bid of the listing."""
        async with self._lock(listing_id):
            listing = self._owned_listing(listing_id, seller_id)
            if listing.paid:
                raise AlreadyPaid("This listing has already been paid for")
            bid = self._listing_bid(listing, bid_id)
            if bid.paid:
                raise AlreadyPaid("This bid has already been paid")
            if listing.accepted_bid_id == bid.id and bid.accepted:
                return bid

            version = self._claim(listing, bid.id)
            self.bid_repository.clear_accepted(
                listing.id, except_bid_id=bid.id, version=version
            )
            self.bid_repository.flag_accepted(bid.id, version)
            self._confirm_acceptance(listing.id, bid.id, version)

        accepted = replace(bid, accepted=True, accepted_version=version)
        self._notify_accepted(listing, accepted)
        return accepted

    async def mark_paid(
        self, listing_id: UUID, bid_id: UUID, seller_id: str
    ) -> SettlementResult:
        """Record the sale for the accepted bid and retire the listing."""
        async with self._lock(listing_id):
            listing = self.listing_repository.get_listing(listing_id)
            if listing is None:
                result = self._replay_settlement(listing_id, seller_id)
            else:
                if listing.seller_id != seller_id:
                    raise NotSeller("Only the seller can mark a bid as paid")
                if listing.accepted_bid_id != bid_id:
                    raise BidNotAccepted("Only the accepted bid can be paid")
                transaction = self.transaction_repository.find_transaction_for_listing(
                    listing.id
                )
                if transaction is None:
                    listing, bid = self._pay_bid(listing, bid_id)
                    transaction = self._record_transaction(listing, bid)
                result = await self._finish_settlement(listing, transaction)
        return result

    async def cancel_accepted_bid(
        self, listing_id: UUID, bid_id: UUID, seller_id: str
    ) -> None:
        """Drop an accepted but unpaid bid; the buyer has to bid again."""
        async with self._lock(listing_id):
            listing = self._owned_listing(listing_id, seller_id)
            bid = self._listing_bid(listing, bid_id)
            if bid.paid or listing.paid:
                raise AlreadyPaid("Payment has already been marked for this listing")
            if listing.accepted_bid_id != bid.id:
                raise BidNotAccepted("Only an accepted bid can be cancelled")
            self._claim(listing, None)
            self.bid_repository.delete_bid(bid.id)

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

    async def reconcile(self) -> int:
        """Finish settlements that stopped part-way; returns listings repaired."""
        listings = self.listing_repository.list_listings()
        if not listings:
            return 0
        settled = self.transaction_repository.list_settled_listing_ids(
            [listing.id for listing in listings]
        )
        paid = {bid.listing_id: bid for bid in self.bid_repository.list_paid_bids()}
        repaired = 0
        for listing in listings:
            if listing.id not in settled and listing.id not in paid and not (
                listing.paid and listing.accepted_bid_id is not None
            ):
                continue
            try:
                async with self._lock(listing.id):
                    if not await self._repair(listing.id, paid.get(listing.id)):
                        continue
            except (SettlementIncomplete, ConcurrentSettlement, BidNotFound):
                logger.warning(
                    "Reconciliation left listing in place",
                    extra={"listing_id": str(listing.id)},
                    exc_info=True,
                )
                continue
            repaired += 1
        if repaired:
            logger.info("Reconciled %s listings", repaired)
        return repaired

    async def _repair(self, listing_id: UUID, paid_bid: Bid | None) -> bool:
        listing = self.listing_repository.get_listing(listing_id)
        if listing is None:
            return False
        transaction = self.transaction_repository.find_transaction_for_listing(
            listing.id
        )
        if transaction is None:
            if paid_bid is None:
                if not listing.paid or listing.accepted_bid_id is None:
                    return False
                listing, paid_bid = self._pay_bid(listing, listing.accepted_bid_id)
            transaction = self._record_transaction(listing, paid_bid)
        await self._finish_settlement(listing, transaction)
        return True

    def _pay_bid(self, listing: Listing, bid_id: UUID) -> tuple[Listing, Bid]:
        """Move the listing to paid, then flag its accepted bid paid.

        The listing claim comes first so an acceptance that read the listing
        earlier fails its compare-and-swap, and one that reads it later sees
        ``paid`` and stops.
        """
        bid = self._listing_bid(listing, bid_id)
        if listing.accepted_bid_id != bid.id:
            raise BidNotAccepted("Only the accepted bid can be paid")
        if not listing.paid:
            version = self._claim(listing, bid.id, paid=True)
            listing = replace(listing, paid=True, settlement_version=version)
        if not bid.paid:
            version = listing.settlement_version
            self.bid_repository.clear_accepted(
                listing.id, except_bid_id=bid.id, version=version
            )
            if not self.bid_repository.mark_paid(bid.id, version):
                raise ConcurrentSettlement(
                    "Bid changed while settling; reload and retry",
                    {"listing_id": str(listing.id), "bid_id": str(bid.id)},
                )
            bid = replace(bid, accepted=True, paid=True, accepted_version=version)
        return listing, bid

    def _record_transaction(self, listing: Listing, bid: Bid) -> TransactionRecord:
        now = market_now(self.timezone_name)
        transaction = self.transaction_repository.create_transaction(
            listing_id=listing.id,
            date_of_transaction=now.date(),
            meal=listing.meal,
            mess=listing.mess,
            sold_price=bid.bid_price,
            listing_price=listing.min_price,
            buyer_id=bid.buyer_id,
            seller_id=listing.seller_id,
            listing_created_at=listing.created_at,
            sold_time=now,
        )
        logger.info(
            "Sale recorded",
            extra={
                "listing_id": str(listing.id),
                "transaction_id": str(transaction.id),
            },
        )
        return transaction

    async def _finish_settlement(
        self, listing: Listing, transaction: TransactionRecord
    ) -> SettlementResult:
        """Create the purchase, retire the listing and notify both parties."""
        purchase = self.purchase_repository.find_purchase_for_transaction(
            transaction.id
        )
        if purchase is None:
            token = await self._fetch_token(listing.seller_id, transaction.id)
            purchase = self.purchase_repository.create_purchase(
                transaction_id=transaction.id,
                buyer_id=transaction.buyer_id,
                token=token,
                meal_date=listing.date,
            )

        try:
            self._retire_listing(listing.id)
        except Exception as exc:
            logger.exception(
                "Settlement cleanup failed",
                extra={
                    "listing_id": str(listing.id),
                    "transaction_id": str(transaction.id),
                },
            )
            raise SettlementIncomplete(
                "Sale recorded but listing cleanup did not finish",
                {
                    "listing_id": str(listing.id),
                    "transaction_id": str(transaction.id),
                },
            ) from exc

        self._notify_paid(listing, transaction, purchase.token is not None)
        return SettlementResult(transaction=transaction, purchase=purchase)

    def _replay_settlement(self, listing_id: UUID, seller_id: str) -> SettlementResult:
        transaction = self.transaction_repository.find_transaction_for_listing(
            listing_id
        )
        if transaction is None:
            raise ListingNotFound("Listing not found", {"listing_id": str(listing_id)})
        if transaction.seller_id != seller_id:
            raise NotSeller("Only the seller can mark a bid as paid")
        purchase = self.purchase_repository.find_purchase_for_transaction(
            transaction.id
        )
        if purchase is None:
            raise ListingNotFound("Listing not found", {"listing_id": str(listing_id)})
        return SettlementResult(transaction=transaction, purchase=purchase)

    async def _fetch_token(self, seller_id: str, transaction_id: UUID) -> str | None:
        api_key = self.user_service.get_api_key(seller_id)
        if not api_key:
            logger.warning(
                "Seller has no mess API key; purchase saved without token",
                extra={"transaction_id": str(transaction_id)},
            )
            return None
        try:
            return await self.mess_client.get_token(api_key)
        except Exception:
            logger.exception(
                "Failed to fetch redemption token; purchase saved without token",
                extra={"transaction_id": str(transaction_id)},
            )
            return None

    def _retire_listing(self, listing_id: UUID) -> None:
        self.bid_repository.delete_bids_for_listing(listing_id)
        self.listing_repository.delete_listing(listing_id)

    def _claim(
        self, listing: Listing, accepted_bid_id: UUID | None, paid: bool = False
    ) -> int:
        """Compare-and-swap the listing; returns the version now held."""
        claimed = self.listing_repository.claim_settlement(
            listing.id, listing.settlement_version, accepted_bid_id, paid
        )
        if not claimed:
            raise ConcurrentSettlement(
                "Listing changed while settling; reload and retry",
                {"listing_id": str(listing.id)},
            )
        return listing.settlement_version + 1

    def _confirm_acceptance(self, listing_id: UUID, bid_id: UUID, version: int) -> None:
        """Report a loss if a later claim took the listing meanwhile.

        The winner's stamped writes already override ours; dropping our own
        stamp only matters if the winner stopped before writing its flags.
        """
        current = self.listing_repository.get_listing(listing_id)
        if current is not None and current.accepted_bid_id == bid_id:
            return
        self.bid_repository.unflag_accepted(bid_id, version)
        raise ConcurrentSettlement(
            "Another bid was accepted at the same time; reload and retry",
            {"listing_id": str(listing_id)},
        )

    def _owned_listing(self, listing_id: UUID, seller_id: str) -> Listing:
        listing = self.listing_repository.get_listing(listing_id)
        if listing is None:
            raise ListingNotFound("Listing not found", {"listing_id": str(listing_id)})
        if listing.seller_id != seller_id:
            raise NotSeller("Only the seller can settle this listing")
        return listing

    def _listing_bid(self, listing: Listing, bid_id: UUID) -> Bid:
        bid = self.bid_repository.get_bid(bid_id)
        if bid is None or bid.listing_id != listing.id:
            raise BidNotFound("Bid not found", {"bid_id": str(bid_id)})
        return bid

    def _lock(self, listing_id: UUID) -> asyncio.Lock:
        # Entries vanish once no caller holds or waits on the lock.
        lock = self._locks.get(listing_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[listing_id] = lock
        return lock

    def _notify_accepted(self, listing: Listing, bid: Bid) -> None:
        profiles = self.user_service.get_profiles([listing.seller_id, bid.buyer_id])
        seller = profiles.get(listing.seller_id)
        buyer = profiles.get(bid.buyer_id)
        common = {
            "listing_id": listing.id,
            "mess": listing.mess,
            "meal": listing.meal,
            "bid_id": bid.id,
            "seller_id": listing.seller_id,
            "buyer_id": bid.buyer_id,
            "price": bid.bid_price,
        }
        self.notification_service.notify(
            bid.buyer_id,
            BidAccepted(
                **common,
                counterpart_name=seller.name if seller else "the seller",
                counterpart_phone=seller.phone_number if seller else None,
                recipient_role="buyer",
            ),
        )
        self.notification_service.notify(
            listing.seller_id,
            BidAccepted(
                **common,
                counterpart_name=buyer.name if buyer else "the buyer",
                counterpart_phone=buyer.phone_number if buyer else None,
                recipient_role="seller",
            ),
        )

    def _notify_paid(
        self,
        listing: Listing,
        transaction: TransactionRecord,
        has_token: bool,
    ) -> None:
        self.notification_service.notify(
            transaction.buyer_id,
            PaymentMarked(
                listing_id=listing.id,
                mess=listing.mess,
                meal=listing.meal,
                bid_id=listing.accepted_bid_id,
                seller_id=listing.seller_id,
                seller_name=self.user_service.display_name(listing.seller_id),
                price=transaction.sold_price,
                transaction_id=transaction.id,
                has_token=has_token,
            ),
        )
        self.notification_service.notify(
            listing.seller_id,
            PaymentReceived(
                listing_id=listing.id,
                mess=listing.mess,
                meal=listing.meal,
                bid_id=listing.accepted_bid_id,
                buyer_id=transaction.buyer_id,
                price=transaction.sold_price,
                transaction_id=transaction.id,
            ),
        )
