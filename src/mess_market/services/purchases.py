"""Purchases, transaction history and marketplace statistics."""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Protocol
from uuid import UUID

from mess_market.domain.expiry import market_now
from mess_market.domain.transactions import (
    ActivePurchase,
    LeaderboardEntry,
    PurchaseRecord,
    TransactionRecord,
    TransactionView,
    UserSummary,
)
from mess_market.domain.users import UserProfile
from mess_market.services.users import UserService


class TransactionRepository(Protocol):
    """Persistence interface for the transaction history."""

    def create_transaction(  # noqa: PLR0913
        self,
        listing_id: UUID,
        date_of_transaction: date,
        meal: str,
        mess: str,
        sold_price: float,
        listing_price: float,
        buyer_id: str,
        seller_id: str,
        listing_created_at: datetime,
        sold_time: datetime,
    ) -> TransactionRecord:
        """Insert a transaction and return it."""

    def find_transaction_for_listing(
        self, listing_id: UUID
    ) -> TransactionRecord | None:
        """Return the transaction that settled a listing, if any."""

    def list_settled_listing_ids(self, listing_ids: list[UUID]) -> set[UUID]:
        """Return which of the listing ids already have a transaction."""

    def get_transactions(self, transaction_ids: list[UUID]) -> list[TransactionRecord]:
        """Return transactions by id."""

    def list_user_transactions(self, user_id: str) -> list[TransactionRecord]:
        """Return transactions where the user bought or sold, newest first."""

    def list_transactions(self) -> list[TransactionRecord]:
        """Return every transaction."""


class PurchaseRepository(Protocol):
    """Persistence interface for buyer purchases."""

    def create_purchase(
        self,
        transaction_id: UUID,
        buyer_id: str,
        token: str | None,
        meal_date: date,
    ) -> PurchaseRecord:
        """Insert a purchase and return it."""

    def find_purchase_for_transaction(
        self, transaction_id: UUID
    ) -> PurchaseRecord | None:
        """Return the purchase created for a transaction, if any."""

    def list_purchases_from(self, buyer_id: str, day: date) -> list[PurchaseRecord]:
        """Return the buyer's purchases with meal date on or after the day."""


@dataclass
class PurchaseService:
    """Read side for completed sales."""

    transaction_repository: TransactionRepository
    purchase_repository: PurchaseRepository
    user_service: UserService
    timezone_name: str

    def list_active_purchases(
        self, buyer_id: str, today: date | None = None
    ) -> list[ActivePurchase]:
        """Return purchases whose meal date has not passed."""
        day = today or market_now(self.timezone_name).date()
        purchases = [
            purchase
            for purchase in self.purchase_repository.list_purchases_from(buyer_id, day)
            if purchase.meal_date >= day
        ]
        if not purchases:
            return []
        transactions = {
            transaction.id: transaction
            for transaction in self.transaction_repository.get_transactions(
                [purchase.transaction_id for purchase in purchases]
            )
        }
        return [
            ActivePurchase(
                purchase=purchase,
                transaction=transactions[purchase.transaction_id],
            )
            for purchase in sorted(purchases, key=lambda item: item.meal_date)
            if purchase.transaction_id in transactions
        ]

    def list_transactions(self, user_id: str) -> list[TransactionView]:
        """Return the user's transactions with the other party's name."""
        transactions = self.transaction_repository.list_user_transactions(user_id)
        counterparts = [
            tx.seller_id if tx.buyer_id == user_id else tx.buyer_id
            for tx in transactions
        ]
        profiles = self.user_service.get_profiles(counterparts)
        views = []
        for tx, counterpart in zip(transactions, counterparts, strict=True):
            profile = profiles.get(counterpart)
            views.append(
                TransactionView(
                    transaction=tx,
                    role="buyer" if tx.buyer_id == user_id else "seller",
                    counterpart_id=counterpart,
                    counterpart_name=profile.name if profile else "Unknown",
                )
            )
        return views

    def leaderboard(self, limit: int = 10) -> dict[str, list[LeaderboardEntry]]:
        """Return top sellers and buyers by number of completed sales."""
        transactions = self.transaction_repository.list_transactions()
        sellers = _count_by(tx.seller_id for tx in transactions)
        buyers = _count_by(tx.buyer_id for tx in transactions)
        profiles = self.user_service.get_profiles([*sellers, *buyers])
        return {
            "sellers": _rank(sellers, profiles, limit),
            "buyers": _rank(buyers, profiles, limit),
        }

    def user_summary(self, user_id: str) -> UserSummary:
        """Return buying and selling totals for a user."""
        transactions = self.transaction_repository.list_user_transactions(user_id)
        bought = [tx for tx in transactions if tx.buyer_id == user_id]
        sold = [tx for tx in transactions if tx.seller_id == user_id]
        avg_time_to_sale = None
        if sold:
            total = sum((tx.time_to_sale for tx in sold), timedelta())
            avg_time_to_sale = total / len(sold)
        return UserSummary(
            purchases=len(bought),
            total_spent=sum(tx.sold_price for tx in bought),
            sales=len(sold),
            total_earned=sum(tx.sold_price for tx in sold),
            avg_time_to_sale=avg_time_to_sale,
        )


def _count_by(user_ids: Iterable[str]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for user_id in user_ids:
        counts[user_id] = counts.get(user_id, 0) + 1
    return counts


def _rank(
    counts: dict[str, int], profiles: dict[str, UserProfile], limit: int
) -> list[LeaderboardEntry]:
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))[:limit]
    return [
        LeaderboardEntry(
            user_id=user_id,
            name=profiles[user_id].name if user_id in profiles else "Unknown",
            count=count,
        )
        for user_id, count in ranked
    ]
