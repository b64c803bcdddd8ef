"""Domain models for completed sales."""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from uuid import UUID


@dataclass(frozen=True)
class TransactionRecord:
    """Immutable record of a settled sale."""

    id: UUID
    listing_id: UUID | None
    date_of_transaction: date
    meal: str
    mess: str
    sold_price: float
    listing_price: float
    buyer_id: str
    seller_id: str
    listing_created_at: datetime
    sold_time: datetime

    @property
    def time_to_sale(self) -> timedelta:
        return self.sold_time - self.listing_created_at


@dataclass(frozen=True)
class PurchaseRecord:
    """Buyer-facing redeemable meal created at settlement."""

    id: UUID
    transaction_id: UUID
    buyer_id: str
    token: str | None
    meal_date: date
    created_at: datetime


@dataclass(frozen=True)
class ActivePurchase:
    """Purchase joined with its transaction."""

    purchase: PurchaseRecord
    transaction: TransactionRecord


@dataclass(frozen=True)
class TransactionView:
    """Transaction seen from one participant."""

    transaction: TransactionRecord
    role: str
    counterpart_id: str
    counterpart_name: str


@dataclass(frozen=True)
class SettlementResult:
    """Outcome of a completed settlement."""

    transaction: TransactionRecord
    purchase: PurchaseRecord


@dataclass(frozen=True)
class LeaderboardEntry:
    user_id: str
    name: str
    count: int


@dataclass(frozen=True)
class UserSummary:
    """Buying and selling totals for one user."""

    purchases: int
    total_spent: float
    sales: int
    total_earned: float
    avg_time_to_sale: timedelta | None
