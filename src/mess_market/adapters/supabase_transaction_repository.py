"""Supabase repositories for the transaction history and purchases."""

from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID

from supabase import Client

from mess_market.domain.transactions import PurchaseRecord, TransactionRecord
from mess_market.services.purchases import PurchaseRepository, TransactionRepository

_TRANSACTION_COLUMNS = (
    "id, listing_id, date_of_transaction, meal, mess, sold_price, listing_price, "
    "buyer_id, seller_id, listing_created_at, sold_time"
)
_PURCHASE_COLUMNS = "id, transaction_id, buyer_id, token, meal_date, created_at"


@dataclass
class SupabaseTransactionRepository(TransactionRepository):
    """Supabase implementation over transaction_history."""

    client: Client

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
        """Insert a transaction row and return it."""
        response = (
            self.client.table("transaction_history")
            .insert(
                {
                    "listing_id": str(listing_id),
                    "date_of_transaction": date_of_transaction.isoformat(),
                    "meal": meal,
                    "mess": mess,
                    "sold_price": sold_price,
                    "listing_price": listing_price,
                    "buyer_id": buyer_id,
                    "seller_id": seller_id,
                    "listing_created_at": listing_created_at.isoformat(),
                    "sold_time": sold_time.isoformat(),
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create transaction")
        return _parse_transaction(response.data[0])

    def find_transaction_for_listing(
        self, listing_id: UUID
    ) -> TransactionRecord | None:
        """Return the transaction for a listing."""
        response = (
            self.client.table("transaction_history")
            .select(_TRANSACTION_COLUMNS)
            .eq("listing_id", str(listing_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_transaction(response.data[0])

    def list_settled_listing_ids(self, listing_ids: list[UUID]) -> set[UUID]:
        """Return listing ids that already have a transaction."""
        if not listing_ids:
            return set()
        response = (
            self.client.table("transaction_history")
            .select("listing_id")
            .in_("listing_id", [str(listing_id) for listing_id in listing_ids])
            .execute()
        )
        return {
            UUID(str(row["listing_id"]))
            for row in response.data or []
            if row.get("listing_id")
        }

    def get_transactions(self, transaction_ids: list[UUID]) -> list[TransactionRecord]:
        """Return transactions by id."""
        if not transaction_ids:
            return []
        response = (
            self.client.table("transaction_history")
            .select(_TRANSACTION_COLUMNS)
            .in_("id", [str(item) for item in transaction_ids])
            .execute()
        )
        return [_parse_transaction(row) for row in response.data or []]

    def list_user_transactions(self, user_id: str) -> list[TransactionRecord]:
        """Return transactions where the user bought or sold."""
        response = (
            self.client.table("transaction_history")
            .select(_TRANSACTION_COLUMNS)
            .or_(f"buyer_id.eq.{user_id},seller_id.eq.{user_id}")
            .order("sold_time", desc=True)
            .execute()
        )
        return [_parse_transaction(row) for row in response.data or []]

    def list_transactions(self) -> list[TransactionRecord]:
        """Return every transaction."""
        response = (
            self.client.table("transaction_history")
            .select(_TRANSACTION_COLUMNS)
            .execute()
        )
        return [_parse_transaction(row) for row in response.data or []]


@dataclass
class SupabasePurchaseRepository(PurchaseRepository):
    """Supabase implementation over purchases."""

    client: Client

    def create_purchase(
        self,
        transaction_id: UUID,
        buyer_id: str,
        token: str | None,
        meal_date: date,
    ) -> PurchaseRecord:
        """Insert a purchase row and return it."""
        response = (
            self.client.table("purchases")
            .insert(
                {
                    "transaction_id": str(transaction_id),
                    "buyer_id": buyer_id,
                    "token": token,
                    "meal_date": meal_date.isoformat(),
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create purchase")
        return _parse_purchase(response.data[0])

    def find_purchase_for_transaction(
        self, transaction_id: UUID
    ) -> PurchaseRecord | None:
        """Return the purchase for a transaction."""
        response = (
            self.client.table("purchases")
            .select(_PURCHASE_COLUMNS)
            .eq("transaction_id", str(transaction_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_purchase(response.data[0])

    def list_purchases_from(self, buyer_id: str, day: date) -> list[PurchaseRecord]:
        """Return the buyer's purchases from the day onwards."""
        response = (
            self.client.table("purchases")
            .select(_PURCHASE_COLUMNS)
            .eq("buyer_id", buyer_id)
            .gte("meal_date", day.isoformat())
            .order("meal_date", desc=False)
            .execute()
        )
        return [_parse_purchase(row) for row in response.data or []]


def _parse_transaction(row: dict[str, object]) -> TransactionRecord:
    return TransactionRecord(
        id=UUID(str(row["id"])),
        listing_id=UUID(str(row["listing_id"])) if row.get("listing_id") else None,
        date_of_transaction=date.fromisoformat(str(row["date_of_transaction"])),
        meal=str(row.get("meal") or ""),
        mess=str(row.get("mess") or ""),
        sold_price=float(row.get("sold_price") or 0.0),
        listing_price=float(row.get("listing_price") or 0.0),
        buyer_id=str(row["buyer_id"]),
        seller_id=str(row["seller_id"]),
        listing_created_at=datetime.fromisoformat(str(row["listing_created_at"])),
        sold_time=datetime.fromisoformat(str(row["sold_time"])),
    )


def _parse_purchase(row: dict[str, object]) -> PurchaseRecord:
    token = row.get("token")
    return PurchaseRecord(
        id=UUID(str(row["id"])),
        transaction_id=UUID(str(row["transaction_id"])),
        buyer_id=str(row["buyer_id"]),
        token=str(token) if token else None,
        meal_date=date.fromisoformat(str(row["meal_date"])),
        created_at=datetime.fromisoformat(str(row["created_at"])),
    )
