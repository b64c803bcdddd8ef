"""Supabase repository for listings."""

from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID

from supabase import Client

from mess_market.domain.listings import Listing
from mess_market.services.listings import ListingRepository

_COLUMNS = (
    "id, seller_id, date, meal, mess, min_price, created_at, "
    "settlement_version, accepted_bid_id, paid"
)


@dataclass
class SupabaseListingRepository(ListingRepository):
    """Supabase implementation for listings."""

    client: Client

    def create_listing(  # noqa: PLR0913
        self,
        seller_id: str,
        meal_date: date,
        meal: str,
        mess: str,
        min_price: float,
    ) -> Listing:
        """Insert a listing row and return it."""
        response = (
            self.client.table("listings")
            .insert(
                {
                    "seller_id": seller_id,
                    "date": meal_date.isoformat(),
                    "meal": meal,
                    "mess": mess,
                    "min_price": min_price,
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create listing")
        return _parse_listing(response.data[0])

    def get_listing(self, listing_id: UUID) -> Listing | None:
        """Return a listing by id."""
        response = (
            self.client.table("listings")
            .select(_COLUMNS)
            .eq("id", str(listing_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_listing(response.data[0])

    def list_listings(self) -> list[Listing]:
        """Return all listings, newest first."""
        response = (
            self.client.table("listings")
            .select(_COLUMNS)
            .order("created_at", desc=True)
            .execute()
        )
        return [_parse_listing(row) for row in response.data or []]

    def list_seller_listings(self, seller_id: str) -> list[Listing]:
        """Return a seller's listings, newest first."""
        response = (
            self.client.table("listings")
            .select(_COLUMNS)
            .eq("seller_id", seller_id)
            .order("created_at", desc=True)
            .execute()
        )
        return [_parse_listing(row) for row in response.data or []]

    def list_listings_until(self, day: date) -> list[Listing]:
        """Return listings dated on or before the day."""
        response = (
            self.client.table("listings")
            .select(_COLUMNS)
            .lte("date", day.isoformat())
            .execute()
        )
        return [_parse_listing(row) for row in response.data or []]

    def update_min_price(self, listing_id: UUID, min_price: float) -> None:
        """Update the minimum price."""
        self.client.table("listings").update({"min_price": min_price}).eq(
            "id", str(listing_id)
        ).execute()

    def claim_settlement(
        self,
        listing_id: UUID,
        expected_version: int,
        accepted_bid_id: UUID | None,
        paid: bool = False,
    ) -> bool:
        """Conditional update on settlement_version; true if a row matched."""
        response = (
            self.client.table("listings")
            .update(
                {
                    "accepted_bid_id": str(accepted_bid_id)
                    if accepted_bid_id
                    else None,
                    "settlement_version": expected_version + 1,
                    "paid": paid,
                }
            )
            .eq("id", str(listing_id))
            .eq("settlement_version", expected_version)
            .execute()
        )
        return bool(response.data)

    def delete_listing(self, listing_id: UUID) -> None:
        """Delete a listing row."""
        self.client.table("listings").delete().eq("id", str(listing_id)).execute()

    def delete_listings(self, listing_ids: list[UUID]) -> None:
        """Delete several listing rows."""
        if not listing_ids:
            return
        self.client.table("listings").delete().in_(
            "id", [str(listing_id) for listing_id in listing_ids]
        ).execute()


def _parse_listing(row: dict[str, object]) -> Listing:
    return Listing(
        id=UUID(str(row["id"])),
        seller_id=str(row["seller_id"]),
        date=date.fromisoformat(str(row["date"])),
        meal=str(row.get("meal", "")),
        mess=str(row.get("mess") or ""),
        min_price=float(row.get("min_price") or 0.0),
        created_at=datetime.fromisoformat(str(row["created_at"])),
        settlement_version=int(row.get("settlement_version") or 0),
        accepted_bid_id=UUID(str(row["accepted_bid_id"]))
        if row.get("accepted_bid_id")
        else None,
        paid=bool(row.get("paid")),
    )
