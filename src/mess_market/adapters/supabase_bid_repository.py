"""Supabase repository for bids."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from postgrest.exceptions import APIError
from supabase import Client

from mess_market.domain.errors import DuplicateBid
from mess_market.domain.listings import Bid
from mess_market.services.bids import BidRepository

_COLUMNS = (
    "id, listing_id, buyer_roll_number, bid_price, accepted, paid, "
    "accepted_version, created_at"
)
_UNIQUE_VIOLATION = "23505"


@dataclass
class SupabaseBidRepository(BidRepository):
    """Supabase implementation for bids."""

    client: Client

    def create_bid(self, listing_id: UUID, buyer_id: str, bid_price: float) -> Bid:
        """Insert a bid row; the unique constraint maps to DuplicateBid."""
        try:
            response = (
                self.client.table("bids")
                .insert(
                    {
                        "listing_id": str(listing_id),
                        "buyer_roll_number": buyer_id,
                        "bid_price": bid_price,
                    }
                )
                .execute()
            )
        except APIError as exc:
            if exc.code == _UNIQUE_VIOLATION:
                raise DuplicateBid(
                    "You've already placed a bid on this listing. "
                    "Update your existing bid instead.",
                    {"listing_id": str(listing_id)},
                ) from exc
            raise
        if not response.data:
            raise RuntimeError("Failed to create bid")
        return _parse_bid(response.data[0])

    def get_bid(self, bid_id: UUID) -> Bid | None:
        """Return a bid by id."""
        response = (
            self.client.table("bids")
            .select(_COLUMNS)
            .eq("id", str(bid_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_bid(response.data[0])

    def find_bid(self, buyer_id: str, listing_id: UUID) -> Bid | None:
        """Return the buyer's bid on a listing."""
        response = (
            self.client.table("bids")
            .select(_COLUMNS)
            .eq("buyer_roll_number", buyer_id)
            .eq("listing_id", str(listing_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_bid(response.data[0])

    def list_bids(self, listing_id: UUID) -> list[Bid]:
        """Return bids for a listing in arrival order."""
        response = (
            self.client.table("bids")
            .select(_COLUMNS)
            .eq("listing_id", str(listing_id))
            .order("created_at", desc=False)
            .execute()
        )
        return [_parse_bid(row) for row in response.data or []]

    def list_bids_for_listings(self, listing_ids: list[UUID]) -> list[Bid]:
        """Return bids for several listings."""
        if not listing_ids:
            return []
        response = (
            self.client.table("bids")
            .select(_COLUMNS)
            .in_("listing_id", [str(listing_id) for listing_id in listing_ids])
            .order("created_at", desc=False)
            .execute()
        )
        return [_parse_bid(row) for row in response.data or []]

    def list_buyer_bids(self, buyer_id: str) -> list[Bid]:
        """Return a buyer's bids, newest first."""
        response = (
            self.client.table("bids")
            .select(_COLUMNS)
            .eq("buyer_roll_number", buyer_id)
            .order("created_at", desc=True)
            .execute()
        )
        return [_parse_bid(row) for row in response.data or []]

    def list_paid_bids(self) -> list[Bid]:
        """Return bids flagged paid."""
        response = (
            self.client.table("bids").select(_COLUMNS).eq("paid", True).execute()
        )
        return [_parse_bid(row) for row in response.data or []]

    def update_unaccepted_price(self, bid_id: UUID, bid_price: float) -> bool:
        """Update the price only while the bid is not accepted."""
        response = (
            self.client.table("bids")
            .update({"bid_price": bid_price})
            .eq("id", str(bid_id))
            .eq("accepted", False)
            .execute()
        )
        return bool(response.data)

    def flag_accepted(self, bid_id: UUID, version: int) -> bool:
        """Set accepted unless the row carries a newer or equal stamp."""
        response = (
            self.client.table("bids")
            .update({"accepted": True, "accepted_version": version})
            .eq("id", str(bid_id))
            .lt("accepted_version", version)
            .execute()
        )
        return bool(response.data)

    def unflag_accepted(self, bid_id: UUID, version: int) -> None:
        """Clear accepted only where this version wrote it."""
        self.client.table("bids").update({"accepted": False}).eq(
            "id", str(bid_id)
        ).eq("accepted_version", version).eq("paid", False).execute()

    def clear_accepted(
        self, listing_id: UUID, except_bid_id: UUID, version: int
    ) -> None:
        """Stamp the listing's other unpaid bids as not accepted."""
        self.client.table("bids").update(
            {"accepted": False, "accepted_version": version}
        ).eq("listing_id", str(listing_id)).neq("id", str(except_bid_id)).eq(
            "paid", False
        ).lt("accepted_version", version).execute()

    def mark_paid(self, bid_id: UUID, version: int) -> bool:
        """Flag the bid paid and accepted in a single conditional update."""
        response = (
            self.client.table("bids")
            .update({"paid": True, "accepted": True, "accepted_version": version})
            .eq("id", str(bid_id))
            .lte("accepted_version", version)
            .execute()
        )
        return bool(response.data)

    def delete_bid(self, bid_id: UUID) -> None:
        """Delete a bid row."""
        self.client.table("bids").delete().eq("id", str(bid_id)).execute()

    def delete_unaccepted_bid(self, bid_id: UUID) -> bool:
        """Delete the bid only while it is not accepted."""
        response = (
            self.client.table("bids")
            .delete()
            .eq("id", str(bid_id))
            .eq("accepted", False)
            .execute()
        )
        return bool(response.data)

    def delete_bids_for_listing(self, listing_id: UUID) -> None:
        """Delete all bids on a listing."""
        self.client.table("bids").delete().eq("listing_id", str(listing_id)).execute()

    def delete_bids_for_listings(self, listing_ids: list[UUID]) -> None:
        """Delete all bids on several listings."""
        if not listing_ids:
            return
        self.client.table("bids").delete().in_(
            "listing_id", [str(listing_id) for listing_id in listing_ids]
        ).execute()


def _parse_bid(row: dict[str, object]) -> Bid:
    return Bid(
        id=UUID(str(row["id"])),
        listing_id=UUID(str(row["listing_id"])),
        buyer_id=str(row["buyer_roll_number"]),
        bid_price=float(row.get("bid_price") or 0.0),
        created_at=datetime.fromisoformat(str(row["created_at"])),
        accepted=bool(row.get("accepted")),
        paid=bool(row.get("paid")),
        accepted_version=int(row.get("accepted_version") or 0),
    )
