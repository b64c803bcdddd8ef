"""FastAPI application factory."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID

from fastapi import Depends, FastAPI, Header, HTTPException, Request, status

from mess_market.api.admin import router as admin_router
from mess_market.api.errors import register_error_handlers
from mess_market.api.schemas import (
    BidRequest,
    ContactUpdate,
    ListingCreate,
    ListingUpdate,
    NotificationsRead,
)
from mess_market.app_logging import configure_logging
from mess_market.containers import AppContainer
from mess_market.domain.listings import Bid, BidPlacement, Listing
from mess_market.domain.transactions import (
    LeaderboardEntry,
    PurchaseRecord,
    TransactionRecord,
)


async def current_user(x_roll_number: str | None = Header(default=None)) -> str:
    """Return the caller's roll number as set by the login gateway."""
    roll_number = (x_roll_number or "").strip()
    if not roll_number:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Login required"
        )
    return roll_number


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    register_error_handlers(app)
    app.include_router(admin_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/listings")
    async def list_listings(request: Request) -> dict[str, object]:
        """Return listings that are still open for bidding."""
        state_container: AppContainer = request.app.state.container
        summaries = state_container.listing_service.list_open_listings()
        return {
            "listings": [
                {
                    **_listing_dict(summary.listing),
                    "seller_name": summary.seller_name,
                    "bid_count": summary.bid_count,
                }
                for summary in summaries
            ]
        }

    @app.post("/listings", status_code=status.HTTP_201_CREATED)
    async def create_listing(
        body: ListingCreate, request: Request, user_id: str = Depends(current_user)
    ) -> dict[str, object]:
        state_container: AppContainer = request.app.state.container
        listing = await state_container.listing_service.create_listing(
            seller_id=user_id,
            meal_date=body.date,
            meal=body.meal,
            min_price=body.min_price,
        )
        return {"listing": _listing_dict(listing)}

    @app.get("/listings/mine")
    async def my_listings(
        request: Request, user_id: str = Depends(current_user)
    ) -> dict[str, object]:
        """Return the caller's listings with their bids."""
        state_container: AppContainer = request.app.state.container
        entries = state_container.listing_service.list_seller_listings(user_id)
        return {
            "listings": [
                {
                    **_listing_dict(entry.listing),
                    "bids": [_bid_dict(bid) for bid in entry.bids],
                }
                for entry in entries
            ]
        }

    @app.patch("/listings/{listing_id}")
    async def update_listing(
        listing_id: UUID,
        body: ListingUpdate,
        request: Request,
        user_id: str = Depends(current_user),
    ) -> dict[str, object]:
        state_container: AppContainer = request.app.state.container
        listing = state_container.listing_service.update_min_price(
            listing_id, user_id, body.min_price
        )
        return {"listing": _listing_dict(listing)}

    @app.delete("/listings/{listing_id}")
    async def delete_listing(
        listing_id: UUID, request: Request, user_id: str = Depends(current_user)
    ) -> dict[str, bool]:
        state_container: AppContainer = request.app.state.container
        deleted = state_container.listing_service.delete_listing(listing_id, user_id)
        return {"deleted": deleted}

    @app.get("/listings/{listing_id}/bids")
    async def list_bids(
        listing_id: UUID, request: Request, user_id: str = Depends(current_user)
    ) -> dict[str, object]:
        """Return bids on the caller's listing, highest first."""
        state_container: AppContainer = request.app.state.container
        state_container.listing_service.get_owned_listing(listing_id, user_id)
        views = state_container.bid_service.list_bids_for_listing(listing_id)
        return {
            "bids": [
                {
                    **_bid_dict(view.bid),
                    "buyer_name": view.buyer_name,
                    "buyer_phone": view.buyer_phone,
                }
                for view in views
            ]
        }

    @app.post("/listings/{listing_id}/bids", status_code=status.HTTP_201_CREATED)
    async def place_bid(
        listing_id: UUID,
        body: BidRequest,
        request: Request,
        user_id: str = Depends(current_user),
    ) -> dict[str, object]:
        state_container: AppContainer = request.app.state.container
        placement = state_container.bid_service.place_bid(
            user_id, listing_id, body.bid_price
        )
        return _placement_dict(placement)

    @app.put("/listings/{listing_id}/bids")
    async def update_bid(
        listing_id: UUID,
        body: BidRequest,
        request: Request,
        user_id: str = Depends(current_user),
    ) -> dict[str, object]:
        state_container: AppContainer = request.app.state.container
        placement = state_container.bid_service.update_bid(
            user_id, listing_id, body.bid_price
        )
        return _placement_dict(placement)

    @app.post("/listings/{listing_id}/bids/{bid_id}/accept")
    async def accept_bid(
        listing_id: UUID,
        bid_id: UUID,
        request: Request,
        user_id: str = Depends(current_user),
    ) -> dict[str, object]:
        state_container: AppContainer = request.app.state.container
        bid = await state_container.settlement_service.accept_bid(
            listing_id, bid_id, user_id
        )
        return {"bid": _bid_dict(bid)}

    @app.post("/listings/{listing_id}/bids/{bid_id}/pay")
    async def mark_paid(
        listing_id: UUID,
        bid_id: UUID,
        request: Request,
        user_id: str = Depends(current_user),
    ) -> dict[str, object]:
        """Record the sale for the accepted bid."""
        state_container: AppContainer = request.app.state.container
        result = await state_container.settlement_service.mark_paid(
            listing_id, bid_id, user_id
        )
        return {
            "transaction": _transaction_dict(result.transaction),
            "purchase": _purchase_dict(result.purchase),
        }

    @app.post("/listings/{listing_id}/bids/{bid_id}/cancel")
    async def cancel_accepted_bid(
        listing_id: UUID,
        bid_id: UUID,
        request: Request,
        user_id: str = Depends(current_user),
    ) -> dict[str, str]:
        state_container: AppContainer = request.app.state.container
        await state_container.settlement_service.cancel_accepted_bid(
            listing_id, bid_id, user_id
        )
        return {"status": "cancelled"}

    @app.delete("/bids/{bid_id}")
    async def withdraw_bid(
        bid_id: UUID, request: Request, user_id: str = Depends(current_user)
    ) -> dict[str, bool]:
        state_container: AppContainer = request.app.state.container
        deleted = state_container.bid_service.withdraw_bid(user_id, bid_id)
        return {"deleted": deleted}

    @app.get("/bids/mine")
    async def my_bids(
        request: Request, user_id: str = Depends(current_user)
    ) -> dict[str, object]:
        state_container: AppContainer = request.app.state.container
        entries = state_container.bid_service.list_bids_for_buyer(user_id)
        return {
            "bids": [
                {
                    **_bid_dict(entry.bid),
                    "listing": _listing_dict(entry.listing) if entry.listing else None,
                }
                for entry in entries
            ]
        }

    @app.get("/purchases")
    async def purchases(
        request: Request, user_id: str = Depends(current_user)
    ) -> dict[str, object]:
        """Return purchases whose meal has not passed yet."""
        state_container: AppContainer = request.app.state.container
        active = state_container.purchase_service.list_active_purchases(user_id)
        return {
            "purchases": [
                {
                    **_purchase_dict(item.purchase),
                    "transaction": _transaction_dict(item.transaction),
                }
                for item in active
            ]
        }

    @app.get("/transactions")
    async def transactions(
        request: Request, user_id: str = Depends(current_user)
    ) -> dict[str, object]:
        state_container: AppContainer = request.app.state.container
        views = state_container.purchase_service.list_transactions(user_id)
        return {
            "transactions": [
                {
                    **_transaction_dict(view.transaction),
                    "role": view.role,
                    "counterpart_id": view.counterpart_id,
                    "counterpart_name": view.counterpart_name,
                }
                for view in views
            ]
        }

    @app.get("/leaderboard")
    async def leaderboard(request: Request, limit: int = 10) -> dict[str, object]:
        state_container: AppContainer = request.app.state.container
        boards = state_container.purchase_service.leaderboard(limit)
        return {
            name: [_leaderboard_dict(entry) for entry in entries]
            for name, entries in boards.items()
        }

    @app.get("/summary")
    async def summary(
        request: Request, user_id: str = Depends(current_user)
    ) -> dict[str, object]:
        state_container: AppContainer = request.app.state.container
        result = state_container.purchase_service.user_summary(user_id)
        average = result.avg_time_to_sale
        return {
            "purchases": result.purchases,
            "total_spent": result.total_spent,
            "sales": result.sales,
            "total_earned": result.total_earned,
            "avg_time_to_sale_seconds": (
                average.total_seconds() if average is not None else None
            ),
        }

    @app.get("/notifications")
    async def notifications(
        request: Request, user_id: str = Depends(current_user), limit: int = 20
    ) -> dict[str, object]:
        state_container: AppContainer = request.app.state.container
        service = state_container.notification_service
        items = service.list_notifications(user_id, limit)
        return {
            "notifications": [item.model_dump(mode="json") for item in items],
            "unread": service.unread_count(user_id),
        }

    @app.post("/notifications/read")
    async def read_notifications(
        body: NotificationsRead,
        request: Request,
        user_id: str = Depends(current_user),
    ) -> dict[str, str]:
        state_container: AppContainer = request.app.state.container
        state_container.notification_service.mark_read(user_id, body.notification_id)
        return {"status": "ok"}

    @app.put("/users/me")
    async def update_me(
        body: ContactUpdate, request: Request, user_id: str = Depends(current_user)
    ) -> dict[str, object]:
        """Update the caller's name, phone number and mess API key."""
        state_container: AppContainer = request.app.state.container
        users = state_container.user_service
        if body.name:
            users.ensure_user(user_id, body.name, body.email)
        users.update_contact(user_id, body.phone_number, body.api_key)
        profile = users.get_profile(user_id)
        return {
            "roll_number": user_id,
            "name": profile.name if profile else None,
            "phone_number": profile.phone_number if profile else None,
            "has_api_key": users.get_api_key(user_id) is not None,
        }

    return app


def _listing_dict(listing: Listing) -> dict[str, object]:
    return {
        "id": str(listing.id),
        "seller_id": listing.seller_id,
        "date": listing.date.isoformat(),
        "meal": listing.meal,
        "mess": listing.mess,
        "min_price": listing.min_price,
        "created_at": listing.created_at.isoformat(),
        "accepted_bid_id": (
            str(listing.accepted_bid_id) if listing.accepted_bid_id else None
        ),
    }


def _bid_dict(bid: Bid) -> dict[str, object]:
    return {
        "id": str(bid.id),
        "listing_id": str(bid.listing_id),
        "buyer_id": bid.buyer_id,
        "bid_price": bid.bid_price,
        "accepted": bid.accepted,
        "paid": bid.paid,
        "created_at": bid.created_at.isoformat(),
    }


def _placement_dict(placement: BidPlacement) -> dict[str, object]:
    body: dict[str, object] = {"bid": _bid_dict(placement.bid)}
    if placement.below_minimum:
        body["warning"] = "Your bid is below the seller's minimum price"
    return body


def _transaction_dict(transaction: TransactionRecord) -> dict[str, object]:
    return {
        "id": str(transaction.id),
        "listing_id": str(transaction.listing_id) if transaction.listing_id else None,
        "date_of_transaction": transaction.date_of_transaction.isoformat(),
        "meal": transaction.meal,
        "mess": transaction.mess,
        "sold_price": transaction.sold_price,
        "listing_price": transaction.listing_price,
        "buyer_id": transaction.buyer_id,
        "seller_id": transaction.seller_id,
        "listing_created_at": transaction.listing_created_at.isoformat(),
        "sold_time": transaction.sold_time.isoformat(),
    }


def _purchase_dict(purchase: PurchaseRecord) -> dict[str, object]:
    return {
        "id": str(purchase.id),
        "transaction_id": str(purchase.transaction_id),
        "buyer_id": purchase.buyer_id,
        "token": purchase.token,
        "meal_date": purchase.meal_date.isoformat(),
    }


def _leaderboard_dict(entry: LeaderboardEntry) -> dict[str, object]:
    return {"user_id": entry.user_id, "name": entry.name, "count": entry.count}
