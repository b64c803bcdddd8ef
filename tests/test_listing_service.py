"""Tests for the listing service."""

import asyncio
from dataclasses import replace
from datetime import timedelta

import pytest

from mess_market.domain.errors import (
    AlreadyAccepted,
    AlreadyPaid,
    InvalidInput,
    ListingNotFound,
    LoginRequired,
    NotSeller,
)
from mess_market.domain.registration import MessRegistration
from tests.conftest import NOW, TODAY, make_listing

SELLER = "2021101001"
BUYER = "2021101002"


def test_create_listing_uses_registered_mess(
    listing_service, listing_repository, mess_client
) -> None:
    listing = asyncio.run(
        listing_service.create_listing(SELLER, TODAY, "dinner", 60, now=NOW)
    )

    assert listing.meal == "Dinner"
    assert listing.mess == "North"
    assert listing.min_price == 60.0
    assert listing_repository.get_listing(listing.id) == listing
    assert mess_client.registration_calls == [("seller-key", TODAY, "Dinner")]


def test_create_listing_rejects_unknown_meal(listing_service) -> None:
    with pytest.raises(InvalidInput):
        asyncio.run(listing_service.create_listing(SELLER, TODAY, "brunch", 60, now=NOW))


@pytest.mark.parametrize("price", [-1, float("nan"), float("inf"), True, "50"])
def test_create_listing_rejects_bad_price(listing_service, price) -> None:
    with pytest.raises(InvalidInput):
        asyncio.run(
            listing_service.create_listing(SELLER, TODAY, "Dinner", price, now=NOW)
        )


def test_create_listing_after_cutoff(listing_service, listing_repository) -> None:
    with pytest.raises(InvalidInput):
        asyncio.run(
            listing_service.create_listing(SELLER, TODAY, "Breakfast", 30, now=NOW)
        )
    assert listing_repository.listings == {}


def test_create_listing_requires_api_key(listing_service) -> None:
    with pytest.raises(LoginRequired):
        asyncio.run(listing_service.create_listing(BUYER, TODAY, "Dinner", 40, now=NOW))


@pytest.mark.parametrize(
    "registration",
    [
        MessRegistration(meal_mess="south", cancelled=True, availed=False),
        MessRegistration(meal_mess="south", cancelled=False, availed=True),
    ],
)
def test_create_listing_rejects_unusable_registration(
    listing_service, listing_repository, mess_client, registration
) -> None:
    mess_client.registration = registration

    with pytest.raises(InvalidInput):
        asyncio.run(
            listing_service.create_listing(SELLER, TODAY, "Dinner", 40, now=NOW)
        )
    assert listing_repository.listings == {}


def test_update_min_price(listing_service, listing_repository) -> None:
    listing = listing_repository.add(make_listing())

    updated = listing_service.update_min_price(listing.id, SELLER, 75)

    assert updated.min_price == 75.0
    assert listing_repository.get_listing(listing.id).min_price == 75.0


def test_update_min_price_checks_owner_and_state(
    listing_service, listing_repository
) -> None:
    listing = listing_repository.add(make_listing())
    with pytest.raises(NotSeller):
        listing_service.update_min_price(listing.id, BUYER, 75)

    listing_repository.add(replace(listing, accepted_bid_id=listing.id))
    with pytest.raises(AlreadyAccepted):
        listing_service.update_min_price(listing.id, SELLER, 75)


def test_delete_listing_cascades_and_is_idempotent(
    listing_service, listing_repository, bid_repository, notification_repository
) -> None:
    listing = listing_repository.add(make_listing())
    accepted = bid_repository.create_bid(listing.id, BUYER, 55)
    bid_repository.flag_accepted(accepted.id, 1)
    bid_repository.create_bid(listing.id, "2021101003", 45)

    assert listing_service.delete_listing(listing.id, SELLER) is True
    assert listing_service.delete_listing(listing.id, SELLER) is False

    assert listing_repository.listings == {}
    assert bid_repository.bids == {}
    assert notification_repository.types_for(BUYER) == ["bid_cancelled"]
    assert notification_repository.types_for("2021101003") == []


def test_delete_listing_requires_owner(listing_service, listing_repository) -> None:
    listing = listing_repository.add(make_listing())

    with pytest.raises(NotSeller):
        listing_service.delete_listing(listing.id, BUYER)
    assert listing.id in listing_repository.listings


def test_delete_listing_refused_once_payment_started(
    listing_service, listing_repository, bid_repository
) -> None:
    listing = listing_repository.add(make_listing())
    bid = bid_repository.create_bid(listing.id, BUYER, 55)
    listing_repository.claim_settlement(listing.id, 0, bid.id, True)

    with pytest.raises(AlreadyPaid):
        listing_service.delete_listing(listing.id, SELLER)
    assert listing.id in listing_repository.listings
    assert bid.id in bid_repository.bids


def test_get_listing_missing(listing_service) -> None:
    with pytest.raises(ListingNotFound):
        listing_service.get_listing(make_listing().id)


def test_open_listings_hide_expired_accepted_and_settled(
    listing_service, listing_repository, bid_repository, transaction_repository
) -> None:
    open_listing = listing_repository.add(make_listing(meal="Dinner"))
    listing_repository.add(make_listing(meal="Breakfast"))
    listing_repository.add(make_listing(meal_date=TODAY - timedelta(days=1)))
    accepted = listing_repository.add(make_listing(meal="Snacks"))
    bid = bid_repository.create_bid(accepted.id, BUYER, 60)
    bid_repository.flag_accepted(bid.id, 1)
    settled = listing_repository.add(make_listing(meal="Lunch"))
    transaction_repository.create_transaction(
        listing_id=settled.id,
        date_of_transaction=TODAY,
        meal="Lunch",
        mess="North",
        sold_price=40,
        listing_price=30,
        buyer_id=BUYER,
        seller_id=SELLER,
        listing_created_at=settled.created_at,
        sold_time=NOW,
    )
    bid_repository.create_bid(open_listing.id, BUYER, 20)

    summaries = listing_service.list_open_listings(now=NOW)

    assert [summary.listing.id for summary in summaries] == [open_listing.id]
    assert summaries[0].seller_name == "Asha Seller"
    assert summaries[0].bid_count == 1


def test_seller_listings_order_bids_by_price(
    listing_service, listing_repository, bid_repository
) -> None:
    listing = listing_repository.add(make_listing())
    bid_repository.create_bid(listing.id, BUYER, 40)
    bid_repository.create_bid(listing.id, "2021101003", 65)

    entries = listing_service.list_seller_listings(SELLER)

    assert len(entries) == 1
    assert [bid.bid_price for bid in entries[0].bids] == [65, 40]
    assert listing_service.list_seller_listings(BUYER) == []
