"""Meal window rules shared by the API, listing validation and the sweep."""

from datetime import date, datetime, time
from zoneinfo import ZoneInfo

MEAL_TYPES = ("Breakfast", "Lunch", "Snacks", "Dinner")

_END_HOURS = {
    "breakfast": 10,
    "lunch": 15,
    "snacks": 19,
    "dinner": 22,
}
_FALLBACK_END_HOUR = 23

_LISTING_CUTOFFS = {
    "breakfast": time(9, 30),
    "lunch": time(14, 30),
    "snacks": time(18, 30),
    "dinner": time(21, 30),
}
_FALLBACK_LISTING_CUTOFF = time(22, 30)


def normalize_meal(meal: str) -> str | None:
    """Return the canonical meal name, or None for an unknown meal."""
    cleaned = meal.strip().lower()
    for name in MEAL_TYPES:
        if name.lower() == cleaned:
            return name
    return None


def meal_end_hour(meal: str) -> int:
    """Hour of day at which service for the meal ends."""
    return _END_HOURS.get(meal.strip().lower(), _FALLBACK_END_HOUR)


def is_expired(meal_date: date, meal: str, now: datetime) -> bool:
    """Return true once the meal window for the slot has passed.

    ``now`` must already be expressed in the market timezone.
    """
    today = now.date()
    if meal_date < today:
        return True
    if meal_date > today:
        return False
    return now.hour >= meal_end_hour(meal)


def listing_cutoff(meal: str) -> time:
    """Latest time of day a same-day listing may be created."""
    return _LISTING_CUTOFFS.get(meal.strip().lower(), _FALLBACK_LISTING_CUTOFF)


def can_list(meal_date: date, meal: str, now: datetime) -> bool:
    """Return true when a new listing for the slot is still allowed."""
    today = now.date()
    if meal_date < today:
        return False
    if meal_date > today:
        return True
    return now.time() < listing_cutoff(meal)


def market_now(timezone_name: str) -> datetime:
    """Current time in the canonical market timezone."""
    return datetime.now(tz=ZoneInfo(timezone_name))


def to_market_time(now: datetime, timezone_name: str) -> datetime:
    """Express ``now`` in the market timezone; naive values are taken as-is."""
    if now.tzinfo is None:
        return now
    return now.astimezone(ZoneInfo(timezone_name))
