"""Domain models for marketplace users."""

from dataclasses import dataclass


@dataclass(frozen=True)
class UserProfile:
    """User identified by roll number."""

    roll_number: str
    name: str
    email: str | None = None
    phone_number: str | None = None
