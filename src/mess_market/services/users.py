"""User directory lookups."""

from dataclasses import dataclass
from typing import Protocol

from mess_market.domain.users import UserProfile


class UserRepository(Protocol):
    """Persistence interface for user data."""

    def get_profile(self, roll_number: str) -> UserProfile | None:
        """Return the user with the roll number, if present."""

    def get_profiles(self, roll_numbers: list[str]) -> list[UserProfile]:
        """Return the users with the given roll numbers."""

    def upsert_user(self, roll_number: str, name: str, email: str | None) -> UserProfile:
        """Create or refresh a user after login and return it."""

    def update_contact(
        self, roll_number: str, phone_number: str | None, api_key: str | None
    ) -> None:
        """Update phone number and mess API key."""

    def get_api_key(self, roll_number: str) -> str | None:
        """Return the user's mess API key, if set."""


@dataclass
class UserService:
    """Application service for user lookups and profile updates."""

    repository: UserRepository

    def ensure_user(
        self, roll_number: str, name: str, email: str | None = None
    ) -> UserProfile:
        """Ensure a user row exists for a verified identity."""
        return self.repository.upsert_user(roll_number, name, email)

    def update_contact(
        self,
        roll_number: str,
        phone_number: str | None = None,
        api_key: str | None = None,
    ) -> None:
        self.repository.update_contact(roll_number, phone_number, api_key)

    def get_profile(self, roll_number: str) -> UserProfile | None:
        return self.repository.get_profile(roll_number)

    def get_profiles(self, roll_numbers: list[str]) -> dict[str, UserProfile]:
        """Return profiles keyed by roll number."""
        unique = sorted(set(roll_numbers))
        if not unique:
            return {}
        return {
            profile.roll_number: profile
            for profile in self.repository.get_profiles(unique)
        }

    def display_name(self, roll_number: str) -> str:
        profile = self.repository.get_profile(roll_number)
        return profile.name if profile else "Unknown"

    def get_api_key(self, roll_number: str) -> str | None:
        return self.repository.get_api_key(roll_number)
