"""Supabase repository for marketplace users."""

from dataclasses import dataclass

from supabase import Client

from mess_market.domain.users import UserProfile
from mess_market.services.users import UserRepository

_COLUMNS = "roll_number, name, email, phone_number"


@dataclass
class SupabaseUserRepository(UserRepository):
    """Supabase implementation over the users table."""

    client: Client

    def get_profile(self, roll_number: str) -> UserProfile | None:
        """Return a user by roll number."""
        response = (
            self.client.table("users")
            .select(_COLUMNS)
            .eq("roll_number", roll_number)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_profile(response.data[0])

    def get_profiles(self, roll_numbers: list[str]) -> list[UserProfile]:
        """Return users by roll number."""
        if not roll_numbers:
            return []
        response = (
            self.client.table("users")
            .select(_COLUMNS)
            .in_("roll_number", roll_numbers)
            .execute()
        )
        return [_parse_profile(row) for row in response.data or []]

    def upsert_user(self, roll_number: str, name: str, email: str | None) -> UserProfile:
        """Create or refresh a user row."""
        payload: dict[str, object] = {"roll_number": roll_number, "name": name}
        if email is not None:
            payload["email"] = email
        response = (
            self.client.table("users")
            .upsert(payload, on_conflict="roll_number")
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to upsert user")
        return _parse_profile(response.data[0])

    def update_contact(
        self, roll_number: str, phone_number: str | None, api_key: str | None
    ) -> None:
        """Update whichever contact fields are provided."""
        payload: dict[str, object] = {}
        if phone_number is not None:
            payload["phone_number"] = phone_number
        if api_key is not None:
            payload["api_key"] = api_key
        if not payload:
            return
        self.client.table("users").update(payload).eq(
            "roll_number", roll_number
        ).execute()

    def get_api_key(self, roll_number: str) -> str | None:
        """Return the stored mess API key."""
        response = (
            self.client.table("users")
            .select("api_key")
            .eq("roll_number", roll_number)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        api_key = response.data[0].get("api_key")
        return str(api_key) if api_key else None


def _parse_profile(row: dict[str, object]) -> UserProfile:
    email = row.get("email")
    phone = row.get("phone_number")
    return UserProfile(
        roll_number=str(row["roll_number"]),
        name=str(row.get("name") or ""),
        email=str(email) if email else None,
        phone_number=str(phone) if phone else None,
    )
