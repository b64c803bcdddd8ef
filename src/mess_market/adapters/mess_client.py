"""Client for the campus meal-registration API."""

from dataclasses import dataclass
from datetime import date
from typing import Protocol

import httpx

from mess_market.domain.errors import (
    LoginRequired,
    MessServiceError,
    RegistrationNotFound,
)
from mess_market.domain.registration import MessRegistration


class MessClient(Protocol):
    """Interface for meal-registration lookups."""

    async def get_registration(
        self, api_key: str, meal_date: date, meal: str
    ) -> MessRegistration:
        """Return the registration for a meal slot."""

    async def get_token(self, api_key: str) -> str | None:
        """Return the user's current meal redemption token."""


@dataclass
class HttpxMessClient(MessClient):
    """HTTPX-backed meal-registration client."""

    base_url: str
    login_url: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(cls, base_url: str, login_url: str) -> "HttpxMessClient":
        """Create a client with a managed httpx session."""
        return cls(
            base_url=base_url.rstrip("/"),
            login_url=login_url,
            http_client=httpx.AsyncClient(),
        )

    async def get_registration(
        self, api_key: str, meal_date: date, meal: str
    ) -> MessRegistration:
        """Fetch the registration for (date, meal)."""
        payload = await self._get(
            "/registration",
            api_key,
            params={"meal": meal.lower(), "date": meal_date.isoformat()},
        )
        data = payload.get("data") or {}
        if not isinstance(data, dict) or not data.get("meal_mess"):
            raise RegistrationNotFound(
                "No mess registration found for this date and meal",
                {"date": meal_date.isoformat(), "meal": meal},
            )
        return MessRegistration(
            meal_mess=str(data["meal_mess"]),
            cancelled=data.get("cancelled_at") is not None,
            availed=data.get("availed_at") is not None,
        )

    async def get_token(self, api_key: str) -> str | None:
        """Fetch the caller's profile and return its token."""
        payload = await self._get("/auth/me", api_key)
        data = payload.get("data") or {}
        token = data.get("token") if isinstance(data, dict) else None
        return str(token) if token else None

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    async def _get(
        self,
        path: str,
        api_key: str,
        params: dict[str, str] | None = None,
    ) -> dict[str, object]:
        try:
            response = await self.http_client.get(
                f"{self.base_url}{path}",
                params=params,
                headers={"Authorization": api_key},
                timeout=15,
            )
        except httpx.HTTPError as exc:
            raise MessServiceError("Mess service unreachable") from exc
        if response.status_code == httpx.codes.UNAUTHORIZED:
            raise LoginRequired(
                "Mess API key is invalid or expired",
                {"login_url": self.login_url},
            )
        if response.status_code == httpx.codes.NOT_FOUND:
            raise RegistrationNotFound("No mess registration found")
        if response.is_error:
            raise MessServiceError(
                "Mess service returned an error",
                {"status": response.status_code},
            )
        return response.json()
