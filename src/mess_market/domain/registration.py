"""Models returned by the meal-registration service."""

from dataclasses import dataclass


@dataclass(frozen=True)
class MessRegistration:
    """A user's registration for one meal slot."""

    meal_mess: str
    cancelled: bool
    availed: bool

    @property
    def mess_name(self) -> str:
        """Mess name without the -veg/-nonveg suffix, capitalised."""
        base = self.meal_mess.split("-")[0]
        return base[:1].upper() + base[1:]
