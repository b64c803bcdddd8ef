"""Domain exceptions for the marketplace."""


class MarketError(Exception):
    """Base class for marketplace failures reported to the caller."""

    error_code = "MARKET_ERROR"

    def __init__(self, message: str, details: dict[str, object] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class InvalidInput(MarketError):
    """Request rejected before any write."""

    error_code = "INVALID_INPUT"


class NotSeller(MarketError):
    """Caller does not own the listing."""

    error_code = "NOT_SELLER"


class NotBuyer(MarketError):
    """Caller does not own the bid."""

    error_code = "NOT_BUYER"


class ListingNotFound(MarketError):
    error_code = "LISTING_NOT_FOUND"


class BidNotFound(MarketError):
    error_code = "BID_NOT_FOUND"


class DuplicateBid(MarketError):
    """Buyer already has a bid on the listing; update it instead."""

    error_code = "DUPLICATE_BID"


class AlreadyAccepted(MarketError):
    """Bid (or listing) is locked by an accepted bid."""

    error_code = "ALREADY_ACCEPTED"


class AlreadyPaid(MarketError):
    error_code = "ALREADY_PAID"


class BidNotAccepted(MarketError):
    """Payment can only be marked on the accepted bid."""

    error_code = "BID_NOT_ACCEPTED"


class ConcurrentSettlement(MarketError):
    """Another settlement step changed the listing first; retry."""

    error_code = "CONCURRENT_SETTLEMENT"


class LoginRequired(MarketError):
    """Mess credential is missing or stale; the user must log in again."""

    error_code = "LOGIN_REQUIRED"


class RegistrationNotFound(MarketError):
    """No mess registration for the requested slot."""

    error_code = "REGISTRATION_NOT_FOUND"


class MessServiceError(MarketError):
    """Meal-registration service failed unexpectedly."""

    error_code = "MESS_SERVICE_ERROR"


class SettlementIncomplete(MarketError):
    """Sale is recorded but listing cleanup did not finish."""

    error_code = "SETTLEMENT_INCOMPLETE"


class SweepFailed(MarketError):
    """Expiry sweep stopped part-way; a later run retries the rest."""

    error_code = "SWEEP_FAILED"

    def __init__(self, message: str, deleted: int):
        super().__init__(message, {"deleted": deleted})
        self.deleted = deleted
