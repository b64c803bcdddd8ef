"""Mapping of marketplace errors to HTTP responses."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from mess_market.domain.errors import (
    AlreadyAccepted,
    AlreadyPaid,
    BidNotAccepted,
    BidNotFound,
    ConcurrentSettlement,
    DuplicateBid,
    InvalidInput,
    ListingNotFound,
    LoginRequired,
    MarketError,
    MessServiceError,
    NotBuyer,
    NotSeller,
    RegistrationNotFound,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: dict[type[MarketError], int] = {
    InvalidInput: status.HTTP_400_BAD_REQUEST,
    LoginRequired: status.HTTP_401_UNAUTHORIZED,
    NotSeller: status.HTTP_403_FORBIDDEN,
    NotBuyer: status.HTTP_403_FORBIDDEN,
    ListingNotFound: status.HTTP_404_NOT_FOUND,
    BidNotFound: status.HTTP_404_NOT_FOUND,
    RegistrationNotFound: status.HTTP_404_NOT_FOUND,
    DuplicateBid: status.HTTP_409_CONFLICT,
    AlreadyAccepted: status.HTTP_409_CONFLICT,
    AlreadyPaid: status.HTTP_409_CONFLICT,
    BidNotAccepted: status.HTTP_409_CONFLICT,
    ConcurrentSettlement: status.HTTP_409_CONFLICT,
    MessServiceError: status.HTTP_502_BAD_GATEWAY,
}


def status_for(error: MarketError) -> int:
    """Return the HTTP status for an error, 500 when unmapped."""
    for error_type, code in _STATUS_BY_ERROR.items():
        if isinstance(error, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_body(error: MarketError) -> dict[str, object]:
    body: dict[str, object] = {
        "error_code": error.error_code,
        "message": error.message,
        "details": error.details,
    }
    if isinstance(error, LoginRequired):
        body["loginRequired"] = True
    return body


def register_error_handlers(app: FastAPI) -> None:
    """Install the MarketError and fallback handlers on the app."""

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled error",
            exc_info=exc,
            extra={"path": request.url.path},
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error_code": "INTERNAL_ERROR",
                "message": "Internal server error",
                "details": {},
            },
        )

    @app.exception_handler(MarketError)
    async def handle_market_error(request: Request, exc: MarketError) -> JSONResponse:
        code = status_for(exc)
        if code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.error(
                "Request failed",
                extra={"path": request.url.path, "error_code": exc.error_code},
            )
        return JSONResponse(status_code=code, content=error_body(exc))
