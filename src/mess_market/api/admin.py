"""Admin API endpoints with simple token auth."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse

from mess_market.domain.errors import SweepFailed

if TYPE_CHECKING:
    from mess_market.containers import AppContainer

logger = logging.getLogger(__name__)

router = APIRouter(tags=["admin"])

_ACTOR = "admin"


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/admin/health", dependencies=[Depends(require_admin)])
async def admin_health() -> dict[str, str]:
    """Admin health check endpoint."""
    return {"status": "ok"}


@router.get("/cleanup", dependencies=[Depends(require_admin)], response_model=None)
async def cleanup(request: Request) -> dict[str, object] | JSONResponse:
    """Delete listings whose meal slot has passed."""
    container: AppContainer = request.app.state.container
    try:
        result = container.admin_service.run_sweep(_ACTOR)
    except SweepFailed as exc:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": exc.message, "deleted": exc.deleted},
        )
    if result.deleted == 0:
        return {"message": "No expired listings found", "deleted": 0}
    return {
        "message": f"Successfully deleted {result.deleted} expired listings",
        "deleted": result.deleted,
    }


@router.post("/admin/reconcile", dependencies=[Depends(require_admin)])
async def reconcile(request: Request) -> dict[str, int]:
    """Finish settlements that stopped part-way."""
    container: AppContainer = request.app.state.container
    repaired = await container.admin_service.reconcile(_ACTOR)
    return {"repaired": repaired}


@router.delete("/admin/listings/{listing_id}", dependencies=[Depends(require_admin)])
async def force_delete_listing(
    listing_id: UUID, request: Request, reason: str = "moderation"
) -> dict[str, bool]:
    """Remove a listing regardless of its seller."""
    container: AppContainer = request.app.state.container
    deleted = container.admin_service.force_delete_listing(
        listing_id, _ACTOR, reason
    )
    return {"deleted": deleted}
