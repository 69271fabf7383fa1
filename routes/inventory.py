"""
Inventory API routes.

Read-only stock overview per site; balances are maintained by the
inventory CRUD layer.
"""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from typing import Optional
import structlog

from models.inventory import SiteInventoryListResponse
from services.inventory_service import get_inventory_service
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/inventory", tags=["Inventory"])


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    # Unexpected error
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# ROUTES
# ===================

@router.get("/sites", response_model=SiteInventoryListResponse)
async def get_site_inventory(
    site_id: Optional[str] = Query(None, description="Filter by site (quarry, near_well)"),
):
    """
    Stock, reservations and availability per site and product.

    Status is Critical below half the site's suggested minimum and Low
    below the minimum.
    """
    try:
        service = get_inventory_service()
        return service.get_site_inventory(site_id)

    except Exception as e:
        return handle_error(e)
