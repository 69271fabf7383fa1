"""
Dispatcher API routes.

Recommendations for orders and broken-down trucks, and direct execution
of a chosen option. Handlers are plain functions so FastAPI runs them in
its threadpool; the executor serializes them with per-order and per-truck
locks.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

import structlog

from models.assignment import (
    AssignmentResult,
    AssignPayload,
    BreakdownReplacementPayload,
    BreakdownSummary,
)
from models.order import Order
from models.recommendation import RecommendationList
from services.assignment_service import get_assignment_service
from services.recommendation_service import get_recommendation_service
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/dispatcher", tags=["Dispatcher"])


# ===================
# EXCEPTION HANDLER
# ===================


def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(status_code=e.status_code, content=e.to_dict())
    # Unexpected error
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={"error": {"code": "INTERNAL_ERROR", "message": "An unexpected error occurred"}},
    )


# ===================
# RECOMMENDATIONS
# ===================


@router.get("/orders/{order_id}/recommendations", response_model=RecommendationList)
def get_order_recommendations(order_id: str):
    """
    Ranked fulfillment options for an order.

    Options that cannot fulfill carry a `cannot_fulfill_reason`;
    PRODUCE is omitted for ready orders.

    Raises:
        404: Order not found
    """
    try:
        service = get_recommendation_service()
        return service.get_order_recommendations(order_id)

    except Exception as e:
        return handle_error(e)


@router.get("/trucks/{truck_id}/breakdown-recommendations", response_model=RecommendationList)
def get_breakdown_recommendations(truck_id: str):
    """
    Replacement options for a broken-down or stuck truck.

    Raises:
        404: Truck or order not found
        422: Truck is not broken down / stuck on an order
    """
    try:
        service = get_recommendation_service()
        return service.get_breakdown_recommendations(truck_id)

    except Exception as e:
        return handle_error(e)


@router.get("/breakdowns", response_model=list[BreakdownSummary])
def list_breakdowns():
    """Broken-down or stuck trucks still bound to an order."""
    try:
        service = get_recommendation_service()
        return service.list_breakdowns()

    except Exception as e:
        return handle_error(e)


# ===================
# EXECUTION
# ===================


@router.post("/assign", response_model=AssignmentResult)
def assign(payload: AssignPayload):
    """
    Execute a fulfillment option.

    Raises:
        404: Order or truck not found
        409: Active delivery exists, fleet unavailable, insufficient
             capacity, drivers or inventory
        422: Unsupported source (PRODUCE)
    """
    try:
        service = get_assignment_service()
        return service.assign(payload)

    except Exception as e:
        return handle_error(e)


@router.post("/orders/{order_id}/start-production", response_model=Order)
def start_production(order_id: str):
    """
    Send an order to production (pending/confirmed -> in_production).

    Raises:
        404: Order not found
        422: Order is past confirmation
    """
    try:
        service = get_assignment_service()
        return service.start_production(order_id)

    except Exception as e:
        return handle_error(e)


@router.post(
    "/orders/{order_id}/breakdown-replacement/{truck_id}",
    response_model=AssignmentResult,
)
def apply_breakdown_replacement(
    order_id: str,
    truck_id: str,
    payload: BreakdownReplacementPayload,
):
    """
    Replace a broken-down truck's load and send the truck to maintenance.

    Raises:
        404: Order or truck not found
        409: Replacement fleet or inventory unavailable
        422: Truck is not broken down on this order
    """
    try:
        service = get_assignment_service()
        return service.apply_breakdown_replacement(order_id, truck_id, payload)

    except Exception as e:
        return handle_error(e)
