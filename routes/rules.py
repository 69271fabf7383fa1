"""
Recommendation rule API routes.
"""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse, Response

import structlog

from models.rule import Rule, RuleCreate, RuleListResponse, RuleUpdate
from services.rule_service import get_rule_service
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/rules", tags=["Rules"])


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


@router.get("", response_model=RuleListResponse)
async def list_rules(
    active_only: bool = Query(False, description="Only active rules"),
):
    """List rules ordered by priority, then name."""
    try:
        service = get_rule_service()
        rules = service.list_rules(active_only=active_only)
        return RuleListResponse(data=rules, total=len(rules))

    except Exception as e:
        return handle_error(e)


@router.get("/{rule_id}", response_model=Rule)
async def get_rule(rule_id: str):
    """
    Get a single rule.

    Raises:
        404: Rule not found
    """
    try:
        service = get_rule_service()
        return service.get_rule(rule_id)

    except Exception as e:
        return handle_error(e)


@router.post("", response_model=Rule, status_code=201)
async def create_rule(data: RuleCreate):
    """Create a rule."""
    try:
        service = get_rule_service()
        return service.create_rule(data)

    except Exception as e:
        return handle_error(e)


@router.patch("/{rule_id}", response_model=Rule)
async def update_rule(rule_id: str, data: RuleUpdate):
    """
    Update a rule. Only provided fields change.

    Raises:
        404: Rule not found
    """
    try:
        service = get_rule_service()
        return service.update_rule(rule_id, data)

    except Exception as e:
        return handle_error(e)


@router.delete("/{rule_id}", status_code=204)
async def delete_rule(rule_id: str):
    """
    Delete a rule.

    Raises:
        404: Rule not found
    """
    try:
        service = get_rule_service()
        service.delete_rule(rule_id)
        return Response(status_code=204)

    except Exception as e:
        return handle_error(e)
