"""
Approval API routes.

Assignment requests (one approval) and redirect requests (jefatura, then
gerencia, or a single-step approve).
"""

from typing import Optional

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

import structlog

from models.approval import (
    ApproveAction,
    AssignmentRequest,
    AssignmentRequestCreate,
    AssignmentRequestStatus,
    RedirectRequest,
    RedirectRequestCreate,
    RedirectRequestStatus,
    RejectAction,
)
from services.approval_service import get_approval_service
from exceptions import AppError

logger = structlog.get_logger(__name__)

assignment_router = APIRouter(prefix="/api/assignment-requests", tags=["Approvals"])
redirect_router = APIRouter(prefix="/api/redirect-requests", tags=["Approvals"])


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
# ASSIGNMENT REQUESTS
# ===================


@assignment_router.get("", response_model=list[AssignmentRequest])
def list_assignment_requests(
    status: Optional[AssignmentRequestStatus] = Query(None, description="Filter by status"),
):
    """List assignment requests, newest first."""
    try:
        service = get_approval_service()
        return service.list_assignment_requests(status=status)

    except Exception as e:
        return handle_error(e)


@assignment_router.post("", response_model=AssignmentRequest, status_code=201)
def create_assignment_request(data: AssignmentRequestCreate):
    """File an assignment request for approval."""
    try:
        service = get_approval_service()
        return service.create_assignment_request(data)

    except Exception as e:
        return handle_error(e)


@assignment_router.get("/{request_id}", response_model=AssignmentRequest)
def get_assignment_request(request_id: str):
    """
    Get an assignment request.

    Raises:
        404: Request not found
    """
    try:
        service = get_approval_service()
        return service.get_assignment_request(request_id)

    except Exception as e:
        return handle_error(e)


@assignment_router.post("/{request_id}/approve", response_model=AssignmentRequest)
def approve_assignment_request(request_id: str, action: ApproveAction):
    """
    Approve and execute an assignment request.

    Raises:
        404: Request, order or truck not found
        409: Request not pending, or the assignment failed
    """
    try:
        service = get_approval_service()
        return service.approve_assignment_request(request_id, action.approver_id)

    except Exception as e:
        return handle_error(e)


@assignment_router.post("/{request_id}/reject", response_model=AssignmentRequest)
def reject_assignment_request(request_id: str, action: RejectAction):
    """
    Reject an assignment request.

    Raises:
        404: Request not found
        409: Request not pending
    """
    try:
        service = get_approval_service()
        return service.reject_assignment_request(request_id, action.reason)

    except Exception as e:
        return handle_error(e)


# ===================
# REDIRECT REQUESTS
# ===================


@redirect_router.get("", response_model=list[RedirectRequest])
def list_redirect_requests(
    status: Optional[RedirectRequestStatus] = Query(None, description="Filter by status"),
    pending_only: bool = Query(False, description="Only requests awaiting an approval"),
):
    """List redirect requests, newest first."""
    try:
        service = get_approval_service()
        return service.list_redirect_requests(status=status, pending_only=pending_only)

    except Exception as e:
        return handle_error(e)


@redirect_router.post("", response_model=RedirectRequest, status_code=201)
def create_redirect_request(data: RedirectRequestCreate):
    """File a redirect request."""
    try:
        service = get_approval_service()
        return service.create_redirect_request(data)

    except Exception as e:
        return handle_error(e)


@redirect_router.get("/{request_id}", response_model=RedirectRequest)
def get_redirect_request(request_id: str):
    """
    Get a redirect request.

    Raises:
        404: Request not found
    """
    try:
        service = get_approval_service()
        return service.get_redirect_request(request_id)

    except Exception as e:
        return handle_error(e)


@redirect_router.post("/{request_id}/approve-jefatura", response_model=RedirectRequest)
def approve_redirect_by_jefatura(request_id: str, action: ApproveAction):
    """First-level approval (pending_jefatura -> pending_gerencia)."""
    try:
        service = get_approval_service()
        return service.approve_redirect_by_jefatura(request_id, action.approver_id)

    except Exception as e:
        return handle_error(e)


@redirect_router.post("/{request_id}/approve-gerencia", response_model=RedirectRequest)
def approve_redirect_by_gerencia(request_id: str, action: ApproveAction):
    """
    Final approval; executes the redirect.

    Raises:
        409: Request not pending
        422: Not at gerencia level, or target order has no QC certificate
    """
    try:
        service = get_approval_service()
        return service.approve_redirect_by_gerencia(request_id, action.approver_id)

    except Exception as e:
        return handle_error(e)


@redirect_router.post("/{request_id}/approve", response_model=RedirectRequest)
def approve_redirect(request_id: str, action: ApproveAction):
    """Single-step approval from any pending state; executes the redirect."""
    try:
        service = get_approval_service()
        return service.approve_redirect(request_id, action.approver_id)

    except Exception as e:
        return handle_error(e)


@redirect_router.post("/{request_id}/reject", response_model=RedirectRequest)
def reject_redirect_request(request_id: str, action: RejectAction):
    """Reject a pending redirect request."""
    try:
        service = get_approval_service()
        return service.reject_redirect_request(request_id, action.reason)

    except Exception as e:
        return handle_error(e)
