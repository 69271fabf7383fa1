"""
Approval workflow schemas.

Assignment requests gate warehouse assignments behind one approval.
Redirect requests gate truck redirects behind two levels (jefatura, then
gerencia), with a single-step shortcut from any pending state.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from models.base import BaseSchema, TimestampMixin
from models.recommendation import SourceType


class AssignmentRequestStatus(str, Enum):
    """Assignment request states."""
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"


class RedirectRequestStatus(str, Enum):
    """Redirect request states."""
    PENDING_APPROVAL = "pending_approval"
    PENDING_JEFATURA = "pending_jefatura"
    PENDING_GERENCIA = "pending_gerencia"
    APPROVED = "approved"
    REJECTED = "rejected"


class RedirectTransition(str, Enum):
    """Named transitions of the redirect state machine."""
    APPROVE_BY_JEFATURA = "approve_by_jefatura"
    APPROVE_BY_GERENCIA = "approve_by_gerencia"
    APPROVE = "approve"
    REJECT = "reject"


PENDING_REDIRECT_STATUSES = (
    RedirectRequestStatus.PENDING_APPROVAL,
    RedirectRequestStatus.PENDING_JEFATURA,
    RedirectRequestStatus.PENDING_GERENCIA,
)

# transition -> {from_status: to_status}
REDIRECT_TRANSITIONS: dict[RedirectTransition, dict[RedirectRequestStatus, RedirectRequestStatus]] = {
    RedirectTransition.APPROVE_BY_JEFATURA: {
        RedirectRequestStatus.PENDING_JEFATURA: RedirectRequestStatus.PENDING_GERENCIA,
    },
    RedirectTransition.APPROVE_BY_GERENCIA: {
        RedirectRequestStatus.PENDING_GERENCIA: RedirectRequestStatus.APPROVED,
    },
    RedirectTransition.APPROVE: {
        status: RedirectRequestStatus.APPROVED for status in PENDING_REDIRECT_STATUSES
    },
    RedirectTransition.REJECT: {
        status: RedirectRequestStatus.REJECTED for status in PENDING_REDIRECT_STATUSES
    },
}

# Transitions that rebind the truck to the target order
EXECUTING_TRANSITIONS = (RedirectTransition.APPROVE_BY_GERENCIA, RedirectTransition.APPROVE)


def next_redirect_status(
    current: RedirectRequestStatus,
    transition: RedirectTransition,
) -> Optional[RedirectRequestStatus]:
    """
    Resolve a redirect transition.

    Returns:
        The new status, or None if the transition is not allowed from `current`.
        APPROVED and REJECTED are terminal.
    """
    return REDIRECT_TRANSITIONS[transition].get(current)


# ===================
# ASSIGNMENT REQUESTS
# ===================

class AssignmentRequestCreate(BaseSchema):
    """Dispatcher asks for a warehouse (or truck) assignment."""

    order_id: str
    order_number: Optional[str] = None
    source_type: SourceType
    source_id: str
    source_label: Optional[str] = Field(None, max_length=200)
    truck_id: Optional[str] = None
    truck_label: Optional[str] = Field(None, max_length=100)
    reason: Optional[str] = Field(None, max_length=1000)
    requested_by: str = Field(..., description="Requesting user UUID")
    requested_by_name: Optional[str] = Field(None, max_length=200)


class AssignmentRequest(BaseSchema, TimestampMixin):
    """Assignment request row."""

    id: str
    order_id: str
    order_number: Optional[str] = None
    source_type: SourceType
    source_id: str
    source_label: Optional[str] = None
    truck_id: Optional[str] = None
    truck_label: Optional[str] = None
    reason: Optional[str] = None
    status: AssignmentRequestStatus
    requested_by: Optional[str] = None
    requested_by_name: Optional[str] = None
    requested_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None


# ===================
# REDIRECT REQUESTS
# ===================

class RedirectRequestCreate(BaseSchema):
    """Dispatcher asks to redirect an in-transit truck to another order."""

    from_order_id: str
    from_order_number: Optional[str] = None
    to_order_id: str
    to_order_number: Optional[str] = None
    truck_id: str
    truck_label: Optional[str] = Field(None, max_length=100)
    reason: Optional[str] = Field(None, max_length=1000)
    impact_on_original_order: Optional[str] = Field(None, max_length=1000)
    requested_by: str
    requested_by_name: Optional[str] = Field(None, max_length=200)
    single_step: bool = Field(
        default=False,
        description="Start in pending_approval (one approval) instead of pending_jefatura"
    )


class RedirectRequest(BaseSchema, TimestampMixin):
    """Redirect request row."""

    id: str
    from_order_id: str
    from_order_number: Optional[str] = None
    to_order_id: str
    to_order_number: Optional[str] = None
    truck_id: str
    truck_label: Optional[str] = None
    reason: Optional[str] = None
    impact_on_original_order: Optional[str] = None
    status: RedirectRequestStatus
    requested_by: Optional[str] = None
    requested_by_name: Optional[str] = None
    requested_at: Optional[datetime] = None
    jefatura_approved_by: Optional[str] = None
    jefatura_approved_at: Optional[datetime] = None
    gerencia_approved_by: Optional[str] = None
    gerencia_approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None


# ===================
# ACTIONS
# ===================

class ApproveAction(BaseSchema):
    """Approver identity."""

    approver_id: str = Field(..., description="Approving user UUID")


class RejectAction(BaseSchema):
    """Optional rejection reason."""

    reason: Optional[str] = Field(None, max_length=1000)
