"""
Approval service - assignment and redirect request workflows.

Assignment requests need one approval, which executes the assignment.
Redirect requests go through one transition table (see models.approval):
jefatura promotes to gerencia without side effects, gerencia (or the
single-step approve) rebinds the truck. Every status change is a
conditional update on the status the request was read in, so a request
resolved concurrently fails with "not pending" instead of being
overwritten.
"""

from datetime import datetime, timezone
from typing import Optional

import structlog

from config import get_supabase_client
from exceptions import (
    AssignmentRequestNotFoundError,
    DatabaseError,
    InvalidStatusTransitionError,
    RedirectRequestNotFoundError,
    RequestNotPendingError,
)
from models.approval import (
    EXECUTING_TRANSITIONS,
    PENDING_REDIRECT_STATUSES,
    AssignmentRequest,
    AssignmentRequestCreate,
    AssignmentRequestStatus,
    RedirectRequest,
    RedirectRequestCreate,
    RedirectRequestStatus,
    RedirectTransition,
    next_redirect_status,
)
from models.assignment import AssignPayload
from services.assignment_service import AssignmentService, get_assignment_service
from services.lock_service import AggregateLocks, get_aggregate_locks

logger = structlog.get_logger(__name__)


class ApprovalService:
    """Request/approve/reject workflows for assignments and redirects."""

    def __init__(
        self,
        executor: Optional[AssignmentService] = None,
        locks: Optional[AggregateLocks] = None,
    ):
        self.db = get_supabase_client()
        self.executor = executor or get_assignment_service()
        self.locks = locks or get_aggregate_locks()
        self.assignment_table = "assignment_requests"
        self.redirect_table = "redirect_requests"

    # ===================
    # SHARED
    # ===================

    def _select_one(self, table: str, request_id: str) -> Optional[dict]:
        try:
            result = (
                self.db.table(table)
                .select("*")
                .eq("id", request_id)
                .limit(1)
                .execute()
            )
            return result.data[0] if result.data else None

        except Exception as e:
            logger.error("get_request_failed", table=table, request_id=request_id, error=str(e))
            raise DatabaseError("select", str(e))

    def _conditional_update(
        self,
        table: str,
        request_id: str,
        expected_status: str,
        data: dict,
    ) -> Optional[dict]:
        """
        Update a request only if it is still in `expected_status`.

        Returns:
            The updated row, or None if the status had already changed
        """
        try:
            result = (
                self.db.table(table)
                .update(data)
                .eq("id", request_id)
                .eq("status", expected_status)
                .execute()
            )
            return result.data[0] if result.data else None

        except Exception as e:
            logger.error("update_request_failed", table=table, request_id=request_id, error=str(e))
            raise DatabaseError("update", str(e))

    def _list(self, table: str, statuses: Optional[list[str]]) -> list[dict]:
        try:
            query = self.db.table(table).select("*")
            if statuses:
                query = query.in_("status", statuses)
            result = query.order("requested_at", desc=True).execute()
            return result.data or []

        except Exception as e:
            logger.error("list_requests_failed", table=table, error=str(e))
            raise DatabaseError("select", str(e))

    def _insert(self, table: str, data: dict) -> dict:
        try:
            result = self.db.table(table).insert(data).execute()
            return result.data[0]

        except Exception as e:
            logger.error("create_request_failed", table=table, error=str(e))
            raise DatabaseError("insert", str(e))

    # ===================
    # ASSIGNMENT REQUESTS
    # ===================

    def create_assignment_request(self, data: AssignmentRequestCreate) -> AssignmentRequest:
        """File an assignment request in pending_approval."""
        logger.info(
            "creating_assignment_request",
            order_id=data.order_id,
            source_type=data.source_type.value,
        )

        now = datetime.now(timezone.utc).isoformat()
        row = self._insert(self.assignment_table, {
            **data.model_dump(mode="json"),
            "status": AssignmentRequestStatus.PENDING_APPROVAL.value,
            "requested_at": now,
        })

        request = AssignmentRequest.model_validate(row)
        logger.info("assignment_request_created", request_id=request.id)
        return request

    def list_assignment_requests(
        self,
        status: Optional[AssignmentRequestStatus] = None,
    ) -> list[AssignmentRequest]:
        """Assignment requests, newest first."""
        rows = self._list(self.assignment_table, [status.value] if status else None)
        return [AssignmentRequest.model_validate(row) for row in rows]

    def get_assignment_request(self, request_id: str) -> AssignmentRequest:
        """
        Get an assignment request.

        Raises:
            AssignmentRequestNotFoundError: If it doesn't exist
        """
        row = self._select_one(self.assignment_table, request_id)
        if row is None:
            raise AssignmentRequestNotFoundError(request_id)
        return AssignmentRequest.model_validate(row)

    def approve_assignment_request(self, request_id: str, approver_id: str) -> AssignmentRequest:
        """
        Approve and execute an assignment request.

        Raises:
            RequestNotPendingError: Request already approved or rejected
            (plus anything AssignmentService.assign raises; the request then
            stays pending)
        """
        logger.info("approving_assignment_request", request_id=request_id, approver_id=approver_id)

        with self.locks.hold(request_ids=[request_id]):
            request = self.get_assignment_request(request_id)
            if request.status != AssignmentRequestStatus.PENDING_APPROVAL:
                raise RequestNotPendingError(request_id, request.status.value)

            with self.locks.hold(order_ids=[request.order_id]):
                self.executor.assign(AssignPayload(
                    order_id=request.order_id,
                    source_type=request.source_type,
                    source_id=request.source_id,
                    truck_id=request.truck_id,
                ))

                row = self._conditional_update(
                    self.assignment_table,
                    request_id,
                    AssignmentRequestStatus.PENDING_APPROVAL.value,
                    {
                        "status": AssignmentRequestStatus.APPROVED.value,
                        "approved_by": approver_id,
                        "approved_at": datetime.now(timezone.utc).isoformat(),
                    },
                )

        if row is None:
            current = self.get_assignment_request(request_id)
            raise RequestNotPendingError(request_id, current.status.value)

        logger.info("assignment_request_approved", request_id=request_id, order_id=request.order_id)
        return AssignmentRequest.model_validate(row)

    def reject_assignment_request(
        self,
        request_id: str,
        reason: Optional[str] = None,
    ) -> AssignmentRequest:
        """
        Reject an assignment request.

        Raises:
            RequestNotPendingError: Request already approved or rejected
        """
        logger.info("rejecting_assignment_request", request_id=request_id)

        with self.locks.hold(request_ids=[request_id]):
            request = self.get_assignment_request(request_id)

            row = self._conditional_update(
                self.assignment_table,
                request_id,
                AssignmentRequestStatus.PENDING_APPROVAL.value,
                {
                    "status": AssignmentRequestStatus.REJECTED.value,
                    "rejected_at": datetime.now(timezone.utc).isoformat(),
                    "rejection_reason": reason,
                },
            )

        if row is None:
            raise RequestNotPendingError(request_id, request.status.value)

        logger.info("assignment_request_rejected", request_id=request_id)
        return AssignmentRequest.model_validate(row)

    # ===================
    # REDIRECT REQUESTS
    # ===================

    def create_redirect_request(self, data: RedirectRequestCreate) -> RedirectRequest:
        """File a redirect request (pending_jefatura, or pending_approval for single-step)."""
        logger.info(
            "creating_redirect_request",
            from_order_id=data.from_order_id,
            to_order_id=data.to_order_id,
            truck_id=data.truck_id,
        )

        status = (
            RedirectRequestStatus.PENDING_APPROVAL
            if data.single_step
            else RedirectRequestStatus.PENDING_JEFATURA
        )
        row = self._insert(self.redirect_table, {
            **data.model_dump(mode="json", exclude={"single_step"}),
            "status": status.value,
            "requested_at": datetime.now(timezone.utc).isoformat(),
        })

        request = RedirectRequest.model_validate(row)
        logger.info("redirect_request_created", request_id=request.id, status=status.value)
        return request

    def list_redirect_requests(
        self,
        status: Optional[RedirectRequestStatus] = None,
        pending_only: bool = False,
    ) -> list[RedirectRequest]:
        """Redirect requests, newest first."""
        if status:
            statuses = [status.value]
        elif pending_only:
            statuses = [s.value for s in PENDING_REDIRECT_STATUSES]
        else:
            statuses = None

        rows = self._list(self.redirect_table, statuses)
        return [RedirectRequest.model_validate(row) for row in rows]

    def get_redirect_request(self, request_id: str) -> RedirectRequest:
        """
        Get a redirect request.

        Raises:
            RedirectRequestNotFoundError: If it doesn't exist
        """
        row = self._select_one(self.redirect_table, request_id)
        if row is None:
            raise RedirectRequestNotFoundError(request_id)
        return RedirectRequest.model_validate(row)

    def approve_redirect_by_jefatura(self, request_id: str, approver_id: str) -> RedirectRequest:
        """First-level approval: pending_jefatura -> pending_gerencia."""
        return self._transition_redirect(
            request_id, RedirectTransition.APPROVE_BY_JEFATURA, approver_id=approver_id
        )

    def approve_redirect_by_gerencia(self, request_id: str, approver_id: str) -> RedirectRequest:
        """Final approval: pending_gerencia -> approved, executes the redirect."""
        return self._transition_redirect(
            request_id, RedirectTransition.APPROVE_BY_GERENCIA, approver_id=approver_id
        )

    def approve_redirect(self, request_id: str, approver_id: str) -> RedirectRequest:
        """Single-step approval from any pending state, executes the redirect."""
        return self._transition_redirect(
            request_id, RedirectTransition.APPROVE, approver_id=approver_id
        )

    def reject_redirect_request(
        self,
        request_id: str,
        reason: Optional[str] = None,
    ) -> RedirectRequest:
        """Reject from any pending state."""
        return self._transition_redirect(
            request_id, RedirectTransition.REJECT, reason=reason
        )

    def _transition_redirect(
        self,
        request_id: str,
        transition: RedirectTransition,
        approver_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> RedirectRequest:
        """
        Apply a named transition to a redirect request.

        Raises:
            RedirectRequestNotFoundError: Unknown id
            RequestNotPendingError: Request already approved or rejected
            InvalidStatusTransitionError: Transition not allowed from the
                current pending state (e.g. gerencia before jefatura)
            MissingCertificateError: Executing transition, target order has
                no passed certificate (request is left unchanged)
        """
        logger.info(
            "transitioning_redirect_request",
            request_id=request_id,
            transition=transition.value,
            approver_id=approver_id,
        )

        with self.locks.hold(request_ids=[request_id]):
            request = self.get_redirect_request(request_id)

            if request.status not in PENDING_REDIRECT_STATUSES:
                raise RequestNotPendingError(request_id, request.status.value)

            new_status = next_redirect_status(request.status, transition)
            if new_status is None:
                raise InvalidStatusTransitionError(request.status.value, transition.value)

            now = datetime.now(timezone.utc).isoformat()
            update_data = {"status": new_status.value, "updated_at": now}

            if transition == RedirectTransition.APPROVE_BY_JEFATURA:
                update_data["jefatura_approved_by"] = approver_id
                update_data["jefatura_approved_at"] = now
            elif transition == RedirectTransition.REJECT:
                update_data["rejected_at"] = now
                update_data["rejection_reason"] = reason
            else:
                update_data["gerencia_approved_by"] = approver_id
                update_data["gerencia_approved_at"] = now

            with self.locks.hold(order_ids=[request.from_order_id, request.to_order_id]):
                if transition in EXECUTING_TRANSITIONS:
                    self.executor.redirect_truck(
                        request.from_order_id,
                        request.to_order_id,
                        request.truck_id,
                    )

                row = self._conditional_update(
                    self.redirect_table,
                    request_id,
                    request.status.value,
                    update_data,
                )

        if row is None:
            current = self.get_redirect_request(request_id)
            raise RequestNotPendingError(request_id, current.status.value)

        logger.info(
            "redirect_request_transitioned",
            request_id=request_id,
            transition=transition.value,
            from_status=request.status.value,
            to_status=new_status.value,
        )
        return RedirectRequest.model_validate(row)


# Singleton instance
_approval_service: Optional[ApprovalService] = None


def get_approval_service() -> ApprovalService:
    """Get or create ApprovalService instance."""
    global _approval_service
    if _approval_service is None:
        _approval_service = ApprovalService()
    return _approval_service
