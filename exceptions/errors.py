"""
Custom exception classes for the application.

Execution-time precondition failures carry the exact message shown to the
dispatcher or approver; they are never retried automatically.
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "ORDER_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ConflictError(AppError):
    """Conflict with the current state of a resource (409)."""

    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# NOT FOUND
# ===================

class OrderNotFoundError(NotFoundError):
    """Order not found."""

    def __init__(self, order_id: str):
        super().__init__(
            resource="Order",
            identifier=order_id,
            code="ORDER_NOT_FOUND"
        )


class TruckNotFoundError(NotFoundError):
    """Truck not found."""

    def __init__(self, truck_id: str):
        super().__init__(
            resource="Truck",
            identifier=truck_id,
            code="TRUCK_NOT_FOUND"
        )


class RuleNotFoundError(NotFoundError):
    """Recommendation rule not found."""

    def __init__(self, rule_id: str):
        super().__init__(
            resource="Rule",
            identifier=rule_id,
            code="RULE_NOT_FOUND"
        )


class AssignmentRequestNotFoundError(NotFoundError):
    """Assignment request not found."""

    def __init__(self, request_id: str):
        super().__init__(
            resource="Assignment request",
            identifier=request_id,
            code="ASSIGNMENT_REQUEST_NOT_FOUND"
        )


class RedirectRequestNotFoundError(NotFoundError):
    """Redirect request not found."""

    def __init__(self, request_id: str):
        super().__init__(
            resource="Redirect request",
            identifier=request_id,
            code="REDIRECT_REQUEST_NOT_FOUND"
        )


# ===================
# VALIDATION
# ===================

class InvalidStatusTransitionError(ValidationError):
    """Invalid status transition."""

    def __init__(self, current_status: str, new_status: str):
        super().__init__(
            code="INVALID_STATUS_TRANSITION",
            message=f"Cannot transition from {current_status} to {new_status}",
            details={
                "current_status": current_status,
                "new_status": new_status,
            }
        )


class MissingCertificateError(ValidationError):
    """Redirect target has no passed QC certificate."""

    def __init__(self, order_id: str):
        super().__init__(
            code="MISSING_QC_CERTIFICATE",
            message="Target order must have a QC certificate before redirect.",
            details={"order_id": order_id}
        )


class TruckNotBrokenDownError(ValidationError):
    """Breakdown flow requested for a truck that is not broken down."""

    def __init__(self, truck_id: str, status: str):
        super().__init__(
            code="TRUCK_NOT_BROKEN_DOWN",
            message="Truck is not broken down or stuck on an order",
            details={"truck_id": truck_id, "status": status}
        )


class UnsupportedSourceError(ValidationError):
    """Source type cannot be executed by the assignment executor."""

    def __init__(self, source_type: str):
        super().__init__(
            code="UNSUPPORTED_SOURCE",
            message=f"Source {source_type} cannot be assigned",
            details={"source_type": source_type}
        )


# ===================
# EXECUTION CONFLICTS
# ===================

class ActiveDeliveryExistsError(ConflictError):
    """Order already has a delivery that is not delivered."""

    def __init__(self, order_id: str):
        super().__init__(
            code="ACTIVE_DELIVERY_EXISTS",
            message="Order already has an active delivery",
            details={"order_id": order_id}
        )


class FleetUnavailableError(ConflictError):
    """Requested truck or a driver for it is not available."""

    def __init__(self, truck_id: Optional[str] = None):
        super().__init__(
            code="FLEET_UNAVAILABLE",
            message="Truck or driver not available",
            details={"truck_id": truck_id}
        )


class InsufficientCapacityError(ConflictError):
    """Available trucks cannot carry the order."""

    def __init__(self, total_capacity: str, order_tons: str):
        super().__init__(
            code="INSUFFICIENT_CAPACITY",
            message=(
                f"Total truck capacity ({total_capacity} t) "
                f"insufficient for order ({order_tons} t)"
            ),
            details={"total_capacity": total_capacity, "order_tons": order_tons}
        )


class InsufficientDriversError(ConflictError):
    """Not enough available drivers for the selected trucks."""

    def __init__(self, needed: int, available: int):
        super().__init__(
            code="INSUFFICIENT_DRIVERS",
            message=f"Need {needed} drivers for {needed} trucks; only {available} available",
            details={"needed": needed, "available": available}
        )


class InsufficientInventoryError(ConflictError):
    """Site stock dropped below the order's tonnage."""

    def __init__(self, site_id: str, available: str, order_tons: str):
        super().__init__(
            code="INSUFFICIENT_INVENTORY",
            message=f"Insufficient inventory ({available} t; order needs {order_tons} t)",
            details={"site_id": site_id, "available": available, "order_tons": order_tons}
        )


class RequestNotPendingError(ConflictError):
    """Approval request was already resolved."""

    def __init__(self, request_id: str, status: str):
        super().__init__(
            code="REQUEST_NOT_PENDING",
            message=f"Request is not pending (status: {status})",
            details={"request_id": request_id, "status": status}
        )
