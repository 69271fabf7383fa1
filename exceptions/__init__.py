"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ConflictError,
    DatabaseError,

    # Not found
    OrderNotFoundError,
    TruckNotFoundError,
    RuleNotFoundError,
    AssignmentRequestNotFoundError,
    RedirectRequestNotFoundError,

    # Validation
    InvalidStatusTransitionError,
    MissingCertificateError,
    TruckNotBrokenDownError,
    UnsupportedSourceError,

    # Execution conflicts
    ActiveDeliveryExistsError,
    FleetUnavailableError,
    InsufficientCapacityError,
    InsufficientDriversError,
    InsufficientInventoryError,
    RequestNotPendingError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "DatabaseError",

    # Not found
    "OrderNotFoundError",
    "TruckNotFoundError",
    "RuleNotFoundError",
    "AssignmentRequestNotFoundError",
    "RedirectRequestNotFoundError",

    # Validation
    "InvalidStatusTransitionError",
    "MissingCertificateError",
    "TruckNotBrokenDownError",
    "UnsupportedSourceError",

    # Execution conflicts
    "ActiveDeliveryExistsError",
    "FleetUnavailableError",
    "InsufficientCapacityError",
    "InsufficientDriversError",
    "InsufficientInventoryError",
    "RequestNotPendingError",
]
