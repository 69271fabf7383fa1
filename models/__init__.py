"""
Pydantic models for validation and serialization.
"""

from models.base import (
    BaseSchema,
    TimestampMixin,
)
from models.order import (
    OrderStatus,
    OPEN_ORDER_STATUSES,
    OrderLine,
    Order,
)
from models.fleet import (
    TruckStatus,
    DeliveryStatus,
    Truck,
    Driver,
    TruckUpdate,
    DeliveryCreate,
    Delivery,
    PassedCertificate,
)
from models.inventory import (
    SiteStockStatus,
    InventoryBalance,
    SiteInventory,
    SiteInventoryListResponse,
)
from models.rule import (
    RuleConditionField,
    RuleOperator,
    RuleActionType,
    RuleCondition,
    RuleAction,
    RuleCreate,
    RuleUpdate,
    Rule,
    RuleListResponse,
    RuleContext,
)
from models.recommendation import (
    SourceType,
    RecommendationOption,
    RecommendationList,
)
from models.assignment import (
    AssignPayload,
    BreakdownReplacementPayload,
    AssignmentResult,
    BreakdownSummary,
)
from models.approval import (
    AssignmentRequestStatus,
    RedirectRequestStatus,
    RedirectTransition,
    AssignmentRequestCreate,
    AssignmentRequest,
    RedirectRequestCreate,
    RedirectRequest,
    ApproveAction,
    RejectAction,
)

__all__ = [
    # Base
    "BaseSchema",
    "TimestampMixin",

    # Orders
    "OrderStatus",
    "OPEN_ORDER_STATUSES",
    "OrderLine",
    "Order",

    # Fleet
    "TruckStatus",
    "DeliveryStatus",
    "Truck",
    "Driver",
    "TruckUpdate",
    "DeliveryCreate",
    "Delivery",
    "PassedCertificate",

    # Inventory
    "SiteStockStatus",
    "InventoryBalance",
    "SiteInventory",
    "SiteInventoryListResponse",

    # Rules
    "RuleConditionField",
    "RuleOperator",
    "RuleActionType",
    "RuleCondition",
    "RuleAction",
    "RuleCreate",
    "RuleUpdate",
    "Rule",
    "RuleListResponse",
    "RuleContext",

    # Recommendations
    "SourceType",
    "RecommendationOption",
    "RecommendationList",

    # Assignment
    "AssignPayload",
    "BreakdownReplacementPayload",
    "AssignmentResult",
    "BreakdownSummary",

    # Approvals
    "AssignmentRequestStatus",
    "RedirectRequestStatus",
    "RedirectTransition",
    "AssignmentRequestCreate",
    "AssignmentRequest",
    "RedirectRequestCreate",
    "RedirectRequest",
    "ApproveAction",
    "RejectAction",
]
