"""
Business logic services.

Each service handles one domain area.
"""

from services.fulfillment_store import FulfillmentStore, get_fulfillment_store
from services.lock_service import AggregateLocks, get_aggregate_locks
from services.fleet_service import (
    FeasibilityKind,
    FeasibilityVerdict,
    check_feasibility,
    select_trucks,
)
from services.inventory_service import InventoryService, get_inventory_service
from services.rule_service import (
    RuleService,
    get_rule_service,
    matches,
    apply_rules,
)
from services.recommendation_service import RecommendationService, get_recommendation_service
from services.assignment_service import AssignmentService, get_assignment_service
from services.approval_service import ApprovalService, get_approval_service

__all__ = [
    "FulfillmentStore",
    "get_fulfillment_store",
    "AggregateLocks",
    "get_aggregate_locks",
    "FeasibilityKind",
    "FeasibilityVerdict",
    "check_feasibility",
    "select_trucks",
    "InventoryService",
    "get_inventory_service",
    "RuleService",
    "get_rule_service",
    "matches",
    "apply_rules",
    "RecommendationService",
    "get_recommendation_service",
    "AssignmentService",
    "get_assignment_service",
    "ApprovalService",
    "get_approval_service",
]
