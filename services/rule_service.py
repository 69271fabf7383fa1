"""
Rule engine and rule CRUD.

Matching and application are pure functions; RuleService persists rules
in the recommendation_rules table.
"""

from datetime import datetime, timezone
from typing import Optional, Union

import structlog

from config import get_supabase_client
from exceptions import DatabaseError, RuleNotFoundError
from models.order import Order
from models.recommendation import RecommendationOption, SourceType
from models.rule import (
    CustomerCondition,
    OrderSizeCondition,
    ProductCondition,
    RegionCondition,
    Rule,
    RuleActionType,
    RuleContext,
    RuleCreate,
    RuleOperator,
    RuleUpdate,
    UrgencyCondition,
)
from services.fulfillment_store import rule_from_row

logger = structlog.get_logger(__name__)

DEFAULT_URGENCY = "normal"

# Action type -> source type whose options get the probability nudge
ACTION_TARGETS = {
    RuleActionType.PREFER_QUARRY: SourceType.QUARRY_WAREHOUSE,
    RuleActionType.PREFER_WAREHOUSE: SourceType.NEAR_WELL_WAREHOUSE,
}


# ===================
# MATCHING
# ===================

def build_context(order: Order) -> RuleContext:
    """Order facts used by rule conditions."""
    return RuleContext(
        order_tons=order.total_tons,
        urgency=order.urgency,
        customer_id=order.customer_id,
        delivery_location=order.delivery_location,
        product_ids=[line.product_id for line in order.products],
    )


def _as_list(value: Union[str, float, list]) -> list:
    return value if isinstance(value, list) else [value]


def _compare(actual: float, operator: RuleOperator, expected: Union[float, list[float]]) -> bool:
    if isinstance(expected, list):
        return False
    if operator == RuleOperator.GT:
        return actual > expected
    if operator == RuleOperator.GTE:
        return actual >= expected
    if operator == RuleOperator.LT:
        return actual < expected
    if operator == RuleOperator.LTE:
        return actual <= expected
    if operator == RuleOperator.EQ:
        return actual == expected
    return False


def matches(rule: Rule, context: RuleContext) -> bool:
    """
    Does the rule's condition hold for the order?

    A rule with no (or an unparseable) condition never matches.
    """
    condition = rule.condition
    if condition is None:
        return False

    if isinstance(condition, OrderSizeCondition):
        return _compare(context.order_tons, condition.operator, condition.value)

    if isinstance(condition, UrgencyCondition):
        urgency = (context.urgency or DEFAULT_URGENCY).strip().lower()
        return urgency in {str(v).strip().lower() for v in _as_list(condition.value)}

    if isinstance(condition, CustomerCondition):
        if not context.customer_id:
            return False
        return context.customer_id in {str(v).strip() for v in _as_list(condition.value)}

    if isinstance(condition, RegionCondition):
        location = (context.delivery_location or "").lower()
        if not location:
            return False
        return any(
            str(v).strip().lower() in location
            for v in _as_list(condition.value)
            if str(v).strip()
        )

    if isinstance(condition, ProductCondition):
        wanted = {str(v).strip() for v in _as_list(condition.value)}
        return any(product_id in wanted for product_id in context.product_ids)

    return False


def apply(rule: Rule, options: list[RecommendationOption], nudge: float = 0.05) -> None:
    """
    Apply a rule's action to options in place.

    prefer_quarry / prefer_warehouse raise the on-time probability of the
    matching source by `nudge`, capped at 1.0. Other actions are no-ops.
    """
    target = ACTION_TARGETS.get(rule.action.type)
    if target is None:
        return
    for option in options:
        if option.source_type == target:
            option.on_time_probability = min(1.0, round(option.on_time_probability + nudge, 4))


def apply_rules(
    rules: list[Rule],
    context: RuleContext,
    options: list[RecommendationOption],
    nudge: float = 0.05,
) -> list[Rule]:
    """
    Apply every active matching rule, cumulatively.

    Returns:
        The rules that matched
    """
    applied = []
    for rule in rules:
        if rule.active and matches(rule, context):
            apply(rule, options, nudge)
            applied.append(rule)
    if applied:
        logger.debug("rules_applied", rule_ids=[r.id for r in applied])
    return applied


# ===================
# CRUD
# ===================

class RuleService:
    """Persistence for recommendation rules."""

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "recommendation_rules"

    def list_rules(self, active_only: bool = False) -> list[Rule]:
        """Rules ordered by priority, then name."""
        logger.info("listing_rules", active_only=active_only)

        try:
            query = self.db.table(self.table).select("*")
            if active_only:
                query = query.eq("active", True)
            result = query.order("priority").execute()

            rules = [rule_from_row(row) for row in result.data or []]
            return sorted(rules, key=lambda r: (r.priority, r.name))

        except Exception as e:
            logger.error("list_rules_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def get_rule(self, rule_id: str) -> Rule:
        """
        Get a rule by id.

        Raises:
            RuleNotFoundError: If the rule doesn't exist
        """
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("id", rule_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("get_rule_failed", rule_id=rule_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise RuleNotFoundError(rule_id)
        return rule_from_row(result.data[0])

    def create_rule(self, data: RuleCreate) -> Rule:
        """Insert a rule."""
        logger.info("creating_rule", name=data.name)

        try:
            result = self.db.table(self.table).insert({
                "name": data.name,
                "condition": data.condition.model_dump(mode="json", by_alias=True),
                "action": data.action.model_dump(mode="json"),
                "priority": data.priority,
                "active": data.active,
                "created_by": data.created_by,
            }).execute()

            rule = rule_from_row(result.data[0])
            logger.info("rule_created", rule_id=rule.id)
            return rule

        except Exception as e:
            logger.error("create_rule_failed", error=str(e))
            raise DatabaseError("insert", str(e))

    def update_rule(self, rule_id: str, data: RuleUpdate) -> Rule:
        """
        Update provided fields of a rule.

        Raises:
            RuleNotFoundError: If the rule doesn't exist
        """
        self.get_rule(rule_id)

        update_data = {}
        if data.name is not None:
            update_data["name"] = data.name
        if data.condition is not None:
            update_data["condition"] = data.condition.model_dump(mode="json", by_alias=True)
        if data.action is not None:
            update_data["action"] = data.action.model_dump(mode="json")
        if data.priority is not None:
            update_data["priority"] = data.priority
        if data.active is not None:
            update_data["active"] = data.active

        if not update_data:
            return self.get_rule(rule_id)

        update_data["updated_at"] = datetime.now(timezone.utc).isoformat()
        logger.info("updating_rule", rule_id=rule_id, fields=sorted(update_data))

        try:
            result = (
                self.db.table(self.table)
                .update(update_data)
                .eq("id", rule_id)
                .execute()
            )
            return rule_from_row(result.data[0])

        except Exception as e:
            logger.error("update_rule_failed", rule_id=rule_id, error=str(e))
            raise DatabaseError("update", str(e))

    def delete_rule(self, rule_id: str) -> None:
        """
        Delete a rule.

        Raises:
            RuleNotFoundError: If the rule doesn't exist
        """
        self.get_rule(rule_id)

        try:
            self.db.table(self.table).delete().eq("id", rule_id).execute()
            logger.info("rule_deleted", rule_id=rule_id)

        except Exception as e:
            logger.error("delete_rule_failed", rule_id=rule_id, error=str(e))
            raise DatabaseError("delete", str(e))


# Singleton instance
_rule_service: Optional[RuleService] = None


def get_rule_service() -> RuleService:
    """Get or create RuleService instance."""
    global _rule_service
    if _rule_service is None:
        _rule_service = RuleService()
    return _rule_service
