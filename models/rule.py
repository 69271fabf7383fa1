"""
Recommendation rule schemas.

A rule is a condition on the order (field x operator x value) and an action
that nudges option scores. Conditions are a tagged union on `field`; rows
whose condition does not parse load with `condition=None` and never match.

Stored shape (recommendation_rules.condition / .action, jsonb):
    {"field": "order_size", "op": "gte", "value": 200}
    {"type": "prefer_quarry", "value": null}
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import ConfigDict, Field

from models.base import BaseSchema


class RuleConditionField(str, Enum):
    """Order attributes a rule can test."""
    ORDER_SIZE = "order_size"
    URGENCY = "urgency"
    CUSTOMER = "customer"
    REGION = "region"
    PRODUCT = "product"


class RuleOperator(str, Enum):
    """Comparison operators."""
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    EQ = "eq"
    IN = "in"


class RuleActionType(str, Enum):
    """What a matching rule does to the option set."""
    PREFER_QUARRY = "prefer_quarry"
    PREFER_WAREHOUSE = "prefer_warehouse"
    ALLOW_REDIRECT = "allow_redirect"
    MAX_DELAY_MIN = "max_delay_min"
    USE_SAFETY_STOCK_IF_URGENT = "use_safety_stock_if_urgent"
    OPTIMIZATION = "optimization"


# ===================
# CONDITIONS
# ===================

class _Condition(BaseSchema):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    operator: RuleOperator = Field(RuleOperator.EQ, alias="op", description="Comparison operator")


class OrderSizeCondition(_Condition):
    """Compare order tons against a number."""

    field: Literal["order_size"] = "order_size"
    value: Union[float, list[float]] = Field(..., description="Threshold in tons")


class UrgencyCondition(_Condition):
    """Order urgency equals / is one of."""

    field: Literal["urgency"] = "urgency"
    value: Union[str, list[str]]


class CustomerCondition(_Condition):
    """Order customer equals / is one of."""

    field: Literal["customer"] = "customer"
    value: Union[str, list[str]]


class RegionCondition(_Condition):
    """Delivery location contains the value (or any listed value)."""

    field: Literal["region"] = "region"
    value: Union[str, list[str]]


class ProductCondition(_Condition):
    """Order carries the product (or any listed product)."""

    field: Literal["product"] = "product"
    value: Union[str, list[str]]


RuleCondition = Annotated[
    Union[
        OrderSizeCondition,
        UrgencyCondition,
        CustomerCondition,
        RegionCondition,
        ProductCondition,
    ],
    Field(discriminator="field"),
]


class RuleAction(BaseSchema):
    """Rule action with optional parameter (e.g. minutes for max_delay_min)."""

    type: RuleActionType
    value: Optional[Union[float, str]] = None


# ===================
# RULE SCHEMAS
# ===================

class RuleCreate(BaseSchema):
    """Create a recommendation rule."""

    name: str = Field(..., min_length=1, max_length=200)
    condition: RuleCondition
    action: RuleAction
    priority: int = Field(default=0, ge=0, description="Display order (lower first)")
    active: bool = True
    created_by: Optional[str] = Field(None, description="User UUID")


class RuleUpdate(BaseSchema):
    """
    Update a rule.

    All fields optional - only provided fields are updated.
    """

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    condition: Optional[RuleCondition] = None
    action: Optional[RuleAction] = None
    priority: Optional[int] = Field(None, ge=0)
    active: Optional[bool] = None


class Rule(BaseSchema):
    """Rule as loaded from the database."""

    id: str
    name: str
    condition: Optional[RuleCondition] = None
    action: RuleAction
    priority: int = 0
    active: bool = True
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None


class RuleListResponse(BaseSchema):
    """List of rules."""

    data: list[Rule]
    total: int


class RuleContext(BaseSchema):
    """Order facts a rule condition is evaluated against."""

    order_tons: float
    urgency: Optional[str] = None
    customer_id: Optional[str] = None
    delivery_location: Optional[str] = None
    product_ids: list[str] = Field(default_factory=list)
