"""
Assignment executor payloads and results.
"""

from typing import Optional

from pydantic import Field

from models.base import BaseSchema
from models.fleet import Delivery, TruckStatus
from models.order import OrderStatus
from models.recommendation import SourceType


class AssignPayload(BaseSchema):
    """
    Execute a chosen fulfillment source.

    Required: order_id, source_type, source_id
    Redirects also carry truck_id and from_order_id.
    """

    order_id: str = Field(..., description="Order to fulfill")
    source_type: SourceType
    source_id: str = Field(..., description="Site id or truck id")
    truck_id: Optional[str] = Field(None, description="Truck to bind (redirect / replacement)")
    from_order_id: Optional[str] = Field(None, description="Order the truck is taken from")


class BreakdownReplacementPayload(BaseSchema):
    """Replacement chosen for a broken-down truck."""

    source_type: SourceType
    source_id: str
    truck_id: Optional[str] = None
    from_order_id: Optional[str] = None


class AssignmentResult(BaseSchema):
    """What an execution wrote."""

    order_id: str
    source_type: SourceType
    deliveries: list[Delivery] = Field(default_factory=list)
    truck_ids: list[str] = Field(default_factory=list)
    order_status: OrderStatus
    certificate_id: Optional[str] = Field(None, description="Certificate re-linked to the first truck")


class BreakdownSummary(BaseSchema):
    """A broken-down or stuck truck still bound to an order."""

    truck_id: str
    truck_label: str
    status: TruckStatus
    order_id: str
    order_number: Optional[str] = None
