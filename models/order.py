"""
Order schemas.

Orders are owned by the CRUD layer; the fulfillment engine only reads them
and moves their status.
"""

from enum import Enum
from typing import Optional

from pydantic import Field

from models.base import BaseSchema


class OrderStatus(str, Enum):
    """Order lifecycle, in order."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PRODUCTION = "in_production"
    QC = "qc"
    READY = "ready"
    DISPATCHED = "dispatched"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    INVOICED = "invoiced"


# Orders in these states reserve stock against every site
OPEN_ORDER_STATUSES = (
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.READY,
)


class OrderLine(BaseSchema):
    """One product on an order."""

    product_id: str = Field(..., description="Product UUID")
    product_name: Optional[str] = Field(None, description="Product name")
    quantity: float = Field(..., ge=0, description="Quantity in tons")
    unit_price: float = Field(default=0, ge=0, description="Price per ton")


class Order(BaseSchema):
    """Order as seen by the fulfillment engine."""

    id: str = Field(..., description="Order UUID")
    order_number: Optional[str] = Field(None, description="Human order number (ORD-YYYY-NNNN)")
    customer_id: Optional[str] = Field(None, description="Customer UUID")
    customer_name: Optional[str] = Field(None, description="Customer name")
    status: OrderStatus = Field(..., description="Current status")
    products: list[OrderLine] = Field(default_factory=list, description="Product lines")
    delivery_location: Optional[str] = Field(None, description="Delivery location / well name")
    urgency: Optional[str] = Field(None, description="Urgency (normal, high, critical...)")

    @property
    def total_tons(self) -> float:
        """Sum of product quantities."""
        return sum(line.quantity for line in self.products)

    @property
    def primary_product_id(self) -> Optional[str]:
        """Product the order is checked against for site inventory."""
        return self.products[0].product_id if self.products else None

    @property
    def label(self) -> str:
        return self.order_number or self.id
