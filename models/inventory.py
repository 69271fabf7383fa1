"""
Inventory schemas.

Stock is tracked as one balance row per (site, product); in-transit stock
has no balance row.
"""

from enum import Enum
from typing import Optional

from pydantic import Field

from models.base import BaseSchema


class SiteStockStatus(str, Enum):
    """Stock level against the site's suggested band."""
    OK = "OK"
    LOW = "Low"
    CRITICAL = "Critical"


class InventoryBalance(BaseSchema):
    """Aggregate stock of one product at one site."""

    site_id: str = Field(..., description="Site (quarry or near_well)")
    product_id: str = Field(..., description="Product UUID")
    quantity: float = Field(default=0, description="Stock in tons")


class SiteInventory(BaseSchema):
    """Stock, reservations and availability for one (site, product)."""

    site_id: str
    site_name: str
    product_id: str
    quantity: float = Field(..., description="Stock in tons (1 decimal)")
    reserved: float = Field(..., description="Tons reserved by open orders")
    available: float = Field(..., description="max(0, stock - reserved), 1 decimal")
    min_suggested: float
    max_suggested: float
    status: SiteStockStatus


class SiteInventoryListResponse(BaseSchema):
    """Site inventory overview."""

    data: list[SiteInventory]
    total: int
    critical_count: int = 0
    low_count: int = 0
    site_id: Optional[str] = None
