"""
Recommendation schemas.

Options are computed per request and never persisted.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from models.base import BaseSchema


class SourceType(str, Enum):
    """Ways an order's sand can be supplied."""
    QUARRY_WAREHOUSE = "QUARRY_WAREHOUSE"
    NEAR_WELL_WAREHOUSE = "NEAR_WELL_WAREHOUSE"
    TRUCK_IN_TRANSIT = "TRUCK_IN_TRANSIT"
    PRODUCE = "PRODUCE"


WAREHOUSE_SOURCES = (SourceType.QUARRY_WAREHOUSE, SourceType.NEAR_WELL_WAREHOUSE)


class RecommendationOption(BaseSchema):
    """One candidate fulfillment source for an order."""

    id: str = Field(..., description="Stable option key within one response")
    rank: int = Field(default=0, description="1-based position after sorting")
    source_type: SourceType
    source_id: str = Field(..., description="Site id, truck id or 'production'")
    source_label: Optional[str] = None

    # Truck binding
    truck_id: Optional[str] = None
    truck_label: Optional[str] = None
    trucks_available: list[str] = Field(default_factory=list, description="Labels of the trucks that would go")

    # Scoring inputs
    eta: Optional[datetime] = None
    eta_minutes: Optional[int] = None
    distance_km: Optional[float] = None
    estimated_cost: float = 0
    on_time_probability: float = Field(default=0, ge=0, le=1)
    inventory_available: Optional[float] = Field(None, description="Tons available at the site; None = N/A")

    # Verdict
    can_fulfill: bool = False
    cannot_fulfill_reason: Optional[str] = None
    reason_text: Optional[str] = None

    # Redirect
    is_redirect: bool = False
    from_order_id: Optional[str] = None
    from_order_number: Optional[str] = None
    impact_on_original_order: Optional[str] = None
    redirect_unavailable: bool = False


class RecommendationList(BaseSchema):
    """Ranked options for one order."""

    order_id: str
    order_number: Optional[str] = None
    order_tons: float
    options: list[RecommendationOption]
