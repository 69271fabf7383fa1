"""
Fleet schemas: trucks, drivers, deliveries and QC certificates.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from models.base import BaseSchema


class TruckStatus(str, Enum):
    """Truck status values."""
    AVAILABLE = "available"
    ASSIGNED = "assigned"
    IN_TRANSIT = "in_transit"
    LOADING = "loading"
    DELIVERING = "delivering"
    RETURNING = "returning"
    MAINTENANCE = "maintenance"
    BROKEN_DOWN = "broken_down"
    STUCK = "stuck"


# Trucks that may be redirected away from their current order
REDIRECTABLE_TRUCK_STATUSES = (TruckStatus.IN_TRANSIT, TruckStatus.ASSIGNED)

# Trucks that need a breakdown replacement
BROKEN_TRUCK_STATUSES = (TruckStatus.BROKEN_DOWN, TruckStatus.STUCK)

# Trucks that cannot take any new work
UNUSABLE_TRUCK_STATUSES = (
    TruckStatus.MAINTENANCE,
    TruckStatus.BROKEN_DOWN,
    TruckStatus.STUCK,
)


class DeliveryStatus(str, Enum):
    """Delivery status values."""
    ASSIGNED = "assigned"
    IN_TRANSIT = "in_transit"
    ARRIVED = "arrived"
    DELIVERING = "delivering"
    DELIVERED = "delivered"


class Truck(BaseSchema):
    """Truck in the fleet."""

    id: str = Field(..., description="Truck UUID")
    license_plate: Optional[str] = Field(None, description="License plate")
    capacity: float = Field(..., ge=0, description="Capacity in tons")
    status: TruckStatus = Field(..., description="Current status")
    assigned_order_id: Optional[str] = Field(None, description="Order the truck is serving")
    driver_id: Optional[str] = Field(None, description="Driver currently on the truck")

    @property
    def label(self) -> str:
        return self.license_plate or self.id


class Driver(BaseSchema):
    """Driver (read-only input to the engine)."""

    id: str = Field(..., description="Driver UUID")
    name: Optional[str] = Field(None, description="Driver name")
    hours_worked: float = Field(default=0, ge=0, description="Hours worked this period")
    hours_limit: float = Field(default=0, ge=0, description="Hours limit this period")
    available: bool = Field(default=True, description="Driver can take a truck")


class TruckUpdate(BaseSchema):
    """Fields the engine writes on a truck."""

    status: TruckStatus
    assigned_order_id: Optional[str] = None
    driver_id: Optional[str] = None


class DeliveryCreate(BaseSchema):
    """New delivery binding a truck and driver to an order."""

    order_id: str
    truck_id: str
    driver_id: Optional[str] = None
    status: DeliveryStatus = DeliveryStatus.ASSIGNED
    eta: datetime
    quantity: Optional[float] = Field(None, ge=0, description="Tons loaded on this truck")


class Delivery(BaseSchema):
    """Delivery row."""

    id: str
    order_id: str
    truck_id: str
    driver_id: Optional[str] = None
    status: DeliveryStatus
    eta: Optional[datetime] = None
    quantity: Optional[float] = None


class PassedCertificate(BaseSchema):
    """A passed QC test that carries a certificate."""

    id: str = Field(..., description="QC test UUID")
    certificate_id: str = Field(..., description="Certificate UUID")
    truck_id: Optional[str] = Field(None, description="Truck the certificate travels with")
