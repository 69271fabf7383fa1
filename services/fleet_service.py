"""
Fleet feasibility: can the available trucks and drivers carry an order?

Pure functions over truck and driver lists. The verdict is a value, never
an exception; the recommendation builders turn it into an option reason,
the assignment executor turns it into a ConflictError.
"""

from enum import Enum
from typing import Optional

from pydantic import Field

from models.base import BaseSchema
from models.fleet import Driver, Truck, TruckStatus


class FeasibilityKind(str, Enum):
    """Outcome of a feasibility check."""
    FEASIBLE = "feasible"
    NO_TRUCK = "no_truck"
    NO_DRIVER = "no_driver"
    INSUFFICIENT_DRIVER_COUNT = "insufficient_driver_count"
    INSUFFICIENT_TOTAL_CAPACITY = "insufficient_total_capacity"


def format_tons(value: float) -> str:
    """Render tons for messages: 100.0 -> '100', 80.25 -> '80.2'."""
    return f"{round(float(value), 1):g}"


class FeasibilityVerdict(BaseSchema):
    """Result of check_feasibility with the numbers behind it."""

    kind: FeasibilityKind
    order_tons: float
    trucks: list[Truck] = Field(default_factory=list, description="Greedy truck set")
    total_capacity: float = 0
    drivers_needed: int = 0
    drivers_available: int = 0

    @property
    def feasible(self) -> bool:
        return self.kind == FeasibilityKind.FEASIBLE

    @property
    def reason(self) -> Optional[str]:
        """Human-readable reason, None when feasible."""
        if self.kind == FeasibilityKind.NO_DRIVER:
            return "No available drivers"
        if self.kind == FeasibilityKind.INSUFFICIENT_TOTAL_CAPACITY:
            return (
                f"Total truck capacity ({format_tons(self.total_capacity)} t) "
                f"insufficient for order ({format_tons(self.order_tons)} t)"
            )
        if self.kind == FeasibilityKind.NO_TRUCK:
            return "No available trucks"
        if self.kind == FeasibilityKind.INSUFFICIENT_DRIVER_COUNT:
            return (
                f"Need {self.drivers_needed} drivers for {self.drivers_needed} trucks; "
                f"only {self.drivers_available} available"
            )
        return None


def available_trucks(trucks: list[Truck]) -> list[Truck]:
    return [t for t in trucks if t.status == TruckStatus.AVAILABLE]


def available_drivers(drivers: list[Driver]) -> list[Driver]:
    """Available drivers, most remaining hours first."""
    ready = [d for d in drivers if d.available]
    return sorted(ready, key=lambda d: d.hours_limit - d.hours_worked, reverse=True)


def select_trucks(order_tons: float, trucks: list[Truck]) -> list[Truck]:
    """
    Greedy largest-first truck selection.

    Takes trucks by capacity descending until the running capacity covers
    the order. At least one truck is taken whenever any exist; if the whole
    list is not enough, all of it is returned.

    Example:
        100 t with capacities [60, 20, 50] -> [60, 50]
    """
    selected: list[Truck] = []
    total = 0.0
    for truck in sorted(trucks, key=lambda t: t.capacity, reverse=True):
        if selected and total >= order_tons:
            break
        selected.append(truck)
        total += truck.capacity
    return selected


def check_feasibility(
    order_tons: float,
    trucks: list[Truck],
    drivers: list[Driver],
) -> FeasibilityVerdict:
    """
    Check whether available trucks and drivers can carry `order_tons`.

    Only trucks with status `available` and drivers flagged available are
    considered. Precedence: no driver, capacity shortfall, no truck,
    driver count, feasible.
    """
    fleet = available_trucks(trucks)
    crew = available_drivers(drivers)
    selected = select_trucks(order_tons, fleet)
    total = sum(t.capacity for t in selected)

    if not crew:
        kind = FeasibilityKind.NO_DRIVER
    elif selected and total < order_tons:
        kind = FeasibilityKind.INSUFFICIENT_TOTAL_CAPACITY
    elif not selected:
        kind = FeasibilityKind.NO_TRUCK
    elif len(crew) < len(selected):
        kind = FeasibilityKind.INSUFFICIENT_DRIVER_COUNT
    else:
        kind = FeasibilityKind.FEASIBLE

    return FeasibilityVerdict(
        kind=kind,
        order_tons=order_tons,
        trucks=selected,
        total_capacity=total,
        drivers_needed=len(selected),
        drivers_available=len(crew),
    )


def pair_drivers(trucks: list[Truck], drivers: list[Driver]) -> list[tuple[Truck, Driver]]:
    """Pair each truck with an available driver, most remaining hours first."""
    return list(zip(trucks, available_drivers(drivers)))
