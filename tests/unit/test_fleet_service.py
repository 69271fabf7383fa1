"""
Unit tests for fleet feasibility.

Run: pytest tests/unit/test_fleet_service.py -v
"""

import pytest

from models.fleet import Driver, Truck, TruckStatus
from services.fleet_service import (
    FeasibilityKind,
    check_feasibility,
    format_tons,
    pair_drivers,
    select_trucks,
)


def make_truck(truck_id: str, capacity: float, status: TruckStatus = TruckStatus.AVAILABLE) -> Truck:
    return Truck(id=truck_id, license_plate=truck_id.upper(), capacity=capacity, status=status)


def make_driver(driver_id: str, available: bool = True, hours_worked: float = 0) -> Driver:
    return Driver(id=driver_id, name=driver_id, hours_worked=hours_worked, hours_limit=48, available=available)


class TestSelectTrucks:
    """Tests for select_trucks() greedy selection"""

    def test_largest_first_until_covered(self):
        """Should pick [60, 50] for 100 t out of [60, 50, 20]."""
        trucks = [make_truck("t20", 20), make_truck("t60", 60), make_truck("t50", 50)]

        selected = select_trucks(100, trucks)

        assert [t.capacity for t in selected] == [60, 50]

    def test_single_truck_when_it_covers(self):
        """Should stop after the first truck when it is enough."""
        trucks = [make_truck("t60", 60), make_truck("t50", 50)]

        selected = select_trucks(60, trucks)

        assert [t.id for t in selected] == ["t60"]

    def test_returns_all_when_not_enough(self):
        """Should return every truck when total capacity falls short."""
        trucks = [make_truck("t60", 60), make_truck("t50", 50)]

        selected = select_trucks(200, trucks)

        assert len(selected) == 2

    def test_takes_one_truck_for_zero_tons(self):
        """Should still take one truck for an empty order."""
        trucks = [make_truck("t30", 30)]

        assert len(select_trucks(0, trucks)) == 1

    def test_empty_fleet(self):
        """Should return empty list without trucks."""
        assert select_trucks(100, []) == []


class TestCheckFeasibility:
    """Tests for check_feasibility()"""

    def test_feasible_with_enough_drivers(self):
        """Should be feasible: 100 t, [60, 50, 20], 2 drivers."""
        trucks = [make_truck("t60", 60), make_truck("t50", 50), make_truck("t20", 20)]
        drivers = [make_driver("d1"), make_driver("d2")]

        verdict = check_feasibility(100, trucks, drivers)

        assert verdict.feasible
        assert verdict.kind == FeasibilityKind.FEASIBLE
        assert verdict.total_capacity == 110
        assert verdict.drivers_needed == 2
        assert verdict.reason is None

    def test_insufficient_driver_count(self):
        """Should need 2 drivers for the 2 selected trucks."""
        trucks = [make_truck("t60", 60), make_truck("t50", 50), make_truck("t20", 20)]
        drivers = [make_driver("d1"), make_driver("d2", available=False)]

        verdict = check_feasibility(100, trucks, drivers)

        assert verdict.kind == FeasibilityKind.INSUFFICIENT_DRIVER_COUNT
        assert verdict.reason == "Need 2 drivers for 2 trucks; only 1 available"

    def test_insufficient_total_capacity(self):
        """Should report the capacity shortfall with both figures."""
        trucks = [make_truck("t60", 60), make_truck("t20", 20)]
        drivers = [make_driver("d1"), make_driver("d2")]

        verdict = check_feasibility(100, trucks, drivers)

        assert verdict.kind == FeasibilityKind.INSUFFICIENT_TOTAL_CAPACITY
        assert verdict.reason == "Total truck capacity (80 t) insufficient for order (100 t)"

    def test_no_truck(self):
        """Should report no trucks when none is available."""
        trucks = [make_truck("t60", 60, status=TruckStatus.IN_TRANSIT)]
        drivers = [make_driver("d1")]

        verdict = check_feasibility(50, trucks, drivers)

        assert verdict.kind == FeasibilityKind.NO_TRUCK
        assert verdict.reason == "No available trucks"

    def test_no_driver_takes_precedence(self):
        """Should report missing drivers before anything else."""
        verdict = check_feasibility(500, [make_truck("t20", 20)], [make_driver("d1", available=False)])

        assert verdict.kind == FeasibilityKind.NO_DRIVER
        assert verdict.reason == "No available drivers"

    def test_ignores_unavailable_trucks(self):
        """Should leave out trucks in maintenance or already assigned."""
        trucks = [
            make_truck("big", 100, status=TruckStatus.MAINTENANCE),
            make_truck("busy", 100, status=TruckStatus.ASSIGNED),
            make_truck("t40", 40),
        ]

        verdict = check_feasibility(40, trucks, [make_driver("d1")])

        assert verdict.feasible
        assert [t.id for t in verdict.trucks] == ["t40"]


class TestPairDrivers:
    """Tests for pair_drivers()"""

    def test_most_remaining_hours_first(self):
        """Should give the first truck the driver with most hours left."""
        trucks = [make_truck("t60", 60), make_truck("t50", 50)]
        drivers = [make_driver("tired", hours_worked=40), make_driver("fresh", hours_worked=2)]

        pairs = pair_drivers(trucks, drivers)

        assert [(t.id, d.id) for t, d in pairs] == [("t60", "fresh"), ("t50", "tired")]


@pytest.mark.parametrize("value,expected", [
    (100, "100"),
    (100.0, "100"),
    (80.25, "80.2"),
    (0, "0"),
    (1234.56, "1234.6"),
])
def test_format_tons(value, expected):
    """Should drop trailing zeros and keep one decimal."""
    assert format_tons(value) == expected
