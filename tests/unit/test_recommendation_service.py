"""
Unit tests for RecommendationService.

Run: pytest tests/unit/test_recommendation_service.py -v
"""

import pytest

from exceptions import OrderNotFoundError, TruckNotBrokenDownError
from models.recommendation import SourceType
from services.recommendation_service import (
    RecommendationService,
    production_eta_minutes,
    warehouse_shortfall,
)
from services.fleet_service import FeasibilityKind, FeasibilityVerdict, check_feasibility
from tests.factories import (
    DriverFactory,
    OrderFactory,
    RuleFactory,
    TruckFactory,
    balance,
)


def seed_order(mock_supabase, status: str = "pending", tons: float = 100, order_id: str = "o1") -> dict:
    order = OrderFactory.create(id=order_id, order_number="ORD-2025-0001", status=status)
    mock_supabase.add_rows("orders", order)
    mock_supabase.add_rows("order_items", OrderFactory.item(order_id, quantity=tons))
    return order


def seed_fleet(mock_supabase, with_redirect: bool = True, drivers: int = 2) -> None:
    """Trucks 60/50/20 available, optionally a 120 t truck in transit for another order."""
    trucks = [
        TruckFactory.create(id="t60", capacity=60, license_plate="AA060AA"),
        TruckFactory.create(id="t50", capacity=50, license_plate="AA050AA"),
        TruckFactory.create(id="t20", capacity=20, license_plate="AA020AA"),
    ]
    if with_redirect:
        other = OrderFactory.create(id="o-other", order_number="ORD-2025-0099", status="dispatched")
        mock_supabase.add_rows("orders", other)
        trucks.append(TruckFactory.create(
            id="t120", capacity=120, license_plate="AA120AA",
            status="in_transit", assigned_order_id="o-other",
        ))
    mock_supabase.set_table_data("trucks", trucks)
    mock_supabase.set_table_data("drivers", DriverFactory.create_batch(drivers))


def seed_inventory(mock_supabase, near_well: float = 500, quarry: float = 500) -> None:
    mock_supabase.set_table_data("inventory_balance", [
        balance("near_well", near_well),
        balance("quarry", quarry),
    ])


@pytest.fixture
def service(store):
    return RecommendationService(store)


class TestWarehouseShortfall:
    """Tests for warehouse_shortfall()"""

    def test_fleet_problem_wins_over_inventory(self):
        """Should report the fleet reason even when stock is also short."""
        verdict = check_feasibility(100, [], [])

        assert warehouse_shortfall(verdict, 0, 100, "Quarry warehouse") == "No available drivers"

    def test_no_inventory(self):
        """Should name the site when it has no stock."""
        verdict = FeasibilityVerdict(kind=FeasibilityKind.FEASIBLE, order_tons=10)

        assert warehouse_shortfall(verdict, 0, 10, "On-Site warehouse") == "No inventory at On-Site warehouse"


def test_production_eta_minutes():
    """Should round production time up to whole minutes."""
    assert production_eta_minutes(100, 150) == 40
    assert production_eta_minutes(101, 150) == 41


class TestOrderRecommendations:
    """Tests for get_order_recommendations()"""

    def test_pending_order_gets_four_ranked_options(self, service, mock_supabase):
        """Should rank near-well, redirect, quarry, produce."""
        seed_order(mock_supabase)
        seed_fleet(mock_supabase)
        seed_inventory(mock_supabase)

        result = service.get_order_recommendations("o1")

        assert result.order_tons == 100
        assert [o.id for o in result.options] == ["near_well", "redirect-t120", "quarry", "produce"]
        assert [o.rank for o in result.options] == [1, 2, 3, 4]
        assert all(o.can_fulfill for o in result.options)

    def test_ready_order_has_no_produce_option(self, service, mock_supabase):
        """Should leave out PRODUCE for a ready order."""
        seed_order(mock_supabase, status="ready")
        seed_fleet(mock_supabase)
        seed_inventory(mock_supabase)

        result = service.get_order_recommendations("o1")

        assert len(result.options) == 3
        assert SourceType.PRODUCE not in {o.source_type for o in result.options}

    def test_insufficient_inventory_reason(self, service, mock_supabase):
        """Should block near-well with 80 t on hand for a 100 t order."""
        seed_order(mock_supabase)
        seed_fleet(mock_supabase)
        seed_inventory(mock_supabase, near_well=80)

        result = service.get_order_recommendations("o1")

        near = next(o for o in result.options if o.id == "near_well")
        assert not near.can_fulfill
        assert near.cannot_fulfill_reason == "Insufficient inventory (80 t; order needs 100 t)"
        assert near.inventory_available == 80
        assert [o.id for o in result.options] == ["redirect-t120", "quarry", "near_well", "produce"]

    def test_warehouse_lists_greedy_trucks(self, service, mock_supabase):
        """Should send the 60 t and 50 t trucks for 100 t."""
        seed_order(mock_supabase)
        seed_fleet(mock_supabase)
        seed_inventory(mock_supabase)

        result = service.get_order_recommendations("o1")

        quarry = next(o for o in result.options if o.id == "quarry")
        assert quarry.trucks_available == ["AA060AA", "AA050AA"]
        assert quarry.eta_minutes == 210

    def test_no_drivers(self, service, mock_supabase):
        """Should block both warehouses without drivers."""
        seed_order(mock_supabase)
        seed_fleet(mock_supabase, drivers=0)
        seed_inventory(mock_supabase)

        result = service.get_order_recommendations("o1")

        for option in result.options:
            if option.source_type in (SourceType.NEAR_WELL_WAREHOUSE, SourceType.QUARRY_WAREHOUSE):
                assert option.cannot_fulfill_reason == "No available drivers"

    def test_redirect_option_fields(self, service, mock_supabase):
        """Should describe the truck and the order it leaves."""
        seed_order(mock_supabase)
        seed_fleet(mock_supabase)
        seed_inventory(mock_supabase)

        result = service.get_order_recommendations("o1")

        redirect = next(o for o in result.options if o.is_redirect)
        assert redirect.truck_id == "t120"
        assert redirect.source_id == "t120"
        assert redirect.from_order_id == "o-other"
        assert redirect.from_order_number == "ORD-2025-0099"
        assert redirect.impact_on_original_order == "Order ORD-2025-0099 delayed; substitute needed"
        assert redirect.on_time_probability == 0.78

    def test_redirect_picks_tightest_fit(self, service, mock_supabase):
        """Should prefer the smallest in-transit truck that still fits."""
        seed_order(mock_supabase)
        seed_fleet(mock_supabase)
        seed_inventory(mock_supabase)
        mock_supabase.add_rows("trucks", TruckFactory.create(
            id="t100", capacity=100, status="assigned", assigned_order_id="o-other",
        ))

        result = service.get_order_recommendations("o1")

        redirect = next(o for o in result.options if o.is_redirect)
        assert redirect.truck_id == "t100"

    def test_redirect_placeholder(self, service, mock_supabase):
        """Should add a non-fulfillable placeholder when nothing can be redirected."""
        seed_order(mock_supabase)
        seed_fleet(mock_supabase, with_redirect=False)
        seed_inventory(mock_supabase)

        result = service.get_order_recommendations("o1")

        placeholder = next(o for o in result.options if o.is_redirect)
        assert placeholder.id == "redirect-unavailable"
        assert placeholder.redirect_unavailable
        assert not placeholder.can_fulfill
        assert placeholder.cannot_fulfill_reason == "No truck in transit with enough capacity to redirect"
        assert [o.id for o in result.options] == ["near_well", "quarry", "redirect-unavailable", "produce"]

    def test_truck_bound_to_same_order_is_not_redirected(self, service, mock_supabase):
        """Should not offer a truck already serving this order."""
        seed_order(mock_supabase)
        seed_fleet(mock_supabase, with_redirect=False)
        seed_inventory(mock_supabase)
        mock_supabase.add_rows("trucks", TruckFactory.create(
            id="mine", capacity=120, status="in_transit", assigned_order_id="o1",
        ))

        result = service.get_order_recommendations("o1")

        assert "redirect-mine" not in [o.id for o in result.options]

    def test_prefer_quarry_rule(self, service, mock_supabase):
        """Should nudge the quarry probability from 0.85 to 0.9."""
        seed_order(mock_supabase)
        seed_fleet(mock_supabase)
        seed_inventory(mock_supabase)
        mock_supabase.set_table_data("recommendation_rules", [
            RuleFactory.create(condition={"field": "order_size", "op": "gte", "value": 50}),
        ])

        result = service.get_order_recommendations("o1")

        quarry = next(o for o in result.options if o.id == "quarry")
        assert quarry.on_time_probability == 0.9

    def test_produce_eta(self, service, mock_supabase):
        """Should take 40 minutes to produce 100 t at 150 t/h."""
        seed_order(mock_supabase)
        seed_fleet(mock_supabase)
        seed_inventory(mock_supabase)

        result = service.get_order_recommendations("o1")

        produce = result.options[-1]
        assert produce.source_type == SourceType.PRODUCE
        assert produce.eta_minutes == 40
        assert produce.source_id == "production"

    def test_other_open_orders_reserve_stock(self, service, mock_supabase):
        """Should subtract other open orders from site stock."""
        seed_order(mock_supabase)
        other = OrderFactory.create(id="o2", status="confirmed")
        mock_supabase.add_rows("orders", other)
        mock_supabase.add_rows("order_items", OrderFactory.item("o2", quantity=50))
        seed_fleet(mock_supabase)
        seed_inventory(mock_supabase, near_well=120)

        result = service.get_order_recommendations("o1")

        near = next(o for o in result.options if o.id == "near_well")
        assert near.inventory_available == 70
        assert near.cannot_fulfill_reason == "Insufficient inventory (70 t; order needs 100 t)"

    def test_unknown_order(self, service):
        """Should raise OrderNotFoundError."""
        with pytest.raises(OrderNotFoundError):
            service.get_order_recommendations("missing")


class TestBreakdownRecommendations:
    """Tests for get_breakdown_recommendations() and list_breakdowns()"""

    @pytest.fixture
    def broken_setup(self, mock_supabase):
        seed_order(mock_supabase)
        other = OrderFactory.create(id="o-other", order_number="ORD-2025-0099", status="dispatched")
        mock_supabase.add_rows("orders", other)
        mock_supabase.set_table_data("trucks", [
            TruckFactory.create(id="bk", capacity=30, status="broken_down", assigned_order_id="o1"),
            TruckFactory.create(id="t40", capacity=40, license_plate="AA040AA"),
            TruckFactory.create(id="t60", capacity=60, license_plate="AA060AA"),
            TruckFactory.create(id="t120", capacity=120, status="in_transit", assigned_order_id="o-other"),
        ])
        mock_supabase.set_table_data("drivers", DriverFactory.create_batch(2))
        seed_inventory(mock_supabase)

    def test_sized_to_broken_truck_and_sorted_by_probability(self, service, broken_setup):
        """Should replace 30 t and sort near, replacement, quarry, redirect."""
        result = service.get_breakdown_recommendations("bk")

        assert result.order_id == "o1"
        assert result.order_tons == 30
        assert [o.source_type for o in result.options] == [
            SourceType.NEAR_WELL_WAREHOUSE,
            SourceType.TRUCK_IN_TRANSIT,
            SourceType.QUARRY_WAREHOUSE,
            SourceType.TRUCK_IN_TRANSIT,
        ]
        assert [o.on_time_probability for o in result.options] == [0.92, 0.88, 0.85, 0.78]
        assert [o.rank for o in result.options] == [1, 2, 3, 4]

    def test_replacement_is_smallest_fitting_truck(self, service, broken_setup):
        """Should pick the 40 t truck for a 30 t load."""
        result = service.get_breakdown_recommendations("bk")

        replacement = result.options[1]
        assert replacement.id == "replacement-t40"
        assert replacement.can_fulfill

    def test_broken_truck_is_never_offered(self, service, broken_setup):
        """Should leave the broken truck out of every option."""
        result = service.get_breakdown_recommendations("bk")

        for option in result.options:
            assert option.truck_id != "bk"
            assert "bk" not in option.trucks_available

    def test_truck_not_broken(self, service, broken_setup):
        """Should refuse a healthy truck."""
        with pytest.raises(TruckNotBrokenDownError):
            service.get_breakdown_recommendations("t40")

    def test_list_breakdowns(self, service, broken_setup):
        """Should list broken trucks with their order."""
        summaries = service.list_breakdowns()

        assert len(summaries) == 1
        assert summaries[0].truck_id == "bk"
        assert summaries[0].order_number == "ORD-2025-0001"
