"""
Recommendation service - ranked fulfillment options for an order.

Builds one option per fulfillment source (near-well warehouse, quarry
warehouse, redirect of an in-transit truck, production), applies the
active rules and ranks them. Feasibility problems never raise here; they
become options with can_fulfill=False and a reason.

Breakdown recommendations follow the same shape for an order whose truck
broke down or got stuck, sized to the load that truck was carrying.
"""

import math
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog

from config.fulfillment import (
    SITE_NEAR_WELL,
    SITE_QUARRY,
    FulfillmentConstants,
    SourceProfile,
)
from exceptions import TruckNotBrokenDownError
from models.assignment import BreakdownSummary
from models.fleet import (
    BROKEN_TRUCK_STATUSES,
    REDIRECTABLE_TRUCK_STATUSES,
    Driver,
    Truck,
)
from models.order import Order, OrderStatus
from models.recommendation import (
    RecommendationList,
    RecommendationOption,
    SourceType,
)
from services.fleet_service import (
    FeasibilityVerdict,
    available_drivers,
    available_trucks,
    check_feasibility,
    format_tons,
)
from services.fulfillment_store import FulfillmentStore, get_fulfillment_store
from services.inventory_service import InventoryService
from services.rule_service import apply_rules, build_context

logger = structlog.get_logger(__name__)

PRODUCTION_SOURCE_ID = "production"


def warehouse_shortfall(
    verdict: FeasibilityVerdict,
    inventory_available: float,
    order_tons: float,
    site_label: str,
) -> Optional[str]:
    """
    Why a warehouse cannot fulfill, or None if it can.

    Fleet problems take precedence over inventory problems.
    """
    if not verdict.feasible:
        return verdict.reason
    if inventory_available <= 0:
        return f"No inventory at {site_label}"
    if inventory_available < order_tons:
        return (
            f"Insufficient inventory ({format_tons(inventory_available)} t; "
            f"order needs {format_tons(order_tons)} t)"
        )
    return None


def score_option(
    option: RecommendationOption,
    max_cost: float,
    probability_weight: float = 0.7,
    cost_weight: float = 0.3,
) -> float:
    """score = w_p * p - w_c * cost / max_cost (cost term 0 when max_cost is 0)."""
    cost_term = option.estimated_cost / max_cost if max_cost > 0 else 0.0
    return probability_weight * option.on_time_probability - cost_weight * cost_term


def production_eta_minutes(order_tons: float, rate_tph: float) -> int:
    """Minutes to produce the order at the plant's hourly rate, rounded up."""
    if rate_tph <= 0:
        return 0
    return math.ceil(order_tons / rate_tph * 60)


class RecommendationService:
    """Builds ranked fulfillment options."""

    def __init__(
        self,
        store: Optional[FulfillmentStore] = None,
        constants: Optional[FulfillmentConstants] = None,
    ):
        self.store = store or get_fulfillment_store()
        self.constants = constants or FulfillmentConstants.from_settings()
        self.inventory_service = InventoryService(self.store)

    # ===================
    # ORDER RECOMMENDATIONS
    # ===================

    def get_order_recommendations(self, order_id: str) -> RecommendationList:
        """
        Ranked options for fulfilling an order.

        Returns three options for a ready order (near-well, quarry,
        redirect) and four otherwise (plus produce).

        Raises:
            OrderNotFoundError: If the order doesn't exist
        """
        logger.info("building_recommendations", order_id=order_id)

        order = self.store.get_order(order_id)
        trucks = self.store.list_trucks()
        drivers = self.store.list_drivers()
        open_orders = self.store.list_open_orders()
        rules = self.store.list_active_rules()

        order_tons = order.total_tons
        now = datetime.now(timezone.utc)
        verdict = check_feasibility(order_tons, trucks, drivers)

        options = [
            self._warehouse_option(
                SITE_NEAR_WELL, SourceType.NEAR_WELL_WAREHOUSE, self.constants.near_well,
                order, order_tons, verdict, open_orders, now,
            ),
            self._warehouse_option(
                SITE_QUARRY, SourceType.QUARRY_WAREHOUSE, self.constants.quarry,
                order, order_tons, verdict, open_orders, now,
            ),
        ]

        redirect = self._redirect_option(order, order_tons, trucks, now)
        options.append(redirect or self._redirect_unavailable_option())

        if order.status != OrderStatus.READY:
            options.append(self._produce_option(order_tons, now))

        apply_rules(rules, build_context(order), options, self.constants.rule_nudge)
        ranked = self._rank(options)

        logger.info(
            "recommendations_built",
            order_id=order_id,
            order_tons=order_tons,
            options=len(ranked),
            fulfillable=sum(1 for o in ranked if o.can_fulfill),
            feasibility=verdict.kind.value,
        )

        return RecommendationList(
            order_id=order.id,
            order_number=order.order_number,
            order_tons=order_tons,
            options=ranked,
        )

    def _rank(self, options: list[RecommendationOption]) -> list[RecommendationOption]:
        """
        Fulfillable options by score descending, then the rest by available
        inventory descending (ties by score), PRODUCE always last.
        """
        max_cost = max((o.estimated_cost for o in options), default=0)

        def score(option: RecommendationOption) -> float:
            return score_option(
                option,
                max_cost,
                self.constants.probability_weight,
                self.constants.cost_weight,
            )

        produce = [o for o in options if o.source_type == SourceType.PRODUCE]
        rest = [o for o in options if o.source_type != SourceType.PRODUCE]

        fulfillable = [o for o in rest if o.can_fulfill and not o.redirect_unavailable]
        blocked = [o for o in rest if not (o.can_fulfill and not o.redirect_unavailable)]

        fulfillable.sort(key=score, reverse=True)
        blocked.sort(key=lambda o: (o.inventory_available or 0, score(o)), reverse=True)

        ranked = fulfillable + blocked + produce
        for position, option in enumerate(ranked, start=1):
            option.rank = position
        return ranked

    # ===================
    # BREAKDOWN RECOMMENDATIONS
    # ===================

    def get_breakdown_recommendations(self, truck_id: str) -> RecommendationList:
        """
        Options to replace the load of a broken-down or stuck truck.

        Replacement tons are min(order tons, broken truck capacity). Options
        are sorted by on-time probability descending, then cost ascending.

        Raises:
            TruckNotFoundError: If the truck doesn't exist
            TruckNotBrokenDownError: If it isn't broken down / stuck with an order
        """
        logger.info("building_breakdown_recommendations", truck_id=truck_id)

        broken = self.store.get_truck(truck_id)
        if broken.status not in BROKEN_TRUCK_STATUSES or not broken.assigned_order_id:
            raise TruckNotBrokenDownError(truck_id, broken.status.value)

        order = self.store.get_order(broken.assigned_order_id)
        trucks = [t for t in self.store.list_trucks() if t.id != broken.id]
        drivers = self.store.list_drivers()
        open_orders = self.store.list_open_orders()

        tons = replacement_tons(order, broken)
        now = datetime.now(timezone.utc)
        verdict = check_feasibility(tons, trucks, drivers)

        options = [
            self._warehouse_option(
                SITE_NEAR_WELL, SourceType.NEAR_WELL_WAREHOUSE, self.constants.near_well,
                order, tons, verdict, open_orders, now,
            ),
            self._warehouse_option(
                SITE_QUARRY, SourceType.QUARRY_WAREHOUSE, self.constants.quarry,
                order, tons, verdict, open_orders, now,
            ),
            self._replacement_truck_option(tons, trucks, drivers, now),
        ]

        reroute = self._redirect_option(order, tons, trucks, now)
        if reroute is not None:
            options.append(reroute)

        options.sort(key=lambda o: (-o.on_time_probability, o.estimated_cost))
        for position, option in enumerate(options, start=1):
            option.rank = position

        logger.info(
            "breakdown_recommendations_built",
            truck_id=truck_id,
            order_id=order.id,
            replacement_tons=tons,
            options=len(options),
        )

        return RecommendationList(
            order_id=order.id,
            order_number=order.order_number,
            order_tons=tons,
            options=options,
        )

    def list_breakdowns(self) -> list[BreakdownSummary]:
        """Broken-down or stuck trucks still bound to an order."""
        summaries = []
        for truck in self.store.list_trucks():
            if truck.status not in BROKEN_TRUCK_STATUSES or not truck.assigned_order_id:
                continue
            order = self.store.find_order(truck.assigned_order_id)
            summaries.append(BreakdownSummary(
                truck_id=truck.id,
                truck_label=truck.label,
                status=truck.status,
                order_id=truck.assigned_order_id,
                order_number=order.order_number if order else None,
            ))
        return summaries

    # ===================
    # OPTION BUILDERS
    # ===================

    def _eta(self, now: datetime, minutes: Optional[int]) -> Optional[datetime]:
        return now + timedelta(minutes=minutes) if minutes is not None else None

    def _warehouse_option(
        self,
        site_id: str,
        source_type: SourceType,
        profile: SourceProfile,
        order: Order,
        order_tons: float,
        verdict: FeasibilityVerdict,
        open_orders: list[Order],
        now: datetime,
    ) -> RecommendationOption:
        label = self.constants.site_labels.get(site_id, site_id)
        inventory = self.inventory_service.available(
            site_id,
            order.primary_product_id,
            open_orders,
            exclude_order_id=order.id,
        )
        reason = warehouse_shortfall(verdict, inventory, order_tons, label)
        truck_labels = [t.label for t in verdict.trucks]

        if reason is None:
            reason_text = (
                f"{format_tons(order_tons)} t from {label} on "
                f"{len(truck_labels)} truck(s), ~{profile.eta_minutes} min"
            )
        else:
            reason_text = reason

        return RecommendationOption(
            id=site_id,
            source_type=source_type,
            source_id=site_id,
            source_label=label,
            trucks_available=truck_labels,
            eta=self._eta(now, profile.eta_minutes),
            eta_minutes=profile.eta_minutes,
            distance_km=profile.distance_km,
            estimated_cost=profile.estimated_cost,
            on_time_probability=profile.on_time_probability,
            inventory_available=inventory,
            can_fulfill=reason is None,
            cannot_fulfill_reason=reason,
            reason_text=reason_text,
        )

    def _redirect_option(
        self,
        order: Order,
        order_tons: float,
        trucks: list[Truck],
        now: datetime,
    ) -> Optional[RecommendationOption]:
        """
        Redirect the tightest-fitting truck already serving another order.

        Candidates are in transit or assigned, bound to a different order,
        and large enough for the whole load.
        """
        candidates = [
            t for t in trucks
            if t.status in REDIRECTABLE_TRUCK_STATUSES
            and t.assigned_order_id
            and t.assigned_order_id != order.id
            and t.capacity >= order_tons
        ]
        if not candidates:
            return None

        truck = min(candidates, key=lambda t: (t.capacity, t.label))
        from_order = self.store.find_order(truck.assigned_order_id)
        from_number = from_order.label if from_order else truck.assigned_order_id
        profile = self.constants.redirect

        return RecommendationOption(
            id=f"redirect-{truck.id}",
            source_type=SourceType.TRUCK_IN_TRANSIT,
            source_id=truck.id,
            source_label=f"Truck {truck.label}",
            truck_id=truck.id,
            truck_label=truck.label,
            trucks_available=[truck.label],
            eta=self._eta(now, profile.eta_minutes),
            eta_minutes=profile.eta_minutes,
            distance_km=profile.distance_km,
            estimated_cost=profile.estimated_cost,
            on_time_probability=profile.on_time_probability,
            can_fulfill=True,
            reason_text=(
                f"Redirect truck {truck.label} ({format_tons(truck.capacity)} t) "
                f"from order {from_number}"
            ),
            is_redirect=True,
            from_order_id=truck.assigned_order_id,
            from_order_number=from_number,
            impact_on_original_order=f"Order {from_number} delayed; substitute needed",
        )

    def _redirect_unavailable_option(self) -> RecommendationOption:
        reason = "No truck in transit with enough capacity to redirect"
        return RecommendationOption(
            id="redirect-unavailable",
            source_type=SourceType.TRUCK_IN_TRANSIT,
            source_id="none",
            source_label="Truck in transit",
            estimated_cost=0,
            on_time_probability=0,
            can_fulfill=False,
            cannot_fulfill_reason=reason,
            reason_text=reason,
            is_redirect=True,
            redirect_unavailable=True,
        )

    def _produce_option(self, order_tons: float, now: datetime) -> RecommendationOption:
        profile = self.constants.produce
        rate = self.constants.production_rate_tph
        minutes = production_eta_minutes(order_tons, rate)

        return RecommendationOption(
            id="produce",
            source_type=SourceType.PRODUCE,
            source_id=PRODUCTION_SOURCE_ID,
            source_label="Production plant",
            eta=self._eta(now, minutes),
            eta_minutes=minutes,
            distance_km=profile.distance_km,
            estimated_cost=profile.estimated_cost,
            on_time_probability=profile.on_time_probability,
            can_fulfill=True,
            reason_text=(
                f"Produce {format_tons(order_tons)} t "
                f"(~{minutes} min at {format_tons(rate)} t/h)"
            ),
        )

    def _replacement_truck_option(
        self,
        tons: float,
        trucks: list[Truck],
        drivers: list[Driver],
        now: datetime,
    ) -> RecommendationOption:
        """Smallest available truck that carries the whole load, with a driver."""
        profile = self.constants.replacement_truck
        fleet = available_trucks(trucks)
        crew = available_drivers(drivers)
        fits = [t for t in fleet if t.capacity >= tons]

        reason = None
        if not crew:
            reason = "No available drivers"
        elif not fleet:
            reason = "No available trucks"
        elif not fits:
            largest = max(t.capacity for t in fleet)
            reason = (
                f"Largest available truck ({format_tons(largest)} t) "
                f"cannot carry {format_tons(tons)} t"
            )

        if reason is not None:
            return RecommendationOption(
                id="replacement-unavailable",
                source_type=SourceType.TRUCK_IN_TRANSIT,
                source_id="none",
                source_label="Replacement truck",
                eta_minutes=profile.eta_minutes,
                distance_km=profile.distance_km,
                estimated_cost=profile.estimated_cost,
                on_time_probability=profile.on_time_probability,
                can_fulfill=False,
                cannot_fulfill_reason=reason,
                reason_text=reason,
            )

        truck = min(fits, key=lambda t: (t.capacity, t.label))
        driver = crew[0]
        return RecommendationOption(
            id=f"replacement-{truck.id}",
            source_type=SourceType.TRUCK_IN_TRANSIT,
            source_id=truck.id,
            source_label="Replacement truck",
            truck_id=truck.id,
            truck_label=truck.label,
            trucks_available=[truck.label],
            eta=self._eta(now, profile.eta_minutes),
            eta_minutes=profile.eta_minutes,
            distance_km=profile.distance_km,
            estimated_cost=profile.estimated_cost,
            on_time_probability=profile.on_time_probability,
            can_fulfill=True,
            reason_text=(
                f"Send truck {truck.label} ({format_tons(truck.capacity)} t) "
                f"with {driver.name or driver.id}"
            ),
        )


def replacement_tons(order: Order, broken: Truck) -> float:
    """Load to replace: the broken truck's capacity, at most the whole order."""
    if broken.capacity <= 0:
        return order.total_tons
    return min(order.total_tons, broken.capacity)


# Singleton instance
_recommendation_service: Optional[RecommendationService] = None


def get_recommendation_service() -> RecommendationService:
    """Get or create RecommendationService instance."""
    global _recommendation_service
    if _recommendation_service is None:
        _recommendation_service = RecommendationService()
    return _recommendation_service
