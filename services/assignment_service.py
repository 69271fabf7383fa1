"""
Assignment executor - turns a chosen fulfillment source into deliveries.

Every operation validates everything first, then writes deliveries and
certificate links, and updates order and truck statuses last. All of it
runs under the order and truck locks so that an order has at most one
active delivery set and a truck serves at most one order.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog

from config.fulfillment import SITE_NEAR_WELL, SITE_QUARRY, FulfillmentConstants
from exceptions import (
    ActiveDeliveryExistsError,
    FleetUnavailableError,
    InsufficientCapacityError,
    InsufficientDriversError,
    InsufficientInventoryError,
    InvalidStatusTransitionError,
    MissingCertificateError,
    TruckNotBrokenDownError,
    UnsupportedSourceError,
)
from models.assignment import (
    AssignmentResult,
    AssignPayload,
    BreakdownReplacementPayload,
)
from models.fleet import (
    BROKEN_TRUCK_STATUSES,
    UNUSABLE_TRUCK_STATUSES,
    DeliveryCreate,
    Driver,
    Truck,
    TruckStatus,
    TruckUpdate,
)
from models.order import Order, OrderStatus
from models.recommendation import SourceType
from services.fleet_service import (
    FeasibilityKind,
    FeasibilityVerdict,
    available_drivers,
    check_feasibility,
    format_tons,
    pair_drivers,
)
from services.fulfillment_store import FulfillmentStore, get_fulfillment_store
from services.inventory_service import InventoryService
from services.lock_service import AggregateLocks, get_aggregate_locks
from services.recommendation_service import replacement_tons

logger = structlog.get_logger(__name__)

WAREHOUSE_SITES = {
    SourceType.NEAR_WELL_WAREHOUSE: SITE_NEAR_WELL,
    SourceType.QUARRY_WAREHOUSE: SITE_QUARRY,
}


def raise_for_verdict(verdict: FeasibilityVerdict) -> None:
    """Turn a failed feasibility verdict into the matching ConflictError."""
    if verdict.kind in (FeasibilityKind.NO_TRUCK, FeasibilityKind.NO_DRIVER):
        raise FleetUnavailableError()
    if verdict.kind == FeasibilityKind.INSUFFICIENT_TOTAL_CAPACITY:
        raise InsufficientCapacityError(
            format_tons(verdict.total_capacity),
            format_tons(verdict.order_tons),
        )
    if verdict.kind == FeasibilityKind.INSUFFICIENT_DRIVER_COUNT:
        raise InsufficientDriversError(verdict.drivers_needed, verdict.drivers_available)


class AssignmentService:
    """
    Executes assignments, redirects, breakdown replacements and the
    start of production.
    """

    def __init__(
        self,
        store: Optional[FulfillmentStore] = None,
        constants: Optional[FulfillmentConstants] = None,
        locks: Optional[AggregateLocks] = None,
    ):
        self.store = store or get_fulfillment_store()
        self.constants = constants or FulfillmentConstants.from_settings()
        self.locks = locks or get_aggregate_locks()
        self.inventory_service = InventoryService(self.store)

    def _delivery_eta(self) -> datetime:
        return datetime.now(timezone.utc) + timedelta(hours=self.constants.delivery_eta_hours)

    # ===================
    # ASSIGN
    # ===================

    def assign(self, payload: AssignPayload) -> AssignmentResult:
        """
        Execute a fulfillment source for an order.

        TRUCK_IN_TRANSIT rebinds one truck (taking it off `from_order_id`
        when given); warehouse sources bind the greedy truck set. The order
        ends up `ready`.

        Raises:
            OrderNotFoundError / TruckNotFoundError: Unknown ids
            ActiveDeliveryExistsError: Order already has a non-delivered delivery
            FleetUnavailableError: Truck or driver not available
            InsufficientCapacityError: Greedy set cannot carry the order
            InsufficientDriversError: Fewer drivers than trucks
            InsufficientInventoryError: Site stock no longer covers the order
            UnsupportedSourceError: PRODUCE is not executable here
        """
        logger.info(
            "executing_assignment",
            order_id=payload.order_id,
            source_type=payload.source_type.value,
            source_id=payload.source_id,
            truck_id=payload.truck_id,
            from_order_id=payload.from_order_id,
        )

        if payload.source_type == SourceType.PRODUCE:
            raise UnsupportedSourceError(payload.source_type.value)

        with self.locks.hold(order_ids=[payload.order_id, payload.from_order_id]):
            order = self.store.get_order(payload.order_id)
            if self.store.has_active_delivery(order.id):
                raise ActiveDeliveryExistsError(order.id)

            if payload.source_type == SourceType.TRUCK_IN_TRANSIT:
                result = self._assign_truck(
                    order,
                    payload.truck_id or payload.source_id,
                    payload.from_order_id,
                    order.total_tons,
                    OrderStatus.READY,
                )
            else:
                result = self._assign_warehouse(
                    order,
                    payload.source_type,
                    order.total_tons,
                    OrderStatus.READY,
                )

        logger.info(
            "assignment_executed",
            order_id=order.id,
            source_type=payload.source_type.value,
            truck_ids=result.truck_ids,
            deliveries=len(result.deliveries),
        )
        return result

    def redirect_truck(
        self,
        from_order_id: str,
        to_order_id: str,
        truck_id: str,
    ) -> AssignmentResult:
        """
        Move a truck from one order to another after redirect approval.

        The target order must already hold a passed QC certificate. The
        source order goes back to `ready`, the target to `dispatched`.

        Raises:
            MissingCertificateError: Target order has no passed certificate
            FleetUnavailableError: Truck is out of service or serving a third order
        """
        logger.info(
            "executing_redirect",
            from_order_id=from_order_id,
            to_order_id=to_order_id,
            truck_id=truck_id,
        )

        with self.locks.hold(order_ids=[from_order_id, to_order_id]):
            target = self.store.get_order(to_order_id)
            if self.store.find_passed_certificate(target.id) is None:
                raise MissingCertificateError(target.id)

            result = self._assign_truck(
                target,
                truck_id,
                from_order_id,
                target.total_tons,
                OrderStatus.DISPATCHED,
            )

        logger.info(
            "redirect_executed",
            from_order_id=from_order_id,
            to_order_id=to_order_id,
            truck_id=truck_id,
        )
        return result

    def _assign_truck(
        self,
        order: Order,
        truck_id: str,
        from_order_id: Optional[str],
        tons: float,
        target_status: Optional[OrderStatus],
        excluded_truck_id: Optional[str] = None,
    ) -> AssignmentResult:
        """
        Bind one truck to the order. Caller holds the order locks; the
        excluded (broken) truck is locked in the same batch.
        """
        with self.locks.hold(truck_ids=[truck_id, excluded_truck_id]):
            truck = self.store.get_truck(truck_id)
            self._check_truck_usable(truck, order.id, from_order_id, excluded_truck_id)
            driver_id = self._resolve_driver(truck, from_order_id)

            return self._write_truck_binding(
                order, truck, driver_id, from_order_id, tons, target_status
            )

    def _check_truck_usable(
        self,
        truck: Truck,
        order_id: str,
        from_order_id: Optional[str],
        excluded_truck_id: Optional[str] = None,
    ) -> None:
        if truck.id == excluded_truck_id or truck.status in UNUSABLE_TRUCK_STATUSES:
            raise FleetUnavailableError(truck.id)

        if from_order_id:
            # Redirect: the truck must still be on the order it is taken from
            if truck.assigned_order_id not in (from_order_id, order_id):
                raise FleetUnavailableError(truck.id)
        elif truck.status != TruckStatus.AVAILABLE:
            raise FleetUnavailableError(truck.id)

    def _resolve_driver(self, truck: Truck, from_order_id: Optional[str]) -> str:
        """Driver already on the source delivery, else the best available driver."""
        if from_order_id:
            delivery = self.store.find_delivery(from_order_id, truck.id)
            if delivery and delivery.driver_id:
                return delivery.driver_id

        crew = available_drivers(self.store.list_drivers())
        if not crew:
            raise FleetUnavailableError(truck.id)
        return crew[0].id

    def _write_truck_binding(
        self,
        order: Order,
        truck: Truck,
        driver_id: str,
        from_order_id: Optional[str],
        tons: float,
        target_status: Optional[OrderStatus],
    ) -> AssignmentResult:
        certificate = self.store.find_passed_certificate(order.id)

        if from_order_id:
            self.store.delete_delivery(from_order_id, truck.id)

        delivery = self.store.create_delivery(DeliveryCreate(
            order_id=order.id,
            truck_id=truck.id,
            driver_id=driver_id,
            eta=self._delivery_eta(),
            quantity=min(truck.capacity, tons),
        ))

        if certificate:
            self.store.link_certificate_to_truck(certificate.id, truck.id)

        # Status updates last
        if from_order_id and from_order_id != order.id:
            self.store.update_order_status(from_order_id, OrderStatus.READY)
        if target_status is not None:
            self.store.update_order_status(order.id, target_status)
        self.store.update_truck(truck.id, TruckUpdate(
            status=TruckStatus.ASSIGNED,
            assigned_order_id=order.id,
            driver_id=driver_id,
        ))

        return AssignmentResult(
            order_id=order.id,
            source_type=SourceType.TRUCK_IN_TRANSIT,
            deliveries=[delivery],
            truck_ids=[truck.id],
            order_status=target_status or order.status,
            certificate_id=certificate.certificate_id if certificate else None,
        )

    def _assign_warehouse(
        self,
        order: Order,
        source_type: SourceType,
        tons: float,
        target_status: Optional[OrderStatus],
        excluded_truck_id: Optional[str] = None,
    ) -> AssignmentResult:
        """Bind the greedy truck set for `tons`. Caller holds the order lock."""
        site_id = WAREHOUSE_SITES[source_type]

        trucks = [t for t in self.store.list_trucks() if t.id != excluded_truck_id]
        drivers = self.store.list_drivers()
        verdict = check_feasibility(tons, trucks, drivers)
        raise_for_verdict(verdict)

        available = self.inventory_service.available(
            site_id,
            order.primary_product_id,
            self.store.list_open_orders(),
            exclude_order_id=order.id,
        )
        if available < tons:
            raise InsufficientInventoryError(site_id, format_tons(available), format_tons(tons))

        pairs = pair_drivers(verdict.trucks, drivers)

        with self.locks.hold(truck_ids=[*(t.id for t, _ in pairs), excluded_truck_id]):
            current = {t.id: t for t in self.store.list_trucks()}
            for truck, _ in pairs:
                fresh = current.get(truck.id)
                if fresh is None or fresh.status != TruckStatus.AVAILABLE:
                    raise FleetUnavailableError(truck.id)

            return self._write_warehouse_binding(order, source_type, pairs, tons, target_status)

    def _write_warehouse_binding(
        self,
        order: Order,
        source_type: SourceType,
        pairs: list[tuple[Truck, Driver]],
        tons: float,
        target_status: Optional[OrderStatus],
    ) -> AssignmentResult:
        certificate = self.store.find_passed_certificate(order.id)
        eta = self._delivery_eta()

        deliveries = []
        remaining = tons
        for truck, driver in pairs:
            load = min(truck.capacity, remaining)
            remaining = max(0.0, remaining - load)
            deliveries.append(self.store.create_delivery(DeliveryCreate(
                order_id=order.id,
                truck_id=truck.id,
                driver_id=driver.id,
                eta=eta,
                quantity=load,
            )))

        if certificate and pairs:
            self.store.link_certificate_to_truck(certificate.id, pairs[0][0].id)

        # Status updates last
        if target_status is not None:
            self.store.update_order_status(order.id, target_status)
        for truck, driver in pairs:
            self.store.update_truck(truck.id, TruckUpdate(
                status=TruckStatus.ASSIGNED,
                assigned_order_id=order.id,
                driver_id=driver.id,
            ))

        return AssignmentResult(
            order_id=order.id,
            source_type=source_type,
            deliveries=deliveries,
            truck_ids=[truck.id for truck, _ in pairs],
            order_status=target_status or order.status,
            certificate_id=certificate.certificate_id if certificate else None,
        )

    # ===================
    # BREAKDOWN REPLACEMENT
    # ===================

    def apply_breakdown_replacement(
        self,
        order_id: str,
        broken_truck_id: str,
        payload: BreakdownReplacementPayload,
    ) -> AssignmentResult:
        """
        Replace the load of a broken-down or stuck truck.

        Binds the chosen replacement (warehouse truck set, a replacement
        truck, or a reroute from another order), removes the broken truck's
        delivery and sends it to maintenance. The order keeps its status.

        Raises:
            TruckNotBrokenDownError: Truck is not broken down / stuck on this order
            UnsupportedSourceError: PRODUCE chosen as replacement
        """
        logger.info(
            "applying_breakdown_replacement",
            order_id=order_id,
            broken_truck_id=broken_truck_id,
            source_type=payload.source_type.value,
        )

        if payload.source_type == SourceType.PRODUCE:
            raise UnsupportedSourceError(payload.source_type.value)

        with self.locks.hold(order_ids=[order_id, payload.from_order_id]):
            # The broken truck is bound to this order, so the order lock covers it
            broken = self.store.get_truck(broken_truck_id)
            if broken.status not in BROKEN_TRUCK_STATUSES or broken.assigned_order_id != order_id:
                raise TruckNotBrokenDownError(broken_truck_id, broken.status.value)

            order = self.store.get_order(order_id)
            tons = replacement_tons(order, broken)

            if payload.source_type == SourceType.TRUCK_IN_TRANSIT:
                result = self._assign_truck(
                    order,
                    payload.truck_id or payload.source_id,
                    payload.from_order_id,
                    tons,
                    None,
                    excluded_truck_id=broken.id,
                )
            else:
                result = self._assign_warehouse(
                    order,
                    payload.source_type,
                    tons,
                    None,
                    excluded_truck_id=broken.id,
                )

            self.store.delete_delivery(order.id, broken.id)
            self.store.update_truck(broken.id, TruckUpdate(
                status=TruckStatus.MAINTENANCE,
                assigned_order_id=None,
                driver_id=broken.driver_id,
            ))

        logger.info(
            "breakdown_replacement_applied",
            order_id=order_id,
            broken_truck_id=broken_truck_id,
            truck_ids=result.truck_ids,
        )
        return result

    # ===================
    # PRODUCTION
    # ===================

    def start_production(self, order_id: str) -> Order:
        """
        Send an order to production.

        pending -> confirmed -> in_production; confirmed -> in_production.

        Raises:
            InvalidStatusTransitionError: Order is past confirmation
        """
        with self.locks.hold(order_ids=[order_id]):
            order = self.store.get_order(order_id)

            if order.status not in (OrderStatus.PENDING, OrderStatus.CONFIRMED):
                raise InvalidStatusTransitionError(
                    order.status.value, OrderStatus.IN_PRODUCTION.value
                )

            if order.status == OrderStatus.PENDING:
                self.store.update_order_status(order.id, OrderStatus.CONFIRMED)
            self.store.update_order_status(order.id, OrderStatus.IN_PRODUCTION)

            logger.info("production_started", order_id=order_id, from_status=order.status.value)
            return self.store.get_order(order_id)


# Singleton instance
_assignment_service: Optional[AssignmentService] = None


def get_assignment_service() -> AssignmentService:
    """Get or create AssignmentService instance."""
    global _assignment_service
    if _assignment_service is None:
        _assignment_service = AssignmentService()
    return _assignment_service
