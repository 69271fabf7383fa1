"""
Fulfillment store - read/write access to the records the engine touches.

Wraps the Supabase tables owned by the CRUD layer (orders, trucks, drivers,
inventory balances, deliveries, QC tests, rules) behind the narrow set of
operations the recommendation and assignment services need. Every method
is a single round trip (two for orders, which carry their product lines).
"""

from datetime import datetime, timezone
from typing import Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

from config import get_supabase_client
from exceptions import DatabaseError, OrderNotFoundError, TruckNotFoundError
from models.fleet import (
    Delivery,
    DeliveryCreate,
    DeliveryStatus,
    Driver,
    PassedCertificate,
    Truck,
    TruckUpdate,
)
from models.inventory import InventoryBalance
from models.order import OPEN_ORDER_STATUSES, Order, OrderLine, OrderStatus
from models.rule import Rule

logger = structlog.get_logger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def rule_from_row(row: dict) -> Rule:
    """
    Convert a recommendation_rules row to a Rule.

    A condition that does not parse (unknown field, non-numeric size...)
    loads as None so the rule never matches.
    """
    condition = row.get("condition")
    try:
        return Rule(
            id=row["id"],
            name=row.get("name") or "",
            condition=condition,
            action=row.get("action") or {"type": "optimization"},
            priority=row.get("priority") or 0,
            active=bool(row.get("active", True)),
            created_by=row.get("created_by"),
            created_at=row.get("created_at"),
        )
    except PydanticValidationError as e:
        logger.warning(
            "rule_condition_unrecognised",
            rule_id=row.get("id"),
            condition=condition,
            error=str(e),
        )
        return Rule(
            id=row["id"],
            name=row.get("name") or "",
            condition=None,
            action=row.get("action") or {"type": "optimization"},
            priority=row.get("priority") or 0,
            active=bool(row.get("active", True)),
            created_by=row.get("created_by"),
            created_at=row.get("created_at"),
        )


class FulfillmentStore:
    """
    Data access for the fulfillment engine.

    Not-found lookups raise the matching NotFoundError; any other failure
    is wrapped in DatabaseError.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.orders_table = "orders"
        self.items_table = "order_items"
        self.trucks_table = "trucks"
        self.drivers_table = "drivers"
        self.inventory_table = "inventory_balance"
        self.deliveries_table = "deliveries"
        self.qc_table = "qc_tests"
        self.rules_table = "recommendation_rules"

    # ===================
    # ORDERS
    # ===================

    def find_order(self, order_id: str) -> Optional[Order]:
        """Get an order with its product lines, or None."""
        try:
            result = (
                self.db.table(self.orders_table)
                .select("*")
                .eq("id", order_id)
                .limit(1)
                .execute()
            )
            if not result.data:
                return None

            items = (
                self.db.table(self.items_table)
                .select("*")
                .eq("order_id", order_id)
                .execute()
            )
            return self._row_to_order(result.data[0], items.data or [])

        except Exception as e:
            logger.error("get_order_failed", order_id=order_id, error=str(e))
            raise DatabaseError("select", str(e))

    def get_order(self, order_id: str) -> Order:
        """
        Get an order with its product lines.

        Raises:
            OrderNotFoundError: If the order doesn't exist
        """
        order = self.find_order(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def list_open_orders(self) -> list[Order]:
        """Orders that reserve stock (pending, confirmed, ready)."""
        try:
            result = (
                self.db.table(self.orders_table)
                .select("*")
                .in_("status", [s.value for s in OPEN_ORDER_STATUSES])
                .execute()
            )
            rows = result.data or []
            if not rows:
                return []

            items = (
                self.db.table(self.items_table)
                .select("*")
                .in_("order_id", [row["id"] for row in rows])
                .execute()
            )
            items_by_order: dict[str, list[dict]] = {}
            for item in items.data or []:
                items_by_order.setdefault(item["order_id"], []).append(item)

            return [
                self._row_to_order(row, items_by_order.get(row["id"], []))
                for row in rows
            ]

        except Exception as e:
            logger.error("list_open_orders_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def update_order_status(self, order_id: str, status: OrderStatus) -> None:
        """Set an order's status."""
        try:
            self.db.table(self.orders_table).update(
                {"status": status.value, "updated_at": _now_iso()}
            ).eq("id", order_id).execute()

            logger.info("order_status_updated", order_id=order_id, status=status.value)

        except Exception as e:
            logger.error("update_order_status_failed", order_id=order_id, error=str(e))
            raise DatabaseError("update", str(e))

    # ===================
    # FLEET
    # ===================

    def list_trucks(self) -> list[Truck]:
        """All trucks, ordered by license plate."""
        try:
            result = (
                self.db.table(self.trucks_table)
                .select("*")
                .order("license_plate")
                .execute()
            )
            return [self._row_to_truck(row) for row in result.data or []]

        except Exception as e:
            logger.error("list_trucks_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def get_truck(self, truck_id: str) -> Truck:
        """
        Get a single truck.

        Raises:
            TruckNotFoundError: If the truck doesn't exist
        """
        try:
            result = (
                self.db.table(self.trucks_table)
                .select("*")
                .eq("id", truck_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("get_truck_failed", truck_id=truck_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise TruckNotFoundError(truck_id)
        return self._row_to_truck(result.data[0])

    def update_truck(self, truck_id: str, data: TruckUpdate) -> None:
        """Write status, order binding and driver on a truck."""
        try:
            self.db.table(self.trucks_table).update({
                "status": data.status.value,
                "assigned_order_id": data.assigned_order_id,
                "driver_id": data.driver_id,
                "updated_at": _now_iso(),
            }).eq("id", truck_id).execute()

            logger.info(
                "truck_updated",
                truck_id=truck_id,
                status=data.status.value,
                assigned_order_id=data.assigned_order_id,
            )

        except Exception as e:
            logger.error("update_truck_failed", truck_id=truck_id, error=str(e))
            raise DatabaseError("update", str(e))

    def list_drivers(self) -> list[Driver]:
        """All drivers, ordered by name."""
        try:
            result = (
                self.db.table(self.drivers_table)
                .select("*")
                .order("name")
                .execute()
            )
            return [
                Driver(
                    id=row["id"],
                    name=row.get("name"),
                    hours_worked=row.get("hours_worked") or 0,
                    hours_limit=row.get("hours_limit") or 0,
                    available=bool(row.get("available", False)),
                )
                for row in result.data or []
            ]

        except Exception as e:
            logger.error("list_drivers_failed", error=str(e))
            raise DatabaseError("select", str(e))

    # ===================
    # INVENTORY
    # ===================

    def get_inventory_balance(self, site_id: str, product_id: Optional[str]) -> float:
        """Stock in tons of one product at one site (0 when no row)."""
        if not product_id:
            return 0.0

        try:
            result = (
                self.db.table(self.inventory_table)
                .select("quantity")
                .eq("site_id", site_id)
                .eq("product_id", product_id)
                .execute()
            )
            return float(sum(float(row.get("quantity") or 0) for row in result.data or []))

        except Exception as e:
            logger.error(
                "get_inventory_balance_failed",
                site_id=site_id,
                product_id=product_id,
                error=str(e),
            )
            raise DatabaseError("select", str(e))

    def list_inventory_balances(self, site_id: Optional[str] = None) -> list[InventoryBalance]:
        """All balance rows, optionally for one site."""
        try:
            query = self.db.table(self.inventory_table).select("*")
            if site_id:
                query = query.eq("site_id", site_id)
            result = query.execute()
            return [
                InventoryBalance(
                    site_id=row["site_id"],
                    product_id=row["product_id"],
                    quantity=float(row.get("quantity") or 0),
                )
                for row in result.data or []
            ]

        except Exception as e:
            logger.error("list_inventory_balances_failed", error=str(e))
            raise DatabaseError("select", str(e))

    # ===================
    # DELIVERIES
    # ===================

    def create_delivery(self, data: DeliveryCreate) -> Delivery:
        """Insert a delivery row."""
        try:
            result = self.db.table(self.deliveries_table).insert({
                "order_id": data.order_id,
                "truck_id": data.truck_id,
                "driver_id": data.driver_id,
                "status": data.status.value,
                "eta": data.eta.isoformat(),
                "quantity": data.quantity,
            }).execute()

            delivery = self._row_to_delivery(result.data[0])
            logger.info(
                "delivery_created",
                delivery_id=delivery.id,
                order_id=data.order_id,
                truck_id=data.truck_id,
            )
            return delivery

        except Exception as e:
            logger.error(
                "create_delivery_failed",
                order_id=data.order_id,
                truck_id=data.truck_id,
                error=str(e),
            )
            raise DatabaseError("insert", str(e))

    def delete_delivery(self, order_id: str, truck_id: str) -> None:
        """Remove the delivery binding a truck to an order."""
        try:
            self.db.table(self.deliveries_table).delete().eq(
                "order_id", order_id
            ).eq("truck_id", truck_id).execute()

            logger.info("delivery_deleted", order_id=order_id, truck_id=truck_id)

        except Exception as e:
            logger.error(
                "delete_delivery_failed",
                order_id=order_id,
                truck_id=truck_id,
                error=str(e),
            )
            raise DatabaseError("delete", str(e))

    def find_delivery(self, order_id: str, truck_id: str) -> Optional[Delivery]:
        """The delivery binding a truck to an order, if any."""
        try:
            result = (
                self.db.table(self.deliveries_table)
                .select("*")
                .eq("order_id", order_id)
                .eq("truck_id", truck_id)
                .limit(1)
                .execute()
            )
            return self._row_to_delivery(result.data[0]) if result.data else None

        except Exception as e:
            logger.error("find_delivery_failed", order_id=order_id, error=str(e))
            raise DatabaseError("select", str(e))

    def has_active_delivery(self, order_id: str) -> bool:
        """True if the order has a delivery that is not delivered yet."""
        try:
            result = (
                self.db.table(self.deliveries_table)
                .select("id")
                .eq("order_id", order_id)
                .neq("status", DeliveryStatus.DELIVERED.value)
                .limit(1)
                .execute()
            )
            return bool(result.data)

        except Exception as e:
            logger.error("has_active_delivery_failed", order_id=order_id, error=str(e))
            raise DatabaseError("select", str(e))

    # ===================
    # QC CERTIFICATES
    # ===================

    def find_passed_certificate(self, order_id: str) -> Optional[PassedCertificate]:
        """A passed QC test with a certificate for the order, if any."""
        try:
            result = (
                self.db.table(self.qc_table)
                .select("id, certificate_id, truck_id, status")
                .eq("order_id", order_id)
                .eq("status", "passed")
                .execute()
            )
            for row in result.data or []:
                if row.get("certificate_id"):
                    return PassedCertificate(
                        id=row["id"],
                        certificate_id=row["certificate_id"],
                        truck_id=row.get("truck_id"),
                    )
            return None

        except Exception as e:
            logger.error("find_passed_certificate_failed", order_id=order_id, error=str(e))
            raise DatabaseError("select", str(e))

    def link_certificate_to_truck(self, qc_test_id: str, truck_id: str) -> None:
        """Point a QC test's certificate at the truck carrying the load."""
        try:
            self.db.table(self.qc_table).update(
                {"truck_id": truck_id}
            ).eq("id", qc_test_id).execute()

            logger.info("certificate_linked", qc_test_id=qc_test_id, truck_id=truck_id)

        except Exception as e:
            logger.error("link_certificate_failed", qc_test_id=qc_test_id, error=str(e))
            raise DatabaseError("update", str(e))

    # ===================
    # RULES
    # ===================

    def list_active_rules(self) -> list[Rule]:
        """Active rules in display order (priority, then name)."""
        try:
            result = (
                self.db.table(self.rules_table)
                .select("*")
                .eq("active", True)
                .order("priority")
                .execute()
            )
            rules = [rule_from_row(row) for row in result.data or []]
            return sorted(rules, key=lambda r: (r.priority, r.name))

        except Exception as e:
            logger.error("list_active_rules_failed", error=str(e))
            raise DatabaseError("select", str(e))

    # ===================
    # ROW MAPPING
    # ===================

    def _row_to_order(self, row: dict, items: list[dict]) -> Order:
        """Convert orders row plus order_items rows to Order."""
        return Order(
            id=row["id"],
            order_number=row.get("order_number"),
            customer_id=row.get("customer_id"),
            customer_name=row.get("customer_name"),
            status=row["status"],
            products=[
                OrderLine(
                    product_id=item["product_id"],
                    product_name=item.get("product_name"),
                    quantity=float(item.get("quantity") or 0),
                    unit_price=float(item.get("unit_price") or 0),
                )
                for item in items
            ],
            delivery_location=row.get("delivery_location"),
            urgency=row.get("urgency") or row.get("priority"),
        )

    def _row_to_truck(self, row: dict) -> Truck:
        return Truck(
            id=row["id"],
            license_plate=row.get("license_plate"),
            capacity=float(row.get("capacity") or 0),
            status=row["status"],
            assigned_order_id=row.get("assigned_order_id"),
            driver_id=row.get("driver_id"),
        )

    def _row_to_delivery(self, row: dict) -> Delivery:
        return Delivery(
            id=row["id"],
            order_id=row["order_id"],
            truck_id=row["truck_id"],
            driver_id=row.get("driver_id"),
            status=row["status"],
            eta=row.get("eta"),
            quantity=row.get("quantity"),
        )


# Singleton instance
_fulfillment_store: Optional[FulfillmentStore] = None


def get_fulfillment_store() -> FulfillmentStore:
    """Get or create FulfillmentStore instance."""
    global _fulfillment_store
    if _fulfillment_store is None:
        _fulfillment_store = FulfillmentStore()
    return _fulfillment_store
