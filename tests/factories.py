"""
Test data factories.

Each factory returns a dict shaped like the database row, so tests can
feed it straight into MockSupabaseClient.set_table_data().
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4


DEFAULT_PRODUCT_ID = "prod-sand-40-70"


class OrderFactory:
    """
    Factory for orders and their product lines.

    Usage:
        order = OrderFactory.create(status="confirmed")
        items = [OrderFactory.item(order["id"], quantity=100)]
    """

    _counter = 0

    @classmethod
    def _next_counter(cls) -> int:
        cls._counter += 1
        return cls._counter

    @classmethod
    def create(
        cls,
        id: Optional[str] = None,
        order_number: Optional[str] = None,
        status: str = "pending",
        customer_id: str = "cust-1",
        customer_name: str = "Vaca Muerta Drilling",
        delivery_location: Optional[str] = "Pozo Añelo Norte",
        urgency: Optional[str] = "normal",
    ) -> dict:
        """
        Create a single order row.

        Args:
            id: Order UUID (auto-generated if not provided)
            order_number: ORD-2025-NNNN (auto-generated if not provided)
            status: Order status
            customer_id: Customer UUID
            delivery_location: Well name
            urgency: normal, high, critical

        Returns:
            Order dict matching database schema
        """
        counter = cls._next_counter()
        now = datetime.now(timezone.utc).isoformat()

        return {
            "id": id or str(uuid4()),
            "order_number": order_number or f"ORD-2025-{counter:04d}",
            "status": status,
            "customer_id": customer_id,
            "customer_name": customer_name,
            "delivery_location": delivery_location,
            "urgency": urgency,
            "created_at": now,
            "updated_at": now,
        }

    @classmethod
    def item(
        cls,
        order_id: str,
        quantity: float = 100,
        product_id: str = DEFAULT_PRODUCT_ID,
        unit_price: float = 85.0,
    ) -> dict:
        """Create an order_items row."""
        return {
            "id": str(uuid4()),
            "order_id": order_id,
            "product_id": product_id,
            "product_name": "Arena 40/70",
            "quantity": quantity,
            "unit_price": unit_price,
        }


class TruckFactory:
    """
    Factory for trucks.

    Usage:
        trucks = TruckFactory.create_batch([60, 50, 20])
    """

    _counter = 0

    @classmethod
    def _next_counter(cls) -> int:
        cls._counter += 1
        return cls._counter

    @classmethod
    def create(
        cls,
        capacity: float = 30,
        status: str = "available",
        id: Optional[str] = None,
        license_plate: Optional[str] = None,
        assigned_order_id: Optional[str] = None,
        driver_id: Optional[str] = None,
    ) -> dict:
        """Create a single truck row."""
        counter = cls._next_counter()
        return {
            "id": id or f"truck-{counter}",
            "license_plate": license_plate or f"AB{counter:03d}CD",
            "capacity": capacity,
            "status": status,
            "assigned_order_id": assigned_order_id,
            "driver_id": driver_id,
        }

    @classmethod
    def create_batch(cls, capacities: list, **overrides) -> list:
        """Create one truck per capacity."""
        return [cls.create(capacity=c, **overrides) for c in capacities]


class DriverFactory:
    """Factory for drivers."""

    _counter = 0

    @classmethod
    def _next_counter(cls) -> int:
        cls._counter += 1
        return cls._counter

    @classmethod
    def create(
        cls,
        available: bool = True,
        id: Optional[str] = None,
        name: Optional[str] = None,
        hours_worked: float = 10,
        hours_limit: float = 48,
    ) -> dict:
        """Create a single driver row."""
        counter = cls._next_counter()
        return {
            "id": id or f"driver-{counter}",
            "name": name or f"Driver {counter}",
            "hours_worked": hours_worked,
            "hours_limit": hours_limit,
            "available": available,
        }

    @classmethod
    def create_batch(cls, count: int, **overrides) -> list:
        return [cls.create(**overrides) for _ in range(count)]


class RuleFactory:
    """Factory for recommendation rules."""

    _counter = 0

    @classmethod
    def _next_counter(cls) -> int:
        cls._counter += 1
        return cls._counter

    @classmethod
    def create(
        cls,
        condition: Optional[dict] = None,
        action: Optional[dict] = None,
        priority: int = 0,
        active: bool = True,
        id: Optional[str] = None,
        name: Optional[str] = None,
    ) -> dict:
        """Create a single rule row (defaults: big orders prefer quarry)."""
        counter = cls._next_counter()
        return {
            "id": id or f"rule-{counter}",
            "name": name or f"Rule {counter}",
            "condition": condition or {"field": "order_size", "op": "gte", "value": 200},
            "action": action or {"type": "prefer_quarry", "value": None},
            "priority": priority,
            "active": active,
            "created_by": "user-1",
            "created_at": datetime.now(timezone.utc).isoformat(),
        }


def balance(site_id: str, quantity: float, product_id: str = DEFAULT_PRODUCT_ID) -> dict:
    """inventory_balance row."""
    return {"site_id": site_id, "product_id": product_id, "quantity": quantity}


def passed_certificate(order_id: str, id: Optional[str] = None, truck_id: Optional[str] = None) -> dict:
    """qc_tests row with a passed certificate."""
    return {
        "id": id or str(uuid4()),
        "order_id": order_id,
        "status": "passed",
        "certificate_id": str(uuid4()),
        "truck_id": truck_id,
    }
