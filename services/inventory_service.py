"""
Inventory service - stock availability per site.

available = max(0, stock(site, product) - reserved(product)), where reserved
is the tons of that product on every open order (pending, confirmed, ready).
Every open order reserves against every site; orders carry no site until
they are assigned.
"""

from typing import Optional

import structlog

from config.fulfillment import (
    CRITICAL_STOCK_FRACTION,
    SITE_LABELS,
    SITE_STOCK_BANDS,
)
from models.inventory import (
    SiteInventory,
    SiteInventoryListResponse,
    SiteStockStatus,
)
from models.order import Order
from services.fulfillment_store import FulfillmentStore, get_fulfillment_store

logger = structlog.get_logger(__name__)


def reserved_tons(
    product_id: Optional[str],
    open_orders: list[Order],
    exclude_order_id: Optional[str] = None,
) -> float:
    """Tons of a product requested by open orders."""
    if not product_id:
        return 0.0
    return sum(
        line.quantity
        for order in open_orders
        if order.id != exclude_order_id
        for line in order.products
        if line.product_id == product_id
    )


def available_tons(stock: float, reserved: float) -> float:
    """max(0, stock - reserved), one decimal."""
    return round(max(0.0, stock - reserved), 1)


def stock_status(site_id: str, available: float) -> SiteStockStatus:
    """Classify available stock against the site's suggested band."""
    min_suggested, _ = SITE_STOCK_BANDS.get(site_id, (0.0, 0.0))
    if available < min_suggested * CRITICAL_STOCK_FRACTION:
        return SiteStockStatus.CRITICAL
    if available < min_suggested:
        return SiteStockStatus.LOW
    return SiteStockStatus.OK


class InventoryService:
    """Availability lookups over inventory balances and open orders."""

    def __init__(self, store: Optional[FulfillmentStore] = None):
        self.store = store or get_fulfillment_store()

    def available(
        self,
        site_id: str,
        product_id: Optional[str],
        open_orders: list[Order],
        exclude_order_id: Optional[str] = None,
    ) -> float:
        """
        Tons of a product available at a site.

        Args:
            site_id: quarry or near_well
            product_id: Product to check (None gives 0)
            open_orders: Orders reserving stock
            exclude_order_id: Order being fulfilled, whose own quantity is
                not a reservation against itself

        Returns:
            Available tons, one decimal, never negative
        """
        stock = self.store.get_inventory_balance(site_id, product_id)
        reserved = reserved_tons(product_id, open_orders, exclude_order_id)
        return available_tons(stock, reserved)

    def get_site_inventory(self, site_id: Optional[str] = None) -> SiteInventoryListResponse:
        """
        Stock overview for every (site, product) balance row.

        Args:
            site_id: Restrict to one site

        Returns:
            SiteInventoryListResponse sorted by site then product
        """
        logger.info("getting_site_inventory", site_id=site_id)

        balances = self.store.list_inventory_balances(site_id)
        open_orders = self.store.list_open_orders()

        items: list[SiteInventory] = []
        for balance in balances:
            reserved = reserved_tons(balance.product_id, open_orders)
            available = available_tons(balance.quantity, reserved)
            min_suggested, max_suggested = SITE_STOCK_BANDS.get(balance.site_id, (0.0, 0.0))
            items.append(SiteInventory(
                site_id=balance.site_id,
                site_name=SITE_LABELS.get(balance.site_id, balance.site_id),
                product_id=balance.product_id,
                quantity=round(balance.quantity, 1),
                reserved=round(reserved, 1),
                available=available,
                min_suggested=min_suggested,
                max_suggested=max_suggested,
                status=stock_status(balance.site_id, available),
            ))

        items.sort(key=lambda i: (i.site_id, i.product_id))
        critical = sum(1 for i in items if i.status == SiteStockStatus.CRITICAL)
        low = sum(1 for i in items if i.status == SiteStockStatus.LOW)

        logger.info(
            "site_inventory_retrieved",
            count=len(items),
            critical=critical,
            low=low,
        )

        return SiteInventoryListResponse(
            data=items,
            total=len(items),
            critical_count=critical,
            low_count=low,
            site_id=site_id,
        )


# Singleton instance
_inventory_service: Optional[InventoryService] = None


def get_inventory_service() -> InventoryService:
    """Get or create InventoryService instance."""
    global _inventory_service
    if _inventory_service is None:
        _inventory_service = InventoryService()
    return _inventory_service
