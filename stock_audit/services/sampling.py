"""
Item Sampling Engine.

Selects the inventory rows an audit will verify and snapshots them as
PENDING audit items:
- only rows with quantity > 0 are eligible
- warehouse-scoped audits take at most SAMPLE_CAP_WAREHOUSE rows
- whole-inventory audits take at most SAMPLE_CAP_ALL_WAREHOUSES rows from
  active warehouses
"""
import logging
from decimal import Decimal
from typing import Optional, List, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stock_audit.config import settings
from stock_audit.models.audit import InventoryAudit, InventoryAuditItem, AuditItemStatus
from stock_audit.models.catalog import InventoryItem, Product, Warehouse


logger = logging.getLogger(__name__)


class ItemSamplingEngine:
    """Materializes audit items for the RUN action."""

    def __init__(
        self,
        db: AsyncSession,
        warehouse_cap: Optional[int] = None,
        all_warehouses_cap: Optional[int] = None
    ):
        self.db = db
        self.warehouse_cap = warehouse_cap or settings.SAMPLE_CAP_WAREHOUSE
        self.all_warehouses_cap = all_warehouses_cap or settings.SAMPLE_CAP_ALL_WAREHOUSES

    def cap_for(self, audit: InventoryAudit) -> int:
        """Full-inventory audits are expensive, so they get the tighter cap."""
        if audit.is_full_inventory_scope:
            return self.all_warehouses_cap
        return self.warehouse_cap

    async def select_rows(
        self,
        audit: InventoryAudit
    ) -> List[Tuple[InventoryItem, Optional[Decimal]]]:
        """Eligible inventory rows with their product cost price, capped."""
        query = (
            select(InventoryItem, Product.cost_price)
            .join(Product, Product.id == InventoryItem.product_id)
            .where(InventoryItem.quantity > 0)
        )

        if audit.warehouse_id is not None:
            query = query.where(InventoryItem.warehouse_id == audit.warehouse_id)
        else:
            query = query.join(Warehouse, Warehouse.id == InventoryItem.warehouse_id).where(
                Warehouse.is_active.is_(True)
            )
        if audit.product_id is not None:
            query = query.where(InventoryItem.product_id == audit.product_id)

        query = query.order_by(InventoryItem.id).limit(self.cap_for(audit))

        result = await self.db.execute(query)
        return [(row[0], row[1]) for row in result.all()]

    async def materialize(self, audit: InventoryAudit) -> List[InventoryAuditItem]:
        """
        Add one PENDING item per selected row and flush.

        Nothing is committed here: the caller commits the items together with
        the status change.
        """
        rows = await self.select_rows(audit)

        seen = set()
        items = []
        for inventory, cost_price in rows:
            if inventory.id in seen:
                continue
            seen.add(inventory.id)
            items.append(InventoryAuditItem(
                audit_id=audit.id,
                product_id=inventory.product_id,
                variant_id=inventory.variant_id,
                warehouse_id=inventory.warehouse_id,
                inventory_item_id=inventory.id,
                location=inventory.location_code,
                expected_quantity=inventory.quantity,
                counted_quantity=None,
                variance=None,
                unit_cost=cost_price,
                status=AuditItemStatus.PENDING.value,
            ))

        self.db.add_all(items)
        await self.db.flush()

        logger.info(
            f"Sampled {len(items)} items for audit {audit.audit_number} "
            f"(scope={audit.warehouse_scope}, cap={self.cap_for(audit)})"
        )
        return items
