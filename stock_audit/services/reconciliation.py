"""
Reconciliation Engine.

Per-item count recording and the audit-level totals written at COMPLETE.
Totals are derived only from the audit's own items and are recomputed in
full each time, so completing twice over the same items gives the same result.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Dict, Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from stock_audit.core.exceptions import (
    NotFoundError, PreconditionFailedError, AuditValidationError
)
from stock_audit.models.audit import (
    InventoryAudit, InventoryAuditItem, AuditStatus, AuditItemStatus
)


logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


@dataclass(frozen=True)
class ReconciliationSummary:
    items_counted: int
    discrepancies: int
    adjustment_value: Decimal

    def as_values(self) -> Dict[str, Any]:
        return {
            "items_counted": self.items_counted,
            "discrepancies": self.discrepancies,
            "adjustment_value": self.adjustment_value,
        }


def summarize(items: Iterable[InventoryAuditItem]) -> ReconciliationSummary:
    """
    Totals over a set of audit items.

    adjustment_value is signed: shortages reduce it, overages increase it.
    Items without a unit cost contribute nothing.
    """
    items_counted = 0
    discrepancies = 0
    adjustment_value = Decimal("0")

    for item in items:
        if item.counted_quantity is not None:
            items_counted += 1
        if item.has_discrepancy:
            discrepancies += 1
            if item.unit_cost is not None:
                adjustment_value += Decimal(item.variance) * Decimal(item.unit_cost)

    return ReconciliationSummary(
        items_counted=items_counted,
        discrepancies=discrepancies,
        adjustment_value=adjustment_value.quantize(CENTS, rounding=ROUND_HALF_UP),
    )


class ReconciliationEngine:
    """Service for counting and reconciling audit items."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def summarize_audit(self, audit_id: UUID) -> ReconciliationSummary:
        """Load the audit's items and compute its totals."""
        result = await self.db.execute(
            select(InventoryAuditItem).where(InventoryAuditItem.audit_id == audit_id)
        )
        summary = summarize(result.scalars().all())
        logger.info(
            f"Reconciled audit {audit_id}: counted={summary.items_counted} "
            f"discrepancies={summary.discrepancies} value={summary.adjustment_value}"
        )
        return summary

    async def _get_item(self, audit_id: UUID, item_id: UUID) -> InventoryAuditItem:
        result = await self.db.execute(
            select(InventoryAuditItem)
            .where(
                InventoryAuditItem.id == item_id,
                InventoryAuditItem.audit_id == audit_id,
            )
            .options(
                selectinload(InventoryAuditItem.audit),
                selectinload(InventoryAuditItem.product),
                selectinload(InventoryAuditItem.variant),
                selectinload(InventoryAuditItem.warehouse),
            )
        )
        item = result.scalar_one_or_none()
        if item is None:
            raise NotFoundError(
                f"Audit item {item_id} not found in audit {audit_id}",
                {"audit_id": str(audit_id), "item_id": str(item_id)}
            )
        return item

    @staticmethod
    def _require_in_progress(audit: InventoryAudit) -> None:
        if audit.status != AuditStatus.IN_PROGRESS.value:
            raise PreconditionFailedError(
                f"Audit {audit.audit_number} is not in progress (status: {audit.status})",
                {"status": audit.status}
            )

    async def record_count(
        self,
        audit_id: UUID,
        item_id: UUID,
        counted_quantity: int,
        counted_by: Optional[str] = None,
        discrepancy_reason: Optional[str] = None,
        notes: Optional[str] = None
    ) -> InventoryAuditItem:
        """
        Record a counted quantity for one line and refresh its variance.

        A recount replaces the previous count and clears any verification.
        """
        if counted_quantity is None or counted_quantity < 0:
            raise AuditValidationError(
                "counted_quantity must be zero or positive",
                {"counted_quantity": counted_quantity}
            )

        item = await self._get_item(audit_id, item_id)
        self._require_in_progress(item.audit)

        try:
            item.set_counted_quantity(counted_quantity)
            item.counted_by_id = counted_by
            item.counted_at = datetime.now(timezone.utc)
            item.verified_by_id = None
            item.verified_at = None
            item.status = (
                AuditItemStatus.DISCREPANCY.value if item.has_discrepancy
                else AuditItemStatus.COUNTED.value
            )
            if discrepancy_reason is not None:
                item.discrepancy_reason = discrepancy_reason
            if notes is not None:
                item.notes = notes
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            f"Counted item {item.id} in audit {item.audit.audit_number}: "
            f"expected={item.expected_quantity} counted={counted_quantity} variance={item.variance}"
        )
        return item

    async def verify_item(
        self,
        audit_id: UUID,
        item_id: UUID,
        verified_by: Optional[str] = None,
        notes: Optional[str] = None
    ) -> InventoryAuditItem:
        """Supervisor sign-off on a counted line."""
        item = await self._get_item(audit_id, item_id)
        self._require_in_progress(item.audit)

        if item.counted_quantity is None:
            raise PreconditionFailedError(
                "Item has not been counted yet",
                {"item_id": str(item_id)}
            )

        try:
            item.status = AuditItemStatus.VERIFIED.value
            item.verified_by_id = verified_by
            item.verified_at = datetime.now(timezone.utc)
            if notes is not None:
                item.notes = notes
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        return item
