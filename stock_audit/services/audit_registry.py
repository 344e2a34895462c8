"""
Audit Registry.

Creation, lookup, listing and deletion of inventory audits. Every other
audit service reads audits through here.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, List, Tuple, Dict, Any
from uuid import UUID

from sqlalchemy import select, func, delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from stock_audit.core.enum_utils import get_enum_value
from stock_audit.core.exceptions import (
    NotFoundError, PreconditionFailedError, AuditValidationError
)
from stock_audit.models.audit import (
    InventoryAudit, InventoryAuditItem, AuditStatus, AuditType
)
from stock_audit.models.catalog import Warehouse, Product, ProductVariant
from stock_audit.schemas.audit import AuditCreate, AuditUpdate


logger = logging.getLogger(__name__)

AUDIT_NUMBER_PREFIX = "AUD"
AUDIT_NUMBER_PADDING = 6

# Fields a PATCH may change without going through the transition table
PATCHABLE_FIELDS = ("planned_date", "supervised_by", "notes")

DATE_RANGE_DAYS = {
    "week": 7,
    "month": 30,
    "quarter": 90,
}


class AuditRegistry:
    """Service for audit records."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ========================================================================
    # NUMBERING
    # ========================================================================

    async def _next_audit_number(self, now: Optional[datetime] = None) -> str:
        """
        Next number in the current year's sequence: AUD-2026-000042.

        The latest number is read with a row lock so two creators in the same
        transaction window serialize on it; the unique constraint backs this up.
        """
        now = now or datetime.now(timezone.utc)
        prefix = f"{AUDIT_NUMBER_PREFIX}-{now.year}-"

        result = await self.db.execute(
            select(InventoryAudit.audit_number)
            .where(InventoryAudit.audit_number.like(f"{prefix}%"))
            .order_by(InventoryAudit.audit_number.desc())
            .limit(1)
            .with_for_update()
        )
        last = result.scalar_one_or_none()

        seq = 1
        if last:
            try:
                seq = int(last.rsplit("-", 1)[-1]) + 1
            except ValueError:
                logger.warning(f"Unparseable audit number {last!r}, restarting sequence")

        return f"{prefix}{seq:0{AUDIT_NUMBER_PADDING}d}"

    # ========================================================================
    # CRUD
    # ========================================================================

    async def create(
        self,
        data: AuditCreate,
        audited_by: Optional[str] = None
    ) -> InventoryAudit:
        """Plan a new audit. Audits always start PLANNED."""
        warehouse_id = data.warehouse_id
        if warehouse_id is not None and await self.db.get(Warehouse, warehouse_id) is None:
            raise NotFoundError(f"Warehouse {warehouse_id} not found")
        if data.product_id is not None and await self.db.get(Product, data.product_id) is None:
            raise NotFoundError(f"Product {data.product_id} not found")

        try:
            audit = InventoryAudit(
                audit_number=await self._next_audit_number(),
                audit_type=get_enum_value(data.audit_type),
                method=get_enum_value(data.method),
                status=AuditStatus.PLANNED.value,
                warehouse_id=warehouse_id,
                product_id=data.product_id,
                planned_date=data.planned_date,
                audited_by=audited_by,
                supervised_by=data.supervised_by,
                notes=data.notes,
            )
            self.db.add(audit)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(audit)
        logger.info(
            f"Audit {audit.audit_number} planned: type={audit.audit_type} "
            f"scope={audit.warehouse_scope}"
        )
        return audit

    async def get(self, audit_id: UUID) -> InventoryAudit:
        """Get an audit by ID or raise NotFoundError."""
        audit = await self.db.get(InventoryAudit, audit_id)
        if audit is None:
            raise NotFoundError(f"Audit {audit_id} not found", {"audit_id": str(audit_id)})
        return audit

    async def list(
        self,
        audit_type: Optional[AuditType] = None,
        status: Optional[AuditStatus] = None,
        warehouse_id: Optional[UUID] = None,
        date_range: Optional[str] = None,
        skip: int = 0,
        limit: int = 50
    ) -> Tuple[List[InventoryAudit], int]:
        """List audits with filters, newest first."""
        query = select(InventoryAudit)

        if audit_type:
            query = query.where(InventoryAudit.audit_type == get_enum_value(audit_type))
        if status:
            query = query.where(InventoryAudit.status == get_enum_value(status))
        if warehouse_id:
            query = query.where(InventoryAudit.warehouse_id == warehouse_id)
        if date_range:
            query = query.where(InventoryAudit.created_at >= self._date_range_start(date_range))

        # Count
        count_query = select(func.count()).select_from(query.subquery())
        total = await self.db.scalar(count_query)

        # Paginate
        query = query.order_by(InventoryAudit.created_at.desc())
        query = query.offset(skip).limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all()), total or 0

    @staticmethod
    def _date_range_start(date_range: str) -> datetime:
        now = datetime.now(timezone.utc)
        if date_range == "today":
            return now.replace(hour=0, minute=0, second=0, microsecond=0)
        if date_range not in DATE_RANGE_DAYS:
            raise AuditValidationError(
                f"Invalid date range: {date_range}",
                {"allowed": ["today", *DATE_RANGE_DAYS]}
            )
        return now - timedelta(days=DATE_RANGE_DAYS[date_range])

    @staticmethod
    def field_patch_values(patch: AuditUpdate) -> Dict[str, Any]:
        """Column values for the non-status part of a patch."""
        update_data = patch.model_dump(exclude_unset=True)
        values = {field: update_data[field] for field in PATCHABLE_FIELDS if field in update_data}
        if values.get("planned_date", True) is None:
            raise AuditValidationError("planned_date cannot be cleared")
        return values

    async def update(self, audit_id: UUID, patch: AuditUpdate) -> InventoryAudit:
        """Apply field patches only. Status changes belong to LifecycleController."""
        audit = await self.get(audit_id)
        for field, value in self.field_patch_values(patch).items():
            setattr(audit, field, value)

        await self.db.commit()
        await self.db.refresh(audit)
        return audit

    async def delete(self, audit_id: UUID) -> None:
        """
        Delete an audit and all of its items in one transaction.

        IN_PROGRESS audits cannot be deleted. The audit delete is conditional on
        the status so that a RUN committing in between cannot be undercut.
        """
        audit = await self.get(audit_id)
        if audit.status == AuditStatus.IN_PROGRESS.value:
            raise PreconditionFailedError(
                "Cannot delete audit in progress",
                {"audit_id": str(audit_id), "status": audit.status}
            )

        audit_number = audit.audit_number
        try:
            items_result = await self.db.execute(
                delete(InventoryAuditItem).where(InventoryAuditItem.audit_id == audit_id)
            )
            audit_result = await self.db.execute(
                delete(InventoryAudit)
                .where(
                    InventoryAudit.id == audit_id,
                    InventoryAudit.status != AuditStatus.IN_PROGRESS.value,
                )
                .execution_options(synchronize_session=False)
            )
            if audit_result.rowcount != 1:
                raise PreconditionFailedError(
                    "Cannot delete audit in progress",
                    {"audit_id": str(audit_id)}
                )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        self.db.expunge(audit)
        logger.info(f"Audit {audit_number} deleted with {items_result.rowcount} items")

    # ========================================================================
    # ITEMS
    # ========================================================================

    async def list_items(self, audit_id: UUID) -> List[InventoryAuditItem]:
        """Audit lines ordered by product name, then variant name."""
        await self.get(audit_id)

        result = await self.db.execute(
            select(InventoryAuditItem)
            .join(Product, Product.id == InventoryAuditItem.product_id)
            .outerjoin(ProductVariant, ProductVariant.id == InventoryAuditItem.variant_id)
            .where(InventoryAuditItem.audit_id == audit_id)
            .options(
                selectinload(InventoryAuditItem.product),
                selectinload(InventoryAuditItem.variant),
                selectinload(InventoryAuditItem.warehouse),
            )
            .order_by(
                Product.name.asc(),
                ProductVariant.name.asc().nulls_first(),
                InventoryAuditItem.created_at.asc(),
                InventoryAuditItem.id.asc(),
            )
        )
        return list(result.scalars().all())
