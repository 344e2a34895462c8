"""
Inventory Audit Models.

Models for physical-stock verification campaigns:
- InventoryAudit: one campaign with its own lifecycle and warehouse scope
- InventoryAuditItem: one sampled inventory row with its frozen expected quantity
"""
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, List
from uuid import UUID, uuid4

from sqlalchemy import (
    String, Integer, DateTime, ForeignKey, Index, Text, UniqueConstraint
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_audit.core.enum_utils import enum_comment
from stock_audit.database import Base
from stock_audit.db_types import UUIDType, MoneyType


ALL_WAREHOUSES = "all"


# ============================================================================
# ENUMS
# ============================================================================

class AuditType(str, Enum):
    """Type of inventory audit."""
    FULL_INVENTORY = "FULL_INVENTORY"  # Wall-to-wall count
    CYCLE_COUNT = "CYCLE_COUNT"        # Recurring warehouse-scoped count
    SPOT_CHECK = "SPOT_CHECK"          # Random verification
    PRODUCT_AUDIT = "PRODUCT_AUDIT"    # Single product across locations
    ANNUAL = "ANNUAL"                  # Year-end statutory count


class AuditMethod(str, Enum):
    """How items are counted."""
    MANUAL = "MANUAL"
    BARCODE = "BARCODE"
    RFID = "RFID"


class AuditStatus(str, Enum):
    """Status of an audit."""
    PLANNED = "PLANNED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class AuditItemStatus(str, Enum):
    """Status of a single audit line."""
    PENDING = "PENDING"
    COUNTED = "COUNTED"
    VERIFIED = "VERIFIED"
    DISCREPANCY = "DISCREPANCY"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# MODELS
# ============================================================================

class InventoryAudit(Base):
    """
    Physical-stock verification campaign.

    A NULL warehouse_id means the audit covers all warehouses.
    """
    __tablename__ = "inventory_audits"
    __table_args__ = (
        Index("idx_audit_status_completed", "status", "completed_date"),
        Index("idx_audit_warehouse", "warehouse_id"),
    )

    id: Mapped[UUID] = mapped_column(UUIDType, primary_key=True, default=uuid4)
    audit_number: Mapped[str] = mapped_column(String(30), unique=True, nullable=False)

    audit_type: Mapped[str] = mapped_column(
        String(30), nullable=False, comment=enum_comment(AuditType)
    )
    method: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AuditMethod.MANUAL.value
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AuditStatus.PLANNED.value,
        comment=enum_comment(AuditStatus)
    )

    # Scope
    warehouse_id: Mapped[Optional[UUID]] = mapped_column(
        UUIDType, ForeignKey("warehouses.id")
    )
    product_id: Mapped[Optional[UUID]] = mapped_column(
        UUIDType, ForeignKey("products.id")
    )

    # Dates
    planned_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    started_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    completed_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Results
    items_planned: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    items_counted: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    discrepancies: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    adjustment_value: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )

    # People
    audited_by: Mapped[Optional[str]] = mapped_column(String(100))
    supervised_by: Mapped[Optional[str]] = mapped_column(String(100))

    notes: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    # Relationships
    warehouse = relationship("Warehouse")
    product = relationship("Product")
    items: Mapped[List["InventoryAuditItem"]] = relationship(
        "InventoryAuditItem",
        back_populates="audit",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def warehouse_scope(self) -> str:
        """Specific warehouse id, or "all"."""
        return str(self.warehouse_id) if self.warehouse_id else ALL_WAREHOUSES

    @property
    def is_full_inventory_scope(self) -> bool:
        return self.warehouse_id is None

    def __repr__(self):
        return f"<InventoryAudit {self.audit_number} {self.status}>"


class InventoryAuditItem(Base):
    """
    One inventory row sampled into an audit.

    expected_quantity is a snapshot taken at RUN time and never changes.
    variance is cached as counted_quantity - expected_quantity and must be
    rewritten together with counted_quantity.
    """
    __tablename__ = "inventory_audit_items"
    __table_args__ = (
        UniqueConstraint("audit_id", "inventory_item_id", name="uq_audit_item_inventory"),
        Index("idx_audit_item_audit", "audit_id"),
    )

    id: Mapped[UUID] = mapped_column(UUIDType, primary_key=True, default=uuid4)
    audit_id: Mapped[UUID] = mapped_column(
        UUIDType, ForeignKey("inventory_audits.id", ondelete="CASCADE"), nullable=False
    )

    # What is being counted
    product_id: Mapped[UUID] = mapped_column(UUIDType, ForeignKey("products.id"), nullable=False)
    variant_id: Mapped[Optional[UUID]] = mapped_column(UUIDType, ForeignKey("product_variants.id"))
    warehouse_id: Mapped[UUID] = mapped_column(UUIDType, ForeignKey("warehouses.id"), nullable=False)
    inventory_item_id: Mapped[UUID] = mapped_column(
        UUIDType, ForeignKey("inventory_items.id"), nullable=False
    )
    location: Mapped[Optional[str]] = mapped_column(String(50))

    # Quantities
    expected_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    counted_quantity: Mapped[Optional[int]] = mapped_column(Integer)
    variance: Mapped[Optional[int]] = mapped_column(Integer)
    unit_cost: Mapped[Optional[Decimal]] = mapped_column(MoneyType)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AuditItemStatus.PENDING.value,
        comment=enum_comment(AuditItemStatus)
    )

    # Counting / verification
    counted_by_id: Mapped[Optional[str]] = mapped_column(String(100))
    counted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    verified_by_id: Mapped[Optional[str]] = mapped_column(String(100))
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    discrepancy_reason: Mapped[Optional[str]] = mapped_column(Text)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )

    # Relationships
    audit: Mapped["InventoryAudit"] = relationship("InventoryAudit", back_populates="items")
    product = relationship("Product")
    variant = relationship("ProductVariant")
    warehouse = relationship("Warehouse")

    def set_counted_quantity(self, counted_quantity: Optional[int]) -> None:
        """Write the counted quantity and the cached variance together."""
        self.counted_quantity = counted_quantity
        self.variance = (
            None if counted_quantity is None
            else counted_quantity - self.expected_quantity
        )

    @property
    def has_discrepancy(self) -> bool:
        return self.variance is not None and self.variance != 0

    def __repr__(self):
        return f"<InventoryAuditItem {self.id} expected={self.expected_quantity}>"
