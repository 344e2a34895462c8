"""
Inventory Audit Schemas.

Pydantic schemas for audit planning, lifecycle and counting.
"""
from datetime import datetime
from decimal import Decimal
from typing import Dict, Optional, List, Literal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from stock_audit.models.audit import (
    AuditType, AuditMethod, AuditStatus, AuditItemStatus, ALL_WAREHOUSES,
    InventoryAuditItem,
)
from stock_audit.schemas.base import BaseResponseSchema, BaseRequestSchema


# ============================================================================
# AUDIT SCHEMAS
# ============================================================================

class AuditCreate(BaseRequestSchema):
    """Schema for planning a new audit."""
    audit_type: AuditType
    method: AuditMethod = AuditMethod.MANUAL
    warehouse_scope: str = Field(
        default=ALL_WAREHOUSES,
        description='Warehouse id, or "all" for every warehouse'
    )
    product_id: Optional[UUID] = None
    planned_date: datetime
    supervised_by: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None

    @field_validator('warehouse_scope')
    @classmethod
    def normalize_scope(cls, v: str) -> str:
        v = (v or ALL_WAREHOUSES).strip()
        if v.lower() == ALL_WAREHOUSES:
            return ALL_WAREHOUSES
        try:
            return str(UUID(v))
        except ValueError:
            raise ValueError('warehouse_scope must be a warehouse id or "all"')

    @property
    def warehouse_id(self) -> Optional[UUID]:
        if self.warehouse_scope == ALL_WAREHOUSES:
            return None
        return UUID(self.warehouse_scope)


class AuditUpdate(BaseRequestSchema):
    """Schema for patching an audit. `status` goes through the transition table."""
    status: Optional[AuditStatus] = None
    planned_date: Optional[datetime] = None
    supervised_by: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class AuditResponse(BaseResponseSchema):
    """Schema for audit response."""
    id: UUID
    audit_number: str
    audit_type: AuditType
    method: AuditMethod
    status: AuditStatus
    warehouse_id: Optional[UUID] = None
    warehouse_scope: str
    product_id: Optional[UUID] = None
    planned_date: datetime
    started_date: Optional[datetime] = None
    completed_date: Optional[datetime] = None
    items_planned: int
    items_counted: int
    discrepancies: int
    adjustment_value: Decimal
    audited_by: Optional[str] = None
    supervised_by: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class AuditListResponse(BaseModel):
    """Paginated audit list."""
    items: List[AuditResponse]
    total: int
    skip: int
    limit: int


class RunAuditResponse(BaseModel):
    """Result of the RUN action."""
    status: Literal["started"] = "started"
    items_generated: int


# ============================================================================
# AUDIT ITEM SCHEMAS
# ============================================================================

class AuditItemResponse(BaseResponseSchema):
    """Schema for an audit line."""
    id: UUID
    audit_id: UUID
    product_id: UUID
    product_name: Optional[str] = None
    sku: Optional[str] = None
    variant_id: Optional[UUID] = None
    variant_name: Optional[str] = None
    warehouse_id: UUID
    warehouse_name: Optional[str] = None
    inventory_item_id: UUID
    location: Optional[str] = None
    expected_quantity: int
    counted_quantity: Optional[int] = None
    variance: Optional[int] = None
    unit_cost: Optional[Decimal] = None
    status: AuditItemStatus
    counted_by_id: Optional[str] = None
    counted_at: Optional[datetime] = None
    verified_by_id: Optional[str] = None
    verified_at: Optional[datetime] = None
    discrepancy_reason: Optional[str] = None
    notes: Optional[str] = None

    @classmethod
    def from_item(cls, item: InventoryAuditItem) -> "AuditItemResponse":
        """Build from an item whose product/variant/warehouse are loaded."""
        response = cls.model_validate(item)
        if item.product is not None:
            response.product_name = item.product.name
            response.sku = item.product.sku
        if item.variant is not None:
            response.variant_name = item.variant.name
        if item.warehouse is not None:
            response.warehouse_name = item.warehouse.name
        return response


class AuditItemListResponse(BaseModel):
    items: List[AuditItemResponse]


class CountSubmission(BaseModel):
    """Counted quantity for one audit line."""
    counted_quantity: int = Field(..., ge=0)
    discrepancy_reason: Optional[str] = None
    notes: Optional[str] = None


class VerifySubmission(BaseModel):
    notes: Optional[str] = None


# ============================================================================
# STATS / DISCREPANCIES
# ============================================================================

class AuditStatsResponse(BaseModel):
    """Dashboard statistics."""
    total_audits: int
    active_audits: int
    completed_this_month: int
    discrepancies_found: int
    discrepancy_value: Decimal
    compliance_score: int
    last_audit_date: Optional[datetime] = None
    next_scheduled_audit: Optional[datetime] = None


class DiscrepancyResponse(BaseModel):
    """Audit line with a non-zero variance, enriched for review."""
    id: UUID
    audit_id: UUID
    audit_number: str
    audit_type: str
    completed_date: Optional[datetime] = None
    product_id: UUID
    product_name: Optional[str] = None
    sku: Optional[str] = None
    variant_name: Optional[str] = None
    warehouse_id: UUID
    warehouse_name: Optional[str] = None
    location: Optional[str] = None
    expected_quantity: int
    counted_quantity: int
    variance: int
    variance_percentage: float
    severity: Literal["HIGH", "MEDIUM", "LOW"]
    status: str
    discrepancy_reason: Optional[str] = None


class DiscrepancyListResponse(BaseModel):
    items: List[DiscrepancyResponse]
    total: int
    has_more: bool


# =============================================================================
# Root-cause analysis
# =============================================================================


class RootCause(BaseModel):
    """Discrepant lines sharing one recorded reason."""
    reason: str
    count: int
    total_adjustment: int
    average_adjustment: float
    affected_products: int
    affected_warehouses: int
    audit_types: Dict[str, int]
    severity: Literal["HIGH", "MEDIUM", "LOW"]


class RootCauseRecommendation(BaseModel):
    cause: str
    recommendation: str
    priority: Literal["HIGH", "MEDIUM", "LOW"]
    frequency: int


class RootCauseSummary(BaseModel):
    most_common_cause: Optional[str] = None
    high_severity_causes: int = 0


class RootCauseAnalysisResponse(BaseModel):
    root_causes: List[RootCause]
    total_discrepancies: int
    period: int
    recommendations: List[RootCauseRecommendation]
    common_reasons: List[str]
    summary: RootCauseSummary
