"""
Inventory Audit API Endpoints.

API endpoints for audit operations including:
- Audit planning, listing and deletion
- Lifecycle: run, status patches
- Item counting and verification
- Dashboard statistics, discrepancy review and root causes
"""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from stock_audit.api.deps import DB, Identity
from stock_audit.core.exceptions import (
    AuditError, NotFoundError, InvalidTransitionError,
    PreconditionFailedError, AuditValidationError,
)
from stock_audit.models.audit import AuditType, AuditStatus
from stock_audit.schemas.audit import (
    AuditCreate, AuditUpdate, AuditResponse, AuditListResponse, RunAuditResponse,
    AuditItemResponse, AuditItemListResponse, CountSubmission, VerifySubmission,
    AuditStatsResponse, DiscrepancyListResponse, RootCauseAnalysisResponse,
)
from stock_audit.services.audit_registry import AuditRegistry
from stock_audit.services.audit_stats import AuditStatsService
from stock_audit.services.lifecycle import LifecycleController
from stock_audit.services.reconciliation import ReconciliationEngine

router = APIRouter()

ERROR_STATUS = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidTransitionError: status.HTTP_400_BAD_REQUEST,
    PreconditionFailedError: status.HTTP_409_CONFLICT,
    AuditValidationError: status.HTTP_400_BAD_REQUEST,
}


def http_error(exc: AuditError) -> HTTPException:
    """Translate a domain error into an HTTP error carrying its message."""
    return HTTPException(
        status_code=ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST),
        detail=exc.message,
    )


# ============================================================================
# AUDITS
# ============================================================================

@router.post(
    "",
    response_model=AuditResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Plan Audit"
)
async def create_audit(data: AuditCreate, db: DB, identity: Identity):
    """Plan a new audit in PLANNED status."""
    try:
        return await AuditRegistry(db).create(data, audited_by=identity.user_id)
    except AuditError as e:
        raise http_error(e) from e


@router.get("", response_model=AuditListResponse, summary="List Audits")
async def list_audits(
    db: DB,
    audit_type: Optional[AuditType] = None,
    audit_status: Optional[AuditStatus] = Query(None, alias="status"),
    warehouse_id: Optional[UUID] = None,
    date_range: Optional[str] = Query(None, pattern="^(today|week|month|quarter)$"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
):
    """List audits, newest first."""
    audits, total = await AuditRegistry(db).list(
        audit_type=audit_type,
        status=audit_status,
        warehouse_id=warehouse_id,
        date_range=date_range,
        skip=skip,
        limit=limit,
    )
    return AuditListResponse(
        items=[AuditResponse.model_validate(a) for a in audits],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get("/stats", response_model=AuditStatsResponse, summary="Audit Dashboard Stats")
async def get_audit_stats(db: DB):
    return await AuditStatsService(db).get_stats()


@router.get(
    "/discrepancies",
    response_model=DiscrepancyListResponse,
    summary="List Discrepancies"
)
async def list_discrepancies(
    db: DB,
    period: str = "30",
    warehouse_id: Optional[UUID] = None,
    product_id: Optional[UUID] = None,
    severity: Optional[str] = Query(None, pattern="^(HIGH|MEDIUM|LOW)$"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
):
    """Counted lines with a non-zero variance from recently completed audits."""
    try:
        items, total = await AuditStatsService(db).list_discrepancies(
            period=period,
            warehouse_id=warehouse_id,
            product_id=product_id,
            severity=severity,
            skip=skip,
            limit=limit,
        )
    except AuditError as e:
        raise http_error(e) from e
    return DiscrepancyListResponse(items=items, total=total, has_more=skip + limit < total)


@router.get(
    "/discrepancies/root-causes",
    response_model=RootCauseAnalysisResponse,
    summary="Discrepancy Root Causes"
)
async def discrepancy_root_causes(
    db: DB,
    period: str = "30",
    limit: int = Query(20, ge=1, le=100),
):
    """Discrepancies grouped by recorded reason, with corrective recommendations."""
    try:
        return await AuditStatsService(db).root_causes(period=period, limit=limit)
    except AuditError as e:
        raise http_error(e) from e


@router.get("/{audit_id}", response_model=AuditResponse, summary="Get Audit")
async def get_audit(audit_id: UUID, db: DB):
    try:
        return await AuditRegistry(db).get(audit_id)
    except AuditError as e:
        raise http_error(e) from e


@router.patch("/{audit_id}", response_model=AuditResponse, summary="Update Audit")
async def patch_audit(audit_id: UUID, data: AuditUpdate, db: DB, identity: Identity):
    """
    Update plan fields and/or move the audit through its lifecycle.

    Status changes follow the transition table; moving to IN_PROGRESS
    samples items, moving to COMPLETED reconciles totals.
    """
    try:
        return await LifecycleController(db).patch(audit_id, data, identity)
    except AuditError as e:
        raise http_error(e) from e


@router.delete("/{audit_id}", summary="Delete Audit")
async def delete_audit(audit_id: UUID, db: DB):
    """Delete an audit and its items. Audits in progress cannot be deleted."""
    try:
        await AuditRegistry(db).delete(audit_id)
    except AuditError as e:
        raise http_error(e) from e
    return {"message": "Audit deleted successfully"}


@router.post("/{audit_id}/run", response_model=RunAuditResponse, summary="Run Audit")
async def run_audit(audit_id: UUID, db: DB, identity: Identity):
    """Start a PLANNED audit and generate its items."""
    try:
        audit = await LifecycleController(db).run(audit_id, identity)
    except AuditError as e:
        raise http_error(e) from e
    return RunAuditResponse(items_generated=audit.items_planned)


# ============================================================================
# AUDIT ITEMS
# ============================================================================

@router.get(
    "/{audit_id}/items",
    response_model=AuditItemListResponse,
    summary="List Audit Items"
)
async def list_audit_items(audit_id: UUID, db: DB):
    """Audit lines ordered by product name, then variant name."""
    try:
        items = await AuditRegistry(db).list_items(audit_id)
    except AuditError as e:
        raise http_error(e) from e
    return AuditItemListResponse(items=[AuditItemResponse.from_item(i) for i in items])


@router.post(
    "/{audit_id}/items/{item_id}/count",
    response_model=AuditItemResponse,
    summary="Record Count"
)
async def record_count(
    audit_id: UUID,
    item_id: UUID,
    data: CountSubmission,
    db: DB,
    identity: Identity,
):
    try:
        item = await ReconciliationEngine(db).record_count(
            audit_id,
            item_id,
            data.counted_quantity,
            counted_by=identity.user_id,
            discrepancy_reason=data.discrepancy_reason,
            notes=data.notes,
        )
    except AuditError as e:
        raise http_error(e) from e
    return AuditItemResponse.from_item(item)


@router.post(
    "/{audit_id}/items/{item_id}/verify",
    response_model=AuditItemResponse,
    summary="Verify Count"
)
async def verify_item(
    audit_id: UUID,
    item_id: UUID,
    db: DB,
    identity: Identity,
    data: Optional[VerifySubmission] = None,
):
    try:
        item = await ReconciliationEngine(db).verify_item(
            audit_id,
            item_id,
            verified_by=identity.user_id,
            notes=data.notes if data else None,
        )
    except AuditError as e:
        raise http_error(e) from e
    return AuditItemResponse.from_item(item)
