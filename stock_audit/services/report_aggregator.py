"""
Compliance Report Aggregator.

Builds the synchronous preview for a compliance report request and returns
a job descriptor. Rendering and delivery belong to an external renderer;
this module never mutates audits.
"""
import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional, Tuple
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stock_audit.config import settings
from stock_audit.core.enum_utils import get_enum_value, to_enum, enum_values
from stock_audit.core.exceptions import AuditValidationError
from stock_audit.models.audit import InventoryAudit, AuditStatus
from stock_audit.models.catalog import Warehouse
from stock_audit.schemas.report import (
    ComplianceReportRequest, DataPreview, DateRange, ReportFormat,
    ReportJob, ReportJobAccepted, ReportType,
)


logger = logging.getLogger(__name__)

DEFAULT_PERIOD_DAYS = 30
MAX_PERIOD_DAYS = 3650

# Estimated rendering time per report type, in minutes
REPORT_DURATION_MINUTES = {
    ReportType.AUDIT_SUMMARY: 1,
    ReportType.DISCREPANCY_ANALYSIS: 3,
    ReportType.COMPLIANCE_SCORECARD: 2,
    ReportType.AUDIT_TRAIL: 5,
    ReportType.CYCLE_COUNT_PERFORMANCE: 2,
    ReportType.EXECUTIVE_DASHBOARD: 4,
}


def parse_period(period) -> int:
    """Period in days; accepts an int or a numeric string."""
    if period is None or period == "":
        return DEFAULT_PERIOD_DAYS
    try:
        days = int(str(period).strip())
    except ValueError:
        raise AuditValidationError(f"Invalid period: {period}", {"period": period})
    if days <= 0:
        raise AuditValidationError("Period must be a positive number of days", {"period": period})
    if days > MAX_PERIOD_DAYS:
        raise AuditValidationError(
            f"Period must be at most {MAX_PERIOD_DAYS} days", {"period": period}
        )
    return days


def validate_request(request: ComplianceReportRequest) -> Tuple[ReportType, int, ReportFormat]:
    """Reject unknown report types, periods and formats before any query runs."""
    report_type = to_enum(request.report_type, ReportType)
    if report_type is None:
        raise AuditValidationError(
            "Invalid report type",
            {"report_type": request.report_type, "allowed": enum_values(ReportType)}
        )

    report_format = to_enum((request.format or ReportFormat.PDF.value).upper(), ReportFormat)
    if report_format is None:
        raise AuditValidationError(
            "Invalid report format",
            {"format": request.format, "allowed": enum_values(ReportFormat)}
        )

    return report_type, parse_period(request.period), report_format


class ReportAggregator:
    """Service for compliance report submissions."""

    def __init__(self, db: AsyncSession, url_prefix: Optional[str] = None):
        self.db = db
        self.url_prefix = (url_prefix or settings.REPORT_URL_PREFIX).rstrip("/")

    async def build_preview(
        self,
        request: ComplianceReportRequest,
        cutoff: datetime,
        now: datetime
    ) -> DataPreview:
        """Summary over COMPLETED audits completed on or after the cutoff."""
        query = (
            select(
                InventoryAudit.audit_type,
                InventoryAudit.discrepancies,
                InventoryAudit.adjustment_value,
                Warehouse.name,
            )
            .outerjoin(Warehouse, Warehouse.id == InventoryAudit.warehouse_id)
            .where(
                InventoryAudit.status == AuditStatus.COMPLETED.value,
                InventoryAudit.completed_date >= cutoff,
            )
        )

        filters = request.filters
        if filters.warehouse_id:
            query = query.where(InventoryAudit.warehouse_id == filters.warehouse_id)
        if filters.audit_type:
            query = query.where(InventoryAudit.audit_type == get_enum_value(filters.audit_type))

        query = query.order_by(InventoryAudit.completed_date.desc())
        rows = (await self.db.execute(query)).all()

        audit_types = Counter()
        warehouses = set()
        total_discrepancies = 0
        total_value_impact = Decimal("0")
        for audit_type, discrepancies, adjustment_value, warehouse_name in rows:
            audit_types[audit_type] += 1
            if warehouse_name:
                warehouses.add(warehouse_name)
            total_discrepancies += discrepancies or 0
            total_value_impact += Decimal(adjustment_value or 0)

        return DataPreview(
            total_audits=len(rows),
            date_range=DateRange(from_=cutoff, to=now),
            audit_types=dict(audit_types),
            warehouses=sorted(warehouses),
            total_discrepancies=total_discrepancies,
            total_value_impact=total_value_impact,
        )

    async def generate(
        self,
        request: ComplianceReportRequest,
        now: Optional[datetime] = None
    ) -> ReportJobAccepted:
        """Validate, aggregate and return a GENERATING job descriptor."""
        report_type, period_days, report_format = validate_request(request)

        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(days=period_days)
        preview = await self.build_preview(request, cutoff, now)

        job_id = f"{report_type.value.lower()}-{int(now.timestamp() * 1000)}-{uuid4().hex[:6]}"
        estimated_completion = now + timedelta(minutes=REPORT_DURATION_MINUTES[report_type])

        job = ReportJob(
            id=job_id,
            type=report_type,
            created_at=now,
            estimated_completion=estimated_completion,
            format=report_format,
            filters=request.filters,
            recipients=request.recipients,
            data_preview=preview,
        )

        logger.info(
            f"Report {job_id} accepted: {preview.total_audits} audits over {period_days} days, "
            f"format={report_format.value}"
        )

        return ReportJobAccepted(
            job_id=job_id,
            message=f"Report generation started for {report_type.value}",
            job=job,
            estimated_completion=estimated_completion,
            status_url=f"{self.url_prefix}/status/{job_id}",
            download_url=f"{self.url_prefix}/download/{job_id}",
            data_preview=preview,
        )
