"""
Audit Statistics Service.

Dashboard figures, the discrepancy review list and root-cause analysis.
"""
from collections import Counter, defaultdict
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional, List, Tuple
from uuid import UUID

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from stock_audit.core.exceptions import AuditValidationError
from stock_audit.models.audit import InventoryAudit, InventoryAuditItem, AuditStatus
from stock_audit.schemas.audit import (
    AuditStatsResponse, DiscrepancyResponse, RootCause, RootCauseAnalysisResponse,
    RootCauseRecommendation, RootCauseSummary,
)
from stock_audit.services.report_aggregator import parse_period


HIGH_SEVERITY_THRESHOLD = 100
MEDIUM_SEVERITY_THRESHOLD = 10
ON_TIME_TOLERANCE = timedelta(days=1)

COMMON_DISCREPANCY_REASONS = [
    "Shrinkage/Theft",
    "Receiving Error",
    "Shipping Error",
    "Location Mismatch",
    "System Error",
    "Damaged Goods",
    "Counting Error",
    "Expired Products",
    "Return Processing",
    "Production Variance",
    "Transfer Discrepancy",
    "Vendor Short/Over Shipment",
]

# Reason keyword -> corrective action, first match wins
RECOMMENDATIONS = [
    (("shrinkage", "theft"), "Implement enhanced security measures and increase cycle count frequency"),
    (("receiving",), "Improve receiving process training and implement dual verification"),
    (("location",), "Review warehouse layout and implement location verification technology"),
    (("counting",), "Provide additional training for counting procedures and implement count verification"),
    (("system",), "Review system processes and implement automated data validation"),
]
DEFAULT_RECOMMENDATION = "Investigate process improvements and implement preventive measures"
RECOMMENDATION_COUNT = 5


def severity_for(variance: int) -> str:
    magnitude = abs(variance)
    if magnitude >= HIGH_SEVERITY_THRESHOLD:
        return "HIGH"
    if magnitude >= MEDIUM_SEVERITY_THRESHOLD:
        return "MEDIUM"
    return "LOW"


def variance_percentage(variance: int, expected_quantity: int) -> float:
    if not expected_quantity:
        return 0.0
    return round(variance / expected_quantity * 100, 2)


def root_cause_severity(count: int, average_adjustment: float) -> str:
    if count >= 20 or average_adjustment >= 50:
        return "HIGH"
    if count >= 10 or average_adjustment >= 20:
        return "MEDIUM"
    return "LOW"


def recommendation_for(reason: str) -> str:
    lowered = reason.lower()
    for keywords, recommendation in RECOMMENDATIONS:
        if any(keyword in lowered for keyword in keywords):
            return recommendation
    return DEFAULT_RECOMMENDATION


def _severity_condition(severity: str):
    magnitude = func.abs(InventoryAuditItem.variance)
    if severity == "HIGH":
        return magnitude >= HIGH_SEVERITY_THRESHOLD
    if severity == "MEDIUM":
        return and_(magnitude >= MEDIUM_SEVERITY_THRESHOLD, magnitude < HIGH_SEVERITY_THRESHOLD)
    if severity == "LOW":
        return magnitude < MEDIUM_SEVERITY_THRESHOLD
    raise AuditValidationError(
        f"Invalid severity: {severity}",
        {"allowed": ["HIGH", "MEDIUM", "LOW"]}
    )


class AuditStatsService:
    """Read-only statistics over audits and their items."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _count(self, *conditions) -> int:
        query = select(func.count(InventoryAudit.id))
        if conditions:
            query = query.where(*conditions)
        return await self.db.scalar(query) or 0

    async def get_stats(self, now: Optional[datetime] = None) -> AuditStatsResponse:
        now = now or datetime.now(timezone.utc)
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        completed = InventoryAudit.status == AuditStatus.COMPLETED.value

        total_audits = await self._count()
        active_audits = await self._count(InventoryAudit.status == AuditStatus.IN_PROGRESS.value)
        completed_this_month = await self._count(completed, InventoryAudit.completed_date >= month_start)

        # Discrepancy lines across all audits
        result = await self.db.execute(
            select(InventoryAuditItem.variance, InventoryAuditItem.unit_cost).where(
                InventoryAuditItem.variance.is_not(None),
                InventoryAuditItem.variance != 0,
            )
        )
        discrepancy_rows = result.all()
        discrepancy_value = sum(
            (abs(Decimal(variance)) * Decimal(unit_cost or 0) for variance, unit_cost in discrepancy_rows),
            Decimal("0"),
        )

        # On time = completed within a day of the planned date
        result = await self.db.execute(
            select(InventoryAudit.planned_date, InventoryAudit.completed_date).where(
                completed, InventoryAudit.completed_date.is_not(None)
            )
        )
        on_time = sum(
            1 for planned, done in result.all()
            if planned is not None and abs(done - planned) <= ON_TIME_TOLERANCE
        )
        compliance_score = round(on_time / total_audits * 100) if total_audits else 100

        last_audit_date = await self.db.scalar(
            select(func.max(InventoryAudit.completed_date)).where(completed)
        )
        next_scheduled_audit = await self.db.scalar(
            select(func.min(InventoryAudit.planned_date)).where(
                InventoryAudit.status == AuditStatus.PLANNED.value
            )
        )

        return AuditStatsResponse(
            total_audits=total_audits,
            active_audits=active_audits,
            completed_this_month=completed_this_month,
            discrepancies_found=len(discrepancy_rows),
            discrepancy_value=discrepancy_value.quantize(Decimal("0.01")),
            compliance_score=compliance_score,
            last_audit_date=last_audit_date,
            next_scheduled_audit=next_scheduled_audit,
        )

    async def list_discrepancies(
        self,
        period="30",
        warehouse_id: Optional[UUID] = None,
        product_id: Optional[UUID] = None,
        severity: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
        now: Optional[datetime] = None
    ) -> Tuple[List[DiscrepancyResponse], int]:
        """Non-zero variance lines from audits completed within the period, largest first."""
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(days=parse_period(period))

        conditions = [
            InventoryAudit.status == AuditStatus.COMPLETED.value,
            InventoryAudit.completed_date >= cutoff,
            InventoryAuditItem.variance.is_not(None),
            InventoryAuditItem.variance != 0,
        ]
        if warehouse_id:
            conditions.append(InventoryAuditItem.warehouse_id == warehouse_id)
        if product_id:
            conditions.append(InventoryAuditItem.product_id == product_id)
        if severity:
            conditions.append(_severity_condition(severity.upper()))

        base = (
            select(InventoryAuditItem)
            .join(InventoryAudit, InventoryAudit.id == InventoryAuditItem.audit_id)
            .where(*conditions)
        )

        total = await self.db.scalar(select(func.count()).select_from(base.subquery())) or 0

        result = await self.db.execute(
            base.options(
                selectinload(InventoryAuditItem.audit),
                selectinload(InventoryAuditItem.product),
                selectinload(InventoryAuditItem.variant),
                selectinload(InventoryAuditItem.warehouse),
            )
            .order_by(InventoryAuditItem.variance.desc(), InventoryAudit.completed_date.desc())
            .offset(skip)
            .limit(limit)
        )

        items = [
            DiscrepancyResponse(
                id=item.id,
                audit_id=item.audit_id,
                audit_number=item.audit.audit_number,
                audit_type=item.audit.audit_type,
                completed_date=item.audit.completed_date,
                product_id=item.product_id,
                product_name=item.product.name if item.product else None,
                sku=item.product.sku if item.product else None,
                variant_name=item.variant.name if item.variant else None,
                warehouse_id=item.warehouse_id,
                warehouse_name=item.warehouse.name if item.warehouse else None,
                location=item.location,
                expected_quantity=item.expected_quantity,
                counted_quantity=item.counted_quantity,
                variance=item.variance,
                variance_percentage=variance_percentage(item.variance, item.expected_quantity),
                severity=severity_for(item.variance),
                status=item.status,
                discrepancy_reason=item.discrepancy_reason,
            )
            for item in result.scalars().all()
        ]
        return items, total

    async def root_causes(
        self,
        period="30",
        limit: int = 20,
        now: Optional[datetime] = None
    ) -> RootCauseAnalysisResponse:
        """Group discrepant lines with a recorded reason, most frequent reason first."""
        period_days = parse_period(period)
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(days=period_days)

        result = await self.db.execute(
            select(
                InventoryAuditItem.discrepancy_reason,
                InventoryAuditItem.variance,
                InventoryAuditItem.product_id,
                InventoryAuditItem.warehouse_id,
                InventoryAudit.audit_type,
            )
            .join(InventoryAudit, InventoryAudit.id == InventoryAuditItem.audit_id)
            .where(
                InventoryAudit.status == AuditStatus.COMPLETED.value,
                InventoryAudit.completed_date >= cutoff,
                InventoryAuditItem.variance.is_not(None),
                InventoryAuditItem.variance != 0,
                InventoryAuditItem.discrepancy_reason.is_not(None),
                InventoryAuditItem.discrepancy_reason != "",
            )
        )
        rows = result.all()

        grouped = defaultdict(list)
        for row in rows:
            grouped[row.discrepancy_reason.strip()].append(row)

        causes = []
        for reason, lines in grouped.items():
            total_adjustment = sum(abs(line.variance) for line in lines)
            average_adjustment = round(total_adjustment / len(lines), 2)
            causes.append(RootCause(
                reason=reason,
                count=len(lines),
                total_adjustment=total_adjustment,
                average_adjustment=average_adjustment,
                affected_products=len({line.product_id for line in lines}),
                affected_warehouses=len({line.warehouse_id for line in lines if line.warehouse_id}),
                audit_types=dict(Counter(line.audit_type for line in lines)),
                severity=root_cause_severity(len(lines), average_adjustment),
            ))
        causes.sort(key=lambda cause: (-cause.count, cause.reason))
        causes = causes[:limit]

        recommendations = [
            RootCauseRecommendation(
                cause=cause.reason,
                recommendation=recommendation_for(cause.reason),
                priority=cause.severity,
                frequency=cause.count,
            )
            for cause in causes[:RECOMMENDATION_COUNT]
        ]

        return RootCauseAnalysisResponse(
            root_causes=causes,
            total_discrepancies=len(rows),
            period=period_days,
            recommendations=recommendations,
            common_reasons=COMMON_DISCREPANCY_REASONS,
            summary=RootCauseSummary(
                most_common_cause=causes[0].reason if causes else None,
                high_severity_causes=sum(1 for cause in causes if cause.severity == "HIGH"),
            ),
        )
