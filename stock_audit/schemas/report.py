"""Compliance report request and job descriptor schemas."""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, List, Dict, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from stock_audit.models.audit import AuditType


class ReportType(str, Enum):
    """Compliance report types the renderer understands."""
    AUDIT_SUMMARY = "AUDIT_SUMMARY"
    DISCREPANCY_ANALYSIS = "DISCREPANCY_ANALYSIS"
    COMPLIANCE_SCORECARD = "COMPLIANCE_SCORECARD"
    AUDIT_TRAIL = "AUDIT_TRAIL"
    CYCLE_COUNT_PERFORMANCE = "CYCLE_COUNT_PERFORMANCE"
    EXECUTIVE_DASHBOARD = "EXECUTIVE_DASHBOARD"


class ReportFormat(str, Enum):
    PDF = "PDF"
    XLSX = "XLSX"
    CSV = "CSV"


class ReportJobStatus(str, Enum):
    """Only GENERATING is set here; later states belong to the renderer."""
    GENERATING = "GENERATING"


class ReportFilters(BaseModel):
    warehouse_id: Optional[UUID] = None
    audit_type: Optional[AuditType] = None


class ComplianceReportRequest(BaseModel):
    """
    Report request.

    report_type, period and format stay loosely typed here so that the
    aggregator can reject unknown values before touching the database.
    """
    report_type: str
    period: Union[int, str] = "30"
    format: str = ReportFormat.PDF.value
    filters: ReportFilters = Field(default_factory=ReportFilters)
    recipients: List[str] = Field(default_factory=list)


class DateRange(BaseModel):
    from_: datetime = Field(..., alias="from")
    to: datetime

    model_config = ConfigDict(populate_by_name=True)


class DataPreview(BaseModel):
    """Aggregates computed synchronously at submission time."""
    total_audits: int
    date_range: DateRange
    audit_types: Dict[str, int]
    warehouses: List[str]
    total_discrepancies: int
    total_value_impact: Decimal


class ReportJob(BaseModel):
    """Transient descriptor of a report being rendered elsewhere."""
    id: str
    type: ReportType
    status: ReportJobStatus = ReportJobStatus.GENERATING
    progress: int = 0
    created_at: datetime
    estimated_completion: datetime
    format: ReportFormat
    filters: ReportFilters
    recipients: List[str]
    data_preview: DataPreview


class ReportJobAccepted(BaseModel):
    """202 response body for a report request."""
    success: bool = True
    job_id: str
    message: str
    job: ReportJob
    estimated_completion: datetime
    status_url: str
    download_url: str
    data_preview: DataPreview
