"""Compliance report submission endpoint."""
import logging

from fastapi import APIRouter, HTTPException, status

from stock_audit.api.deps import DB, Dispatcher
from stock_audit.core.exceptions import AuditValidationError
from stock_audit.schemas.report import ComplianceReportRequest, ReportJobAccepted
from stock_audit.services.report_aggregator import ReportAggregator

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "",
    response_model=ReportJobAccepted,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Request Compliance Report"
)
async def request_compliance_report(
    data: ComplianceReportRequest,
    db: DB,
    dispatcher: Dispatcher,
):
    """
    Accept a compliance report request.

    Returns a job descriptor with a synchronous data preview. Rendering and
    delivery run in the background.
    """
    try:
        accepted = await ReportAggregator(db).generate(data)
    except AuditValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message) from e

    dispatcher.dispatch(accepted.job)
    return accepted
