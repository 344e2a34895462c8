"""
Tests for compliance report requests.

Validates:
- unknown report types, formats and periods are rejected before any query
- the preview covers COMPLETED audits inside the period only
- job descriptors carry ids, links and per-type completion estimates
- dispatch hands the job to the scheduler without waiting
- scheduler shutdown reports the queued jobs it leaves unrun
"""
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from stock_audit.core.exceptions import AuditValidationError
from stock_audit.jobs.report_dispatch import ReportDispatcher, _render
from stock_audit.jobs.scheduler import scheduler, shutdown_scheduler
from stock_audit.models import AuditStatus, AuditType
from stock_audit.schemas.report import (
    ComplianceReportRequest, ReportFilters, ReportFormat, ReportJobStatus, ReportType,
)
from stock_audit.services.report_aggregator import (
    MAX_PERIOD_DAYS, REPORT_DURATION_MINUTES, ReportAggregator, parse_period, validate_request,
)

from tests.conftest import make_audit


NOW = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)


class NoQuerySession:
    """Fails the test if the aggregator touches the database."""

    async def execute(self, *args, **kwargs):
        raise AssertionError("database queried")


class TestValidation:

    def test_invalid_report_type(self):
        with pytest.raises(AuditValidationError) as exc_info:
            validate_request(ComplianceReportRequest(report_type="QUARTERLY_GOSSIP"))
        assert "allowed" in exc_info.value.details

    async def test_invalid_type_never_queries(self):
        aggregator = ReportAggregator(NoQuerySession())
        with pytest.raises(AuditValidationError):
            await aggregator.generate(ComplianceReportRequest(report_type="NOPE"))

    async def test_invalid_format_never_queries(self):
        aggregator = ReportAggregator(NoQuerySession())
        with pytest.raises(AuditValidationError):
            await aggregator.generate(ComplianceReportRequest(report_type="AUDIT_TRAIL", format="DOCX"))

    def test_format_case_insensitive(self):
        _, _, report_format = validate_request(
            ComplianceReportRequest(report_type="AUDIT_SUMMARY", format="xlsx")
        )
        assert report_format == ReportFormat.XLSX

    @pytest.mark.parametrize("period,days", [
        (None, 30), ("", 30), ("7", 7), (90, 90), (" 14 ", 14), (MAX_PERIOD_DAYS, MAX_PERIOD_DAYS),
    ])
    def test_parse_period(self, period, days):
        assert parse_period(period) == days

    @pytest.mark.parametrize("period", ["abc", "0", -5, "1.5", MAX_PERIOD_DAYS + 1, "1000000"])
    def test_bad_period(self, period):
        with pytest.raises(AuditValidationError):
            parse_period(period)

    async def test_huge_period_never_queries(self):
        aggregator = ReportAggregator(NoQuerySession())
        with pytest.raises(AuditValidationError) as exc_info:
            await aggregator.generate(
                ComplianceReportRequest(report_type="AUDIT_TRAIL", period="1000000"), now=NOW
            )
        assert exc_info.value.details == {"period": "1000000"}


class TestPreview:

    async def test_audit_trail_window(self, session, catalog):
        """5 completed inside a 30-day window, 2 outside, plus open audits."""
        warehouse = await catalog.warehouse(name="North DC")
        for days_ago in (1, 5, 10, 20, 29):
            await make_audit(
                session, warehouse=warehouse, status=AuditStatus.COMPLETED,
                completed_date=NOW - timedelta(days=days_ago),
                discrepancies=2, adjustment_value=Decimal("-12.50"),
            )
        for days_ago in (31, 60):
            await make_audit(
                session, warehouse=warehouse, status=AuditStatus.COMPLETED,
                completed_date=NOW - timedelta(days=days_ago),
                discrepancies=9, adjustment_value=Decimal("100.00"),
            )
        await make_audit(session, warehouse=warehouse, status=AuditStatus.IN_PROGRESS)
        await make_audit(session, warehouse=warehouse, status=AuditStatus.CANCELLED)

        accepted = await ReportAggregator(session).generate(
            ComplianceReportRequest(report_type="AUDIT_TRAIL", period="30"), now=NOW
        )

        preview = accepted.data_preview
        assert preview.total_audits == 5
        assert preview.total_discrepancies == 10
        assert preview.total_value_impact == Decimal("-62.50")
        assert preview.warehouses == ["North DC"]
        assert preview.audit_types == {AuditType.CYCLE_COUNT.value: 5}
        assert preview.date_range.from_ == NOW - timedelta(days=30)
        assert preview.date_range.to == NOW

    async def test_filters(self, session, catalog):
        north = await catalog.warehouse(name="North DC")
        south = await catalog.warehouse(name="South DC")
        done = NOW - timedelta(days=2)
        await make_audit(session, warehouse=north, status=AuditStatus.COMPLETED, completed_date=done)
        await make_audit(
            session, warehouse=north, status=AuditStatus.COMPLETED, completed_date=done,
            audit_type=AuditType.SPOT_CHECK,
        )
        await make_audit(session, warehouse=south, status=AuditStatus.COMPLETED, completed_date=done)
        await make_audit(session, warehouse=None, status=AuditStatus.COMPLETED, completed_date=done,
                         audit_type=AuditType.FULL_INVENTORY)
        aggregator = ReportAggregator(session)

        by_warehouse = await aggregator.generate(
            ComplianceReportRequest(report_type="AUDIT_SUMMARY", filters=ReportFilters(warehouse_id=north.id)),
            now=NOW,
        )
        by_type = await aggregator.generate(
            ComplianceReportRequest(
                report_type="AUDIT_SUMMARY", filters=ReportFilters(audit_type=AuditType.CYCLE_COUNT)
            ),
            now=NOW,
        )
        everything = await aggregator.generate(ComplianceReportRequest(report_type="AUDIT_SUMMARY"), now=NOW)

        assert by_warehouse.data_preview.total_audits == 2
        assert by_type.data_preview.warehouses == ["North DC", "South DC"]
        assert everything.data_preview.total_audits == 4
        assert everything.data_preview.audit_types == {
            "CYCLE_COUNT": 2, "SPOT_CHECK": 1, "FULL_INVENTORY": 1,
        }

    async def test_empty_window(self, session):
        accepted = await ReportAggregator(session).generate(
            ComplianceReportRequest(report_type="EXECUTIVE_DASHBOARD", period=7), now=NOW
        )
        assert accepted.data_preview.total_audits == 0
        assert accepted.data_preview.total_value_impact == Decimal("0")
        assert accepted.data_preview.warehouses == []


class TestJobDescriptor:

    async def test_descriptor(self, session):
        accepted = await ReportAggregator(session, url_prefix="/reports/").generate(
            ComplianceReportRequest(report_type="DISCREPANCY_ANALYSIS", format="CSV", recipients=["ops@example.com"]),
            now=NOW,
        )

        job = accepted.job
        prefix, millis, suffix = job.id.split("-")
        assert prefix == "discrepancy_analysis"
        assert millis == str(int(NOW.timestamp() * 1000))
        assert len(suffix) == 6
        assert job.status == ReportJobStatus.GENERATING
        assert job.progress == 0
        assert job.format == ReportFormat.CSV
        assert job.recipients == ["ops@example.com"]
        assert accepted.success is True
        assert accepted.job_id == job.id
        assert accepted.status_url == f"/reports/status/{job.id}"
        assert accepted.download_url == f"/reports/download/{job.id}"

    @pytest.mark.parametrize("report_type,minutes", [
        ("AUDIT_SUMMARY", 1),
        ("DISCREPANCY_ANALYSIS", 3),
        ("COMPLIANCE_SCORECARD", 2),
        ("AUDIT_TRAIL", 5),
        ("CYCLE_COUNT_PERFORMANCE", 2),
        ("EXECUTIVE_DASHBOARD", 4),
    ])
    async def test_estimated_completion(self, session, report_type, minutes):
        accepted = await ReportAggregator(session).generate(
            ComplianceReportRequest(report_type=report_type), now=NOW
        )
        assert accepted.estimated_completion == NOW + timedelta(minutes=minutes)
        assert REPORT_DURATION_MINUTES[ReportType(report_type)] == minutes

    async def test_ids_unique(self, session):
        aggregator = ReportAggregator(session)
        request = ComplianceReportRequest(report_type="AUDIT_SUMMARY")
        first = await aggregator.generate(request, now=NOW)
        second = await aggregator.generate(request, now=NOW)
        assert first.job_id != second.job_id


class TestDispatch:

    async def test_dispatch_schedules_once(self, session, recording_scheduler):
        accepted = await ReportAggregator(session).generate(
            ComplianceReportRequest(report_type="AUDIT_SUMMARY"), now=NOW
        )
        dispatcher = ReportDispatcher(scheduler=recording_scheduler)

        job_id = dispatcher.dispatch(accepted.job)

        assert job_id == f"report:{accepted.job_id}"
        [scheduled] = recording_scheduler.jobs
        assert scheduled["trigger"] == "date"
        assert scheduled["args"][1] is accepted.job

    async def test_renderer_failure_is_contained(self, session):
        accepted = await ReportAggregator(session).generate(
            ComplianceReportRequest(report_type="AUDIT_SUMMARY"), now=NOW
        )

        async def broken_renderer(job):
            raise RuntimeError("renderer offline")

        await _render(broken_renderer, accepted.job)

    async def test_renderer_receives_job(self, session):
        accepted = await ReportAggregator(session).generate(
            ComplianceReportRequest(report_type="AUDIT_SUMMARY"), now=NOW
        )
        received = []

        async def renderer(job):
            received.append(job)

        await _render(renderer, accepted.job)
        assert received == [accepted.job]


class TestSchedulerShutdown:

    async def test_shutdown_reports_queued_jobs(self, caplog):
        scheduler.start()
        scheduler.add_job(
            _render, 'date', run_date=datetime.now(timezone.utc) + timedelta(hours=1),
            args=[None, None], id="report:queued",
        )
        try:
            with caplog.at_level(logging.INFO, logger="stock_audit.jobs.scheduler"):
                shutdown_scheduler()
        finally:
            scheduler.remove_all_jobs()

        assert not scheduler.running
        assert "1 queued jobs were not run" in caplog.text
        assert "dropped" not in caplog.text
