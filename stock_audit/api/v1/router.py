"""API v1 router combining all endpoint routers."""
from fastapi import APIRouter

from stock_audit.api.v1.endpoints import audits, reports

api_router = APIRouter(prefix="/api/v1")

# Reports first so "/audits/reports" is never read as an audit id
api_router.include_router(reports.router, prefix="/audits/reports", tags=["Compliance Reports"])
api_router.include_router(audits.router, prefix="/audits", tags=["Inventory Audits"])
