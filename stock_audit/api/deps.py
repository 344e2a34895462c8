from typing import Annotated, Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from stock_audit.core.identity import RequestIdentity
from stock_audit.database import get_db
from stock_audit.jobs.report_dispatch import ReportDispatcher, report_dispatcher


DB = Annotated[AsyncSession, Depends(get_db)]


async def get_request_identity(
    x_user_id: Annotated[Optional[str], Header()] = None,
    x_full_inventory_access: Annotated[bool, Header()] = False,
) -> RequestIdentity:
    """
    Identity of the caller as established by the authentication layer.

    Authentication itself happens upstream; this service only reads the
    resulting user id and the full-inventory authorization flag.
    """
    return RequestIdentity(
        user_id=x_user_id,
        can_audit_all_warehouses=x_full_inventory_access,
    )

Identity = Annotated[RequestIdentity, Depends(get_request_identity)]

def get_report_dispatcher() -> ReportDispatcher:
    return report_dispatcher

Dispatcher = Annotated[ReportDispatcher, Depends(get_report_dispatcher)]
