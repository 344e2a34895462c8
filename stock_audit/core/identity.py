"""Caller identity handed in by the authentication layer in front of this service."""
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RequestIdentity:
    user_id: Optional[str] = None
    can_audit_all_warehouses: bool = False


SYSTEM_IDENTITY = RequestIdentity(user_id="system", can_audit_all_warehouses=True)
