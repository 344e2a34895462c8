"""
Audit Lifecycle Controller.

Owns the status transition table and the side effects each transition
carries. Transitions are planned by a pure function and then applied as one
unit of work:

    PLANNED      -> IN_PROGRESS   materialize items, stamp started_date
    PLANNED      -> CANCELLED
    IN_PROGRESS  -> COMPLETED     reconcile totals, stamp completed_date
    IN_PROGRESS  -> CANCELLED
    CANCELLED    -> PLANNED       purge items, clear dates and totals

The status is claimed first with a compare-and-set on the status observed
when the transition was planned, and effects run only after the claim holds.
If another request moved the audit first, nothing from this request runs or
is committed.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, Dict, Any, FrozenSet, Tuple
from uuid import UUID

from sqlalchemy import update, delete
from sqlalchemy.ext.asyncio import AsyncSession

from stock_audit.core.enum_utils import get_enum_value, to_enum
from stock_audit.core.exceptions import InvalidTransitionError, PreconditionFailedError
from stock_audit.core.identity import RequestIdentity, SYSTEM_IDENTITY
from stock_audit.models.audit import InventoryAudit, InventoryAuditItem, AuditStatus
from stock_audit.schemas.audit import AuditUpdate
from stock_audit.services.audit_registry import AuditRegistry
from stock_audit.services.reconciliation import ReconciliationEngine
from stock_audit.services.sampling import ItemSamplingEngine


logger = logging.getLogger(__name__)


class Effect(str, Enum):
    """Side effects applied in the same unit of work as a status write."""
    MATERIALIZE_ITEMS = "MATERIALIZE_ITEMS"
    STAMP_STARTED = "STAMP_STARTED"
    STAMP_COMPLETED = "STAMP_COMPLETED"
    RECONCILE = "RECONCILE"
    PURGE_ITEMS = "PURGE_ITEMS"
    CLEAR_DATES = "CLEAR_DATES"


TRANSITIONS: Dict[AuditStatus, FrozenSet[AuditStatus]] = {
    AuditStatus.PLANNED: frozenset({AuditStatus.IN_PROGRESS, AuditStatus.CANCELLED}),
    AuditStatus.IN_PROGRESS: frozenset({AuditStatus.COMPLETED, AuditStatus.CANCELLED}),
    AuditStatus.COMPLETED: frozenset(),
    AuditStatus.CANCELLED: frozenset({AuditStatus.PLANNED}),
}

TRANSITION_EFFECTS: Dict[Tuple[AuditStatus, AuditStatus], Tuple[Effect, ...]] = {
    (AuditStatus.PLANNED, AuditStatus.IN_PROGRESS): (Effect.MATERIALIZE_ITEMS, Effect.STAMP_STARTED),
    (AuditStatus.IN_PROGRESS, AuditStatus.COMPLETED): (Effect.RECONCILE, Effect.STAMP_COMPLETED),
    (AuditStatus.CANCELLED, AuditStatus.PLANNED): (Effect.PURGE_ITEMS, Effect.CLEAR_DATES),
}

# Re-requesting the current status is not a transition; completed audits
# re-run reconciliation so totals can be refreshed.
SAME_STATUS_EFFECTS: Dict[AuditStatus, Tuple[Effect, ...]] = {
    AuditStatus.COMPLETED: (Effect.RECONCILE,),
}


@dataclass(frozen=True)
class TransitionPlan:
    from_status: AuditStatus
    to_status: AuditStatus
    effects: Tuple[Effect, ...] = ()

    @property
    def changes_status(self) -> bool:
        return self.from_status != self.to_status


def _as_status(value) -> AuditStatus:
    status = to_enum(value, AuditStatus)
    if status is None:
        raise InvalidTransitionError(get_enum_value(value), "?", f"Unknown audit status: {value}")
    return status


def plan_transition(current, target) -> TransitionPlan:
    """
    Plan a status change, or raise InvalidTransitionError.

    Pure: reads nothing and writes nothing.
    """
    current = _as_status(current)
    target = to_enum(target, AuditStatus)
    if target is None:
        raise InvalidTransitionError(current.value, str(target))

    if current == target:
        return TransitionPlan(current, target, SAME_STATUS_EFFECTS.get(current, ()))

    if target not in TRANSITIONS[current]:
        raise InvalidTransitionError(current.value, target.value)

    return TransitionPlan(current, target, TRANSITION_EFFECTS.get((current, target), ()))


class LifecycleController:
    """Service that gates every audit status change."""

    def __init__(
        self,
        db: AsyncSession,
        sampling: Optional[ItemSamplingEngine] = None,
        reconciliation: Optional[ReconciliationEngine] = None
    ):
        self.db = db
        self.registry = AuditRegistry(db)
        self.sampling = sampling or ItemSamplingEngine(db)
        self.reconciliation = reconciliation or ReconciliationEngine(db)

    async def run(
        self,
        audit_id: UUID,
        identity: RequestIdentity = SYSTEM_IDENTITY
    ) -> InventoryAudit:
        """
        The RUN action: PLANNED -> IN_PROGRESS with item materialization.

        Single-shot: any other starting status is rejected, including
        IN_PROGRESS itself.
        """
        audit = await self.registry.get(audit_id)
        if audit.status != AuditStatus.PLANNED.value:
            raise InvalidTransitionError(
                audit.status,
                AuditStatus.IN_PROGRESS.value,
                f"Cannot change status from {audit.status} to {AuditStatus.IN_PROGRESS.value}: "
                f"audits can only be started from {AuditStatus.PLANNED.value}",
            )

        plan = plan_transition(audit.status, AuditStatus.IN_PROGRESS)
        return await self._apply(audit, plan, identity)

    async def patch(
        self,
        audit_id: UUID,
        patch: AuditUpdate,
        identity: RequestIdentity = SYSTEM_IDENTITY
    ) -> InventoryAudit:
        """Apply field patches and, if requested, a status transition."""
        audit = await self.registry.get(audit_id)
        field_values = self.registry.field_patch_values(patch)

        target = patch.status if patch.status is not None else audit.status
        plan = plan_transition(audit.status, target)

        if not plan.changes_status and not plan.effects:
            if not field_values:
                return audit
            return await self.registry.update(audit_id, patch)

        return await self._apply(audit, plan, identity, field_values)

    async def _apply_effects(
        self,
        audit: InventoryAudit,
        plan: TransitionPlan,
        identity: RequestIdentity,
        now: datetime
    ) -> Dict[str, Any]:
        values: Dict[str, Any] = {}

        for effect in plan.effects:
            if effect is Effect.MATERIALIZE_ITEMS:
                if audit.is_full_inventory_scope and not identity.can_audit_all_warehouses:
                    raise PreconditionFailedError(
                        "Whole-inventory audits require full-inventory access",
                        {"audit_id": str(audit.id)}
                    )
                items = await self.sampling.materialize(audit)
                values["items_planned"] = len(items)

            elif effect is Effect.STAMP_STARTED:
                if audit.started_date is None:
                    values["started_date"] = now

            elif effect is Effect.STAMP_COMPLETED:
                values["completed_date"] = now

            elif effect is Effect.RECONCILE:
                summary = await self.reconciliation.summarize_audit(audit.id)
                values.update(summary.as_values())

            elif effect is Effect.PURGE_ITEMS:
                await self.db.execute(
                    delete(InventoryAuditItem)
                    .where(InventoryAuditItem.audit_id == audit.id)
                    .execution_options(synchronize_session=False)
                )
                values.update(
                    items_planned=0,
                    items_counted=0,
                    discrepancies=0,
                    adjustment_value=Decimal("0"),
                )

            elif effect is Effect.CLEAR_DATES:
                values.update(started_date=None, completed_date=None)

        return values

    async def _apply(
        self,
        audit: InventoryAudit,
        plan: TransitionPlan,
        identity: RequestIdentity,
        field_values: Optional[Dict[str, Any]] = None
    ) -> InventoryAudit:
        """Claim the status transition, run the plan's effects, then commit once."""
        now = datetime.now(timezone.utc)

        try:
            result = await self.db.execute(
                update(InventoryAudit)
                .where(
                    InventoryAudit.id == audit.id,
                    InventoryAudit.status == plan.from_status.value,
                )
                .values(status=plan.to_status.value, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            claimed = result.rowcount == 1

            if claimed:
                values = dict(field_values or {})
                values.update(await self._apply_effects(audit, plan, identity, now))
                if values:
                    await self.db.execute(
                        update(InventoryAudit)
                        .where(InventoryAudit.id == audit.id)
                        .values(**values)
                        .execution_options(synchronize_session=False)
                    )
                await self.db.commit()
            else:
                await self.db.rollback()
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(audit)

        if not claimed:
            logger.warning(
                f"Audit {audit.audit_number} changed concurrently: expected {plan.from_status.value}, "
                f"found {audit.status}; {plan.to_status.value} rejected"
            )
            raise InvalidTransitionError(audit.status, plan.to_status.value)

        if plan.changes_status:
            logger.info(
                f"Audit {audit.audit_number}: {plan.from_status.value} -> {plan.to_status.value} "
                f"({', '.join(e.value for e in plan.effects) or 'no effects'})"
            )
        return audit
