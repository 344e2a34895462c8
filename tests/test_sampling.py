"""
Tests for item sampling.

Validates:
- warehouse-scoped and whole-inventory caps
- only rows with quantity > 0 are eligible
- one audit item per inventory row
- expected quantity and unit cost are snapshots
"""
from decimal import Decimal

from sqlalchemy import update

from stock_audit.models import InventoryItem, AuditItemStatus
from stock_audit.services.sampling import ItemSamplingEngine

from tests.conftest import make_audit


class TestCaps:

    async def test_warehouse_cap(self, session, catalog):
        """150 eligible rows in one warehouse yield 100 items."""
        warehouse = await catalog.warehouse()
        await catalog.stock_many(warehouse, 150)
        audit = await make_audit(session, warehouse=warehouse)

        items = await ItemSamplingEngine(session).materialize(audit)

        assert len(items) == 100
        assert all(item.warehouse_id == warehouse.id for item in items)

    async def test_all_warehouses_cap(self, session, catalog):
        """80 eligible rows across warehouses yield 50 items for an "all" audit."""
        first = await catalog.warehouse()
        second = await catalog.warehouse()
        await catalog.stock_many(first, 40)
        await catalog.stock_many(second, 40)
        audit = await make_audit(session, warehouse=None)

        items = await ItemSamplingEngine(session).materialize(audit)

        assert len(items) == 50

    async def test_under_cap_takes_everything(self, session, catalog):
        warehouse = await catalog.warehouse()
        await catalog.stock_many(warehouse, 7)
        audit = await make_audit(session, warehouse=warehouse)

        assert len(await ItemSamplingEngine(session).materialize(audit)) == 7

    async def test_configured_caps(self, session, catalog):
        warehouse = await catalog.warehouse()
        await catalog.stock_many(warehouse, 12)
        scoped = await make_audit(session, warehouse=warehouse)
        everything = await make_audit(session, warehouse=None)
        engine = ItemSamplingEngine(session, warehouse_cap=5, all_warehouses_cap=3)

        assert engine.cap_for(scoped) == 5
        assert engine.cap_for(everything) == 3
        assert len(await engine.materialize(scoped)) == 5
        assert len(await engine.materialize(everything)) == 3


class TestEligibility:

    async def test_zero_quantity_excluded(self, session, catalog):
        warehouse = await catalog.warehouse()
        rows = await catalog.stock_many(warehouse, 6)
        empty_ids = {rows[0].id, rows[1].id}
        await session.execute(
            update(InventoryItem).where(InventoryItem.id.in_(empty_ids)).values(quantity=0)
        )
        await session.commit()
        audit = await make_audit(session, warehouse=warehouse)

        items = await ItemSamplingEngine(session).materialize(audit)

        assert len(items) == 4
        assert not {item.inventory_item_id for item in items} & empty_ids

    async def test_other_warehouses_excluded(self, session, catalog):
        target = await catalog.warehouse()
        other = await catalog.warehouse()
        await catalog.stock_many(target, 3)
        await catalog.stock_many(other, 5)
        audit = await make_audit(session, warehouse=target)

        items = await ItemSamplingEngine(session).materialize(audit)

        assert len(items) == 3

    async def test_inactive_warehouses_skipped_for_all(self, session, catalog):
        active = await catalog.warehouse()
        closed = await catalog.warehouse()
        closed.is_active = False
        await session.commit()
        await catalog.stock_many(active, 2)
        await catalog.stock_many(closed, 3)
        audit = await make_audit(session, warehouse=None)

        items = await ItemSamplingEngine(session).materialize(audit)

        assert {item.warehouse_id for item in items} == {active.id}

    async def test_product_scope(self, session, catalog):
        warehouse = await catalog.warehouse()
        product = await catalog.product()
        await catalog.stock(warehouse, product, quantity=4, location_code="A1")
        await catalog.stock_many(warehouse, 5)
        audit = await make_audit(session, warehouse=warehouse, product_id=product.id)

        items = await ItemSamplingEngine(session).materialize(audit)

        assert [item.product_id for item in items] == [product.id]

    async def test_no_duplicate_rows(self, session, catalog):
        warehouse = await catalog.warehouse()
        await catalog.stock_many(warehouse, 30)
        audit = await make_audit(session, warehouse=warehouse)

        items = await ItemSamplingEngine(session).materialize(audit)

        inventory_ids = [item.inventory_item_id for item in items]
        assert len(inventory_ids) == len(set(inventory_ids))


class TestSnapshot:

    async def test_items_snapshot_inventory(self, session, catalog):
        warehouse = await catalog.warehouse()
        product = await catalog.product(cost_price=Decimal("12.75"))
        variant = await catalog.variant(product, "Blue")
        row = await catalog.stock(warehouse, product, quantity=9, variant=variant, location_code="B2-03")
        audit = await make_audit(session, warehouse=warehouse)

        [item] = await ItemSamplingEngine(session).materialize(audit)

        assert item.audit_id == audit.id
        assert item.inventory_item_id == row.id
        assert item.product_id == product.id
        assert item.variant_id == variant.id
        assert item.location == "B2-03"
        assert item.expected_quantity == 9
        assert item.unit_cost == Decimal("12.75")
        assert item.counted_quantity is None
        assert item.variance is None
        assert item.status == AuditItemStatus.PENDING.value

    async def test_expected_quantity_frozen(self, session, catalog):
        warehouse = await catalog.warehouse()
        product = await catalog.product()
        row = await catalog.stock(warehouse, product, quantity=9)
        audit = await make_audit(session, warehouse=warehouse)
        [item] = await ItemSamplingEngine(session).materialize(audit)
        await session.commit()

        row.quantity = 20
        await session.commit()
        await session.refresh(item)

        assert item.expected_quantity == 9
