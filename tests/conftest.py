"""
Pytest fixtures for the stock audit test suite.

Provides:
- An in-memory SQLite database per test (aiosqlite, StaticPool)
- Catalog and audit factories
- An HTTP client bound to the FastAPI app with the database and the
  report dispatcher overridden
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from stock_audit import models  # noqa: F401
from stock_audit.api.deps import get_report_dispatcher
from stock_audit.database import Base, get_db
from stock_audit.jobs.report_dispatch import ReportDispatcher
from stock_audit.main import app
from stock_audit.models import (
    Warehouse, Product, ProductVariant, InventoryItem, InventoryAudit, AuditStatus, AuditType,
)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


# =============================================================================
# Factories
# =============================================================================


class CatalogFactory:
    """Creates warehouses, products and inventory rows."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self._seq = 0

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    async def warehouse(self, name: Optional[str] = None) -> Warehouse:
        n = self._next()
        warehouse = Warehouse(code=f"WH{n:03d}", name=name or f"Warehouse {n}")
        self.session.add(warehouse)
        await self.session.commit()
        return warehouse

    async def product(
        self,
        name: Optional[str] = None,
        cost_price: Optional[Decimal] = Decimal("10.00")
    ) -> Product:
        n = self._next()
        product = Product(sku=f"SKU-{n:05d}", name=name or f"Product {n:05d}", cost_price=cost_price)
        self.session.add(product)
        await self.session.commit()
        return product

    async def variant(self, product: Product, name: str) -> ProductVariant:
        n = self._next()
        variant = ProductVariant(product_id=product.id, sku=f"VAR-{n:05d}", name=name)
        self.session.add(variant)
        await self.session.commit()
        return variant

    async def stock(
        self,
        warehouse: Warehouse,
        product: Product,
        quantity: int = 10,
        variant: Optional[ProductVariant] = None,
        location_code: Optional[str] = None
    ) -> InventoryItem:
        row = InventoryItem(
            product_id=product.id,
            variant_id=variant.id if variant else None,
            warehouse_id=warehouse.id,
            quantity=quantity,
            location_code=location_code,
        )
        self.session.add(row)
        await self.session.commit()
        return row

    async def stock_many(
        self,
        warehouse: Warehouse,
        count: int,
        quantity: int = 10,
        cost_price: Optional[Decimal] = Decimal("10.00")
    ) -> List[InventoryItem]:
        """`count` distinct products, one inventory row each."""
        rows = []
        for _ in range(count):
            n = self._next()
            product = Product(sku=f"SKU-{n:05d}", name=f"Product {n:05d}", cost_price=cost_price)
            self.session.add(product)
            await self.session.flush()
            row = InventoryItem(
                product_id=product.id,
                warehouse_id=warehouse.id,
                quantity=quantity,
            )
            self.session.add(row)
            rows.append(row)
        await self.session.commit()
        return rows


@pytest.fixture
def catalog(session):
    return CatalogFactory(session)


_audit_seq = 0


async def make_audit(
    session: AsyncSession,
    warehouse: Optional[Warehouse] = None,
    status: AuditStatus = AuditStatus.PLANNED,
    audit_type: AuditType = AuditType.CYCLE_COUNT,
    planned_date: Optional[datetime] = None,
    completed_date: Optional[datetime] = None,
    **values
) -> InventoryAudit:
    """Insert an audit directly, bypassing numbering and the transition table."""
    global _audit_seq
    _audit_seq += 1
    audit = InventoryAudit(
        audit_number=f"AUD-TEST-{_audit_seq:06d}",
        audit_type=audit_type.value,
        status=status.value,
        warehouse_id=warehouse.id if warehouse else None,
        planned_date=planned_date or datetime.now(timezone.utc) + timedelta(days=1),
        completed_date=completed_date,
        **values
    )
    session.add(audit)
    await session.commit()
    return audit


@pytest.fixture
def audit_factory(session):
    async def factory(**kwargs) -> InventoryAudit:
        return await make_audit(session, **kwargs)
    return factory


# =============================================================================
# HTTP client
# =============================================================================


class RecordingScheduler:
    """Stands in for the APScheduler instance; records add_job calls."""

    class _Job:
        def __init__(self, job_id):
            self.id = job_id

    def __init__(self):
        self.jobs = []

    def add_job(self, func, trigger=None, args=None, id=None, **kwargs):
        self.jobs.append({"func": func, "trigger": trigger, "args": args or [], "id": id, **kwargs})
        return self._Job(id)


@pytest.fixture
def recording_scheduler():
    return RecordingScheduler()


@pytest.fixture
async def client(session_factory, recording_scheduler):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    dispatcher = ReportDispatcher(scheduler=recording_scheduler)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_report_dispatcher] = lambda: dispatcher

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
