"""Read-only master data consumed by the audit services.

Warehouses, products and inventory rows are owned by the surrounding
application. Audits only read them.
"""
from datetime import datetime, timezone
from sqlalchemy import Column, String, Boolean, ForeignKey, Integer, DateTime, Numeric
from sqlalchemy.orm import relationship
import uuid

from stock_audit.database import Base
from stock_audit.db_types import UUIDType


class Warehouse(Base):
    """Warehouse / stock location."""

    __tablename__ = "warehouses"

    id = Column(UUIDType, primary_key=True, default=uuid.uuid4)
    code = Column(String(20), unique=True, nullable=False, index=True)
    name = Column(String(200), nullable=False)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def __repr__(self):
        return f"<Warehouse {self.code}>"


class Product(Base):
    """Catalog product. `cost_price` feeds adjustment values."""

    __tablename__ = "products"

    id = Column(UUIDType, primary_key=True, default=uuid.uuid4)
    sku = Column(String(50), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    cost_price = Column(Numeric(12, 2), nullable=True)

    variants = relationship("ProductVariant", back_populates="product")

    def __repr__(self):
        return f"<Product {self.sku}>"


class ProductVariant(Base):
    """Product variant (size, colour, ...)."""

    __tablename__ = "product_variants"

    id = Column(UUIDType, primary_key=True, default=uuid.uuid4)
    product_id = Column(UUIDType, ForeignKey("products.id"), nullable=False, index=True)
    sku = Column(String(50), unique=True, nullable=False)
    name = Column(String(255), nullable=False)

    product = relationship("Product", back_populates="variants")


class InventoryItem(Base):
    """On-hand quantity of one product/variant in one warehouse location."""

    __tablename__ = "inventory_items"

    id = Column(UUIDType, primary_key=True, default=uuid.uuid4)
    product_id = Column(UUIDType, ForeignKey("products.id"), nullable=False, index=True)
    variant_id = Column(UUIDType, ForeignKey("product_variants.id"))
    warehouse_id = Column(UUIDType, ForeignKey("warehouses.id"), nullable=False, index=True)

    quantity = Column(Integer, default=0, nullable=False)
    location_code = Column(String(50))  # e.g., "A1-B2-C3"

    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    product = relationship("Product")
    variant = relationship("ProductVariant")
    warehouse = relationship("Warehouse")

    def __repr__(self):
        return f"<InventoryItem {self.product_id}@{self.warehouse_id} qty={self.quantity}>"
