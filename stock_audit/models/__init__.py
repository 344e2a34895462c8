from stock_audit.models.catalog import Warehouse, Product, ProductVariant, InventoryItem
from stock_audit.models.audit import (
    InventoryAudit,
    InventoryAuditItem,
    AuditType,
    AuditMethod,
    AuditStatus,
    AuditItemStatus,
    ALL_WAREHOUSES,
)

__all__ = [
    "Warehouse",
    "Product",
    "ProductVariant",
    "InventoryItem",
    "InventoryAudit",
    "InventoryAuditItem",
    "AuditType",
    "AuditMethod",
    "AuditStatus",
    "AuditItemStatus",
    "ALL_WAREHOUSES",
]
