"""ORM model package."""

from po_dashboard.models.entities import (
    ProductCategory,
    ProductTemplate,
    ProductVariant,
    PurchaseOrder,
    PurchaseOrderLine,
    UnitOfMeasure,
)

__all__ = [
    "ProductCategory",
    "ProductTemplate",
    "ProductVariant",
    "PurchaseOrder",
    "PurchaseOrderLine",
    "UnitOfMeasure",
]
