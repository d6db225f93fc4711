"""Row builders for the ERP purchasing tables used in tests."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from po_dashboard.models.entities import (
    ProductCategory,
    ProductTemplate,
    ProductVariant,
    PurchaseOrder,
    PurchaseOrderLine,
    UnitOfMeasure,
)


class PurchaseCatalog:
    """Seeds ERP purchasing rows for aggregation tests."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self._orders = 0

    def category(self, complete_name: str) -> ProductCategory:
        row = ProductCategory(name=complete_name.split(" / ")[-1], complete_name=complete_name)
        self.db.add(row)
        self.db.flush()
        return row

    def uom(self, name: str) -> UnitOfMeasure:
        row = UnitOfMeasure(name={"en_US": name})
        self.db.add(row)
        self.db.flush()
        return row

    def product(
        self,
        name: str,
        *,
        sku: str | None = None,
        template_sku: str | None = None,
        category: ProductCategory | None = None,
    ) -> ProductVariant:
        template = ProductTemplate(
            name={"en_US": name},
            default_code=template_sku,
            categ_id=category.id if category else None,
        )
        self.db.add(template)
        self.db.flush()
        return self.variant(template, sku=sku)

    def variant(self, template: ProductTemplate | int, *, sku: str | None) -> ProductVariant:
        tmpl_id = template if isinstance(template, int) else template.id
        row = ProductVariant(product_tmpl_id=tmpl_id, default_code=sku)
        self.db.add(row)
        self.db.flush()
        return row

    def order(self, ordered_at: datetime | str, *, state: str = "purchase") -> PurchaseOrder:
        if isinstance(ordered_at, str):
            ordered_at = datetime.fromisoformat(ordered_at)
        self._orders += 1
        order = PurchaseOrder(name=f"P{self._orders:05d}", state=state, date_order=ordered_at)
        self.db.add(order)
        self.db.flush()
        return order

    def line(
        self,
        product: ProductVariant,
        ordered_at: datetime | str,
        *,
        qty: str | int,
        price: str | int,
        received: str | int = 0,
        invoiced: str | int = 0,
        uom: UnitOfMeasure | None = None,
        state: str = "purchase",
    ) -> PurchaseOrderLine:
        order = self.order(ordered_at, state=state)
        row = PurchaseOrderLine(
            order_id=order.id,
            product_id=product.id,
            product_uom=uom.id if uom else None,
            product_qty=Decimal(str(qty)),
            qty_received=Decimal(str(received)),
            qty_invoiced=Decimal(str(invoiced)),
            price_unit=Decimal(str(price)),
        )
        self.db.add(row)
        self.db.flush()
        return row

    def commit(self) -> None:
        self.db.commit()

