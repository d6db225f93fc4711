"""ORM mirror of the ERP purchasing tables read by the dashboard.

The schema is owned by the ERP; these mappings describe the columns the
aggregations touch and let tests build the same tables on SQLite.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from po_dashboard.db.base import Base

# Translatable names are stored as {"en_US": "...", ...}.
TranslatedName = JSON().with_variant(JSONB(), "postgresql")


class ProductCategory(Base):
    __tablename__ = "product_category"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    complete_name: Mapped[str | None] = mapped_column(String, nullable=True)


class UnitOfMeasure(Base):
    __tablename__ = "uom_uom"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[dict[str, str]] = mapped_column(TranslatedName, nullable=False)


class ProductTemplate(Base):
    __tablename__ = "product_template"
    __table_args__ = (Index("ix_product_template_categ_id", "categ_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[dict[str, str]] = mapped_column(TranslatedName, nullable=False)
    default_code: Mapped[str | None] = mapped_column(String, nullable=True)
    categ_id: Mapped[int | None] = mapped_column(ForeignKey("product_category.id"), nullable=True)


class ProductVariant(Base):
    __tablename__ = "product_product"
    __table_args__ = (Index("ix_product_product_tmpl_id", "product_tmpl_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    product_tmpl_id: Mapped[int] = mapped_column(ForeignKey("product_template.id"), nullable=False)
    default_code: Mapped[str | None] = mapped_column(String, nullable=True)


class PurchaseOrder(Base):
    __tablename__ = "purchase_order"
    __table_args__ = (Index("ix_purchase_order_state_date", "state", "date_order"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    state: Mapped[str] = mapped_column(String(32), nullable=False, default="draft")
    date_order: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class PurchaseOrderLine(Base):
    __tablename__ = "purchase_order_line"
    __table_args__ = (
        Index("ix_purchase_order_line_order_id", "order_id"),
        Index("ix_purchase_order_line_product_id", "product_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("purchase_order.id"), nullable=False)
    product_id: Mapped[int] = mapped_column(ForeignKey("product_product.id"), nullable=False)
    product_uom: Mapped[int | None] = mapped_column(ForeignKey("uom_uom.id"), nullable=True)
    product_qty: Mapped[Decimal] = mapped_column(Numeric(16, 3), nullable=False, default=Decimal("0"))
    qty_received: Mapped[Decimal] = mapped_column(Numeric(16, 3), nullable=False, default=Decimal("0"))
    qty_invoiced: Mapped[Decimal] = mapped_column(Numeric(16, 3), nullable=False, default=Decimal("0"))
    price_unit: Mapped[Decimal] = mapped_column(Numeric(16, 4), nullable=False, default=Decimal("0"))
