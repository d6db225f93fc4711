"""SQL for the purchase-order dashboard aggregations.

Every query is a template around the compiled filter predicate and the
shared ``BASE_JOINS`` relation. Queries return raw row mappings; rounding
and serialization happen in the service layer.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from sqlalchemy.engine import RowMapping
from sqlalchemy.orm import Session

from po_dashboard.db.dialect import SqlDialect, dialect_for
from po_dashboard.services.filter_compiler import (
    BASE_JOINS,
    SKU_EXPR,
    UNCATEGORIZED,
    CategoryLevel,
    CompiledFilter,
    FilterCompiler,
    FilterSpec,
    category_segment_expr,
)

logger = logging.getLogger(__name__)

UNKNOWN_UOM = "Unknown"

# Public sort key -> rollup column.
LINE_SORT_COLUMNS: dict[str, str] = {
    "month": "month",
    "sku": "sku",
    "product_name_en": "product_name_en",
    "category_l1": "category_l1",
    "category_l2": "category_l2",
    "category_l3": "category_l3",
    "ordered_qty": "ordered_qty_po_uom",
    "received_qty": "received_qty_po_uom",
    "invoiced_qty": "invoiced_qty_po_uom",
    "ordered_value": "ordered_value_thb",
    "avg_price": "avg_price_unit_thb",
}


class PurchaseAnalyticsRepository:
    """Read-only aggregation queries over confirmed purchase order lines."""

    def __init__(self, db: Session, *, name_language: str = "en_US") -> None:
        self.db = db
        self.name_language = name_language
        self.dialect: SqlDialect = dialect_for(db)

    # ---------- Helpers ----------
    def compiler(self, spec: FilterSpec) -> FilterCompiler:
        """Filter builder seeded with ``spec``; callers may append predicates."""

        return FilterCompiler(dialect=self.dialect, name_language=self.name_language).add_spec(spec)

    def compile(self, spec: FilterSpec) -> CompiledFilter:
        return self.compiler(spec).compile()

    @property
    def _product_name(self) -> str:
        return self.dialect.json_text("pt.name", self.name_language)

    @property
    def _uom_name(self) -> str:
        return self.dialect.json_text("uom_pol.name", self.name_language)

    @property
    def _month(self) -> str:
        return self.dialect.month_key("po.date_order")

    def _fetch(self, name: str, compiled: CompiledFilter, sql: str, **extra: Any) -> Sequence[RowMapping]:
        logger.debug("Running %s query with %d filter parameters", name, len(compiled.params))
        return self.db.execute(compiled.statement(sql, **extra)).mappings().all()

    # ---------- Summary ----------
    def kpis(self, spec: FilterSpec) -> RowMapping:
        compiled = self.compile(spec)
        sql = f"""
            SELECT
              COUNT(*) AS total_lines,
              COALESCE(SUM(pol.product_qty * pol.price_unit), 0) AS total_ordered_value,
              COALESCE(SUM(pol.product_qty), 0) AS total_ordered_qty,
              COALESCE(SUM(pol.qty_received * pol.price_unit), 0) AS total_received_value,
              COALESCE(SUM(pol.qty_invoiced * pol.price_unit), 0) AS total_invoiced_value,
              100.0 * COALESCE(SUM(pol.qty_received * pol.price_unit), 0)
                / NULLIF(SUM(pol.product_qty * pol.price_unit), 0) AS pct_received,
              100.0 * COALESCE(SUM(pol.qty_invoiced * pol.price_unit), 0)
                / NULLIF(SUM(pol.product_qty * pol.price_unit), 0) AS pct_invoiced,
              COUNT(DISTINCT {self._month}) AS distinct_months
            {BASE_JOINS}
            WHERE {compiled.where}
        """
        return self._fetch("kpis", compiled, sql)[0]

    def monthly_by_category(self, spec: FilterSpec) -> Sequence[RowMapping]:
        compiled = self.compile(spec)
        sql = f"""
            SELECT
              {self._month} AS month,
              COALESCE({category_segment_expr(CategoryLevel.L1)}, '{UNCATEGORIZED}') AS category_l1,
              SUM(pol.product_qty * pol.price_unit) AS ordered_value_thb,
              COUNT(*) AS line_count
            {BASE_JOINS}
            WHERE {compiled.where}
            GROUP BY 1, 2
            ORDER BY 1, 2
        """
        return self._fetch("monthly", compiled, sql)

    def by_category(self, spec: FilterSpec, level: CategoryLevel) -> Sequence[RowMapping]:
        compiled = self.compile(spec)
        sql = f"""
            SELECT
              COALESCE({category_segment_expr(level)}, '{UNCATEGORIZED}') AS category,
              SUM(pol.product_qty * pol.price_unit) AS total_value,
              COUNT(*) AS line_count
            {BASE_JOINS}
            WHERE {compiled.where}
            GROUP BY 1
            ORDER BY total_value DESC, category
        """
        return self._fetch("by-category", compiled, sql)

    def by_uom(self, spec: FilterSpec) -> Sequence[RowMapping]:
        compiled = self.compile(spec)
        sql = f"""
            SELECT
              COALESCE({self._uom_name}, '{UNKNOWN_UOM}') AS uom,
              COUNT(*) AS line_count,
              SUM(pol.product_qty) AS total_ordered_qty,
              SUM(pol.qty_received) AS total_received_qty,
              SUM(pol.product_qty * pol.price_unit) AS total_value_thb,
              100.0 * SUM(pol.qty_received) / NULLIF(SUM(pol.product_qty), 0) AS pct_received
            {BASE_JOINS}
            WHERE {compiled.where}
            GROUP BY 1
            ORDER BY total_value_thb DESC, uom
        """
        return self._fetch("by-uom", compiled, sql)

    # ---------- Line rollup ----------
    def _line_rollup_cte(self, compiled: CompiledFilter) -> str:
        return f"""
            WITH po_lines AS (
              SELECT
                {self._month} AS month,
                pp.id AS variant_id,
                {SKU_EXPR} AS sku,
                {self._product_name} AS product_name_en,
                pc.complete_name AS category_path,
                {category_segment_expr(CategoryLevel.L1)} AS category_l1,
                {category_segment_expr(CategoryLevel.L2)} AS category_l2,
                {category_segment_expr(CategoryLevel.L3)} AS category_l3,
                uom_pol.id AS uom_id,
                {self._uom_name} AS po_uom,
                pol.product_qty AS ordered_qty_po_uom,
                pol.qty_received AS received_qty_po_uom,
                pol.qty_invoiced AS invoiced_qty_po_uom,
                pol.product_qty * pol.price_unit AS ordered_value_thb,
                pol.price_unit AS price_unit_thb
              {BASE_JOINS}
              WHERE {compiled.where}
            ),
            line_rollup AS (
              SELECT
                month, variant_id, sku, product_name_en,
                category_path, category_l1, category_l2, category_l3,
                uom_id, po_uom,
                SUM(ordered_qty_po_uom) AS ordered_qty_po_uom,
                SUM(received_qty_po_uom) AS received_qty_po_uom,
                SUM(invoiced_qty_po_uom) AS invoiced_qty_po_uom,
                SUM(ordered_value_thb) AS ordered_value_thb,
                AVG(price_unit_thb) AS avg_price_unit_thb
              FROM po_lines
              GROUP BY
                month, variant_id, sku, product_name_en,
                category_path, category_l1, category_l2, category_l3,
                uom_id, po_uom
            )
        """

    def count_line_rollup(self, spec: FilterSpec) -> int:
        compiled = self.compile(spec)
        sql = f"""
            {self._line_rollup_cte(compiled)}
            SELECT COUNT(*) AS total FROM line_rollup
        """
        return int(self._fetch("lines-count", compiled, sql)[0]["total"])

    def line_rollup_page(
        self,
        spec: FilterSpec,
        *,
        sort_column: str,
        descending: bool,
        limit: int,
        offset: int,
    ) -> Sequence[RowMapping]:
        if sort_column not in LINE_SORT_COLUMNS.values():
            raise ValueError(f"Unsupported sort column: {sort_column}")
        compiled = self.compile(spec)
        direction = "DESC" if descending else "ASC"
        tie_break = "ASC" if descending else "DESC"
        sql = f"""
            {self._line_rollup_cte(compiled)}
            SELECT *
            FROM line_rollup
            ORDER BY {sort_column} {direction}, sku {tie_break}, month, variant_id, uom_id
            LIMIT :limit OFFSET :offset
        """
        return self._fetch("lines", compiled, sql, limit=limit, offset=offset)

    # ---------- Prices ----------
    def daily_price_trend(self, spec: FilterSpec) -> Sequence[RowMapping]:
        compiled = self.compile(spec)
        order_day = self.dialect.day("po.date_order")
        sql = f"""
            WITH daily AS (
              SELECT
                {order_day} AS order_date,
                SUM(pol.product_qty * pol.price_unit) AS total_value,
                SUM(pol.product_qty) AS total_qty
              {BASE_JOINS}
              WHERE {compiled.where}
                AND pol.product_qty > 0
              GROUP BY {order_day}
              HAVING SUM(pol.product_qty) > 0
            ),
            priced AS (
              SELECT
                order_date,
                {self.dialect.day_number("order_date")} AS day_no,
                total_value * 1.0 / total_qty AS price
              FROM daily
            )
            SELECT
              {self.dialect.day_key("order_date")} AS date,
              price,
              AVG(price) OVER (
                ORDER BY day_no RANGE BETWEEN 30 PRECEDING AND CURRENT ROW
              ) AS ma_30d,
              AVG(price) OVER (
                ORDER BY day_no RANGE BETWEEN 90 PRECEDING AND CURRENT ROW
              ) AS ma_3m
            FROM priced
            ORDER BY order_date
        """
        return self._fetch("price-trend", compiled, sql)

    def price_by_quarter(self, spec: FilterSpec) -> Sequence[RowMapping]:
        compiled = self.compile(spec)
        sql = f"""
            SELECT
              {self.dialect.year("po.date_order")} AS year,
              {self.dialect.quarter("po.date_order")} AS quarter,
              SUM(pol.product_qty * pol.price_unit) * 1.0 / NULLIF(SUM(pol.product_qty), 0) AS price
            {BASE_JOINS}
            WHERE {compiled.where}
              AND pol.product_qty > 0
            GROUP BY 1, 2
            ORDER BY 1, 2
        """
        return self._fetch("price-by-quarter", compiled, sql)

    # ---------- Lookups ----------
    def search_products(self, spec: FilterSpec, query: str, *, limit: int) -> Sequence[RowMapping]:
        ilike = self.dialect.ilike
        name = f"TRIM({self._product_name})"
        compiled = (
            self.compiler(spec)
            .add(f"({name} {ilike} {{0}} OR pt.default_code {ilike} {{0}})", f"%{query}%")
            .compile()
        )
        sql = f"""
            SELECT DISTINCT
              pt.id AS tmpl_id,
              {name} AS product_name,
              pt.default_code AS template_sku
            {BASE_JOINS}
            WHERE {compiled.where}
            ORDER BY product_name, tmpl_id
            LIMIT :limit
        """
        return self._fetch("products", compiled, sql, limit=limit)

    def search_skus(
        self,
        spec: FilterSpec,
        query: str,
        *,
        limit: int,
        tmpl_id: int | None = None,
    ) -> Sequence[RowMapping]:
        ilike = self.dialect.ilike
        name = f"TRIM({self._product_name})"
        compiler = self.compiler(spec)
        if tmpl_id is not None:
            compiler.add("pp.product_tmpl_id = {0}", tmpl_id)
        compiled = compiler.add(f"({SKU_EXPR} {ilike} {{0}} OR {name} {ilike} {{0}})", f"%{query}%").compile()
        sql = f"""
            SELECT DISTINCT
              {SKU_EXPR} AS sku,
              {name} AS product_name
            {BASE_JOINS}
            WHERE {compiled.where}
            ORDER BY sku, product_name
            LIMIT :limit
        """
        return self._fetch("skus", compiled, sql, limit=limit)

    def available_months(self, spec: FilterSpec) -> list[str]:
        """Months with confirmed orders, whether or not they have lines."""

        compiled = (
            FilterCompiler(dialect=self.dialect, name_language=self.name_language)
            .add_order_window(spec)
            .compile()
        )
        sql = f"""
            SELECT DISTINCT {self._month} AS month
            FROM purchase_order po
            WHERE {compiled.where}
            ORDER BY month
        """
        return [row["month"] for row in self._fetch("filter-months", compiled, sql)]

    def category_paths(self, spec: FilterSpec) -> Sequence[RowMapping]:
        compiled = self.compile(spec)
        sql = f"""
            SELECT DISTINCT
              {category_segment_expr(CategoryLevel.L1)} AS l1,
              {category_segment_expr(CategoryLevel.L2)} AS l2,
              {category_segment_expr(CategoryLevel.L3)} AS l3
            {BASE_JOINS}
            WHERE {compiled.where}
        """
        return self._fetch("filter-categories", compiled, sql)
