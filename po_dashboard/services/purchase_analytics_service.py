"""Purchase-order dashboard service layer."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from sqlalchemy.engine import RowMapping
from sqlalchemy.orm import Session

from po_dashboard.core.config import Settings, get_settings
from po_dashboard.repositories.purchase_analytics_repository import (
    LINE_SORT_COLUMNS,
    PurchaseAnalyticsRepository,
)
from po_dashboard.services.filter_compiler import (
    MAX_RECORD_ID,
    CategoryLevel,
    FilterSpec,
    split_category_path,
)

Q1 = Decimal("0.1")
Q2 = Decimal("0.01")
Q3 = Decimal("0.001")
Q4 = Decimal("0.0001")

DEFAULT_SORT_KEY = "month"
# LIMIT/OFFSET bind as signed 64-bit integers.
MAX_SQL_INTEGER = 2**63 - 1


def _decimal(value: Any, quantum: Decimal) -> Decimal:
    if value is None:
        value = 0
    return Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)


def _amount(value: Any) -> str:
    return str(_decimal(value, Q2))


def _qty(value: Any) -> str:
    return str(_decimal(value, Q3))


def _price(value: Any) -> str | None:
    if value is None:
        return None
    return str(_decimal(value, Q4))


def _pct(value: Any) -> str | None:
    """Percentage with one decimal; None stays None (zero denominator)."""

    if value is None:
        return None
    return str(_decimal(value, Q1))


@dataclass(frozen=True, slots=True)
class LinePageRequest:
    """Clamped pagination and sort options for the line rollup table."""

    page: int
    page_size: int
    sort_key: str
    descending: bool

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def sort_column(self) -> str:
        return LINE_SORT_COLUMNS[self.sort_key]

    @classmethod
    def from_query(
        cls,
        *,
        page: str | None,
        page_size: str | None,
        sort_by: str | None,
        sort_dir: str | None,
        settings: Settings,
    ) -> LinePageRequest:
        """Clamp raw query values; malformed numbers fall back to defaults."""

        parsed_page = _parse_int(page, 1)
        parsed_size = _parse_int(page_size, settings.lines_default_page_size)
        size = min(settings.lines_max_page_size, max(settings.lines_min_page_size, parsed_size))
        return cls(
            page=min(max(1, parsed_page), MAX_SQL_INTEGER // size),
            page_size=size,
            sort_key=sort_by if sort_by in LINE_SORT_COLUMNS else DEFAULT_SORT_KEY,
            descending=(sort_dir or "").lower() != "asc",
        )


def _parse_int(raw: str | None, default: int) -> int:
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


class PurchaseAnalyticsService:
    """KPIs, breakdowns, price trends and lookups over purchase order lines."""

    def __init__(self, db: Session, settings: Settings | None = None) -> None:
        self.db = db
        self.settings = settings or get_settings()
        self.repo = PurchaseAnalyticsRepository(db, name_language=self.settings.name_language)

    def default_spec(self) -> FilterSpec:
        return FilterSpec.from_query(default_date_from=self.settings.default_date_from)

    # ---------- Serialization ----------
    @staticmethod
    def serialize_line(row: RowMapping) -> dict[str, object]:
        segments = split_category_path(row["category_path"])
        return {
            "month": row["month"],
            "variant_id": row["variant_id"],
            "sku": row["sku"],
            "product_name_en": row["product_name_en"],
            "category_path": row["category_path"],
            "category_l1": row["category_l1"],
            "category_l2": row["category_l2"],
            "category_l3": row["category_l3"],
            "category_depth": len(segments) if segments else None,
            "category_leaf": segments[-1] if segments else None,
            "ordered_qty_po_uom": _qty(row["ordered_qty_po_uom"]),
            "po_uom": row["po_uom"],
            "received_qty_po_uom": _qty(row["received_qty_po_uom"]),
            "invoiced_qty_po_uom": _qty(row["invoiced_qty_po_uom"]),
            "ordered_value_thb": _amount(row["ordered_value_thb"]),
            "avg_price_unit_thb": _price(row["avg_price_unit_thb"]),
        }

    # ---------- Aggregations ----------
    def kpis(self, spec: FilterSpec) -> dict[str, object]:
        row = self.repo.kpis(spec)
        return {
            "total_lines": int(row["total_lines"]),
            "total_ordered_value": _amount(row["total_ordered_value"]),
            "total_ordered_qty": _qty(row["total_ordered_qty"]),
            "total_received_value": _amount(row["total_received_value"]),
            "total_invoiced_value": _amount(row["total_invoiced_value"]),
            "pct_received": _pct(row["pct_received"]),
            "pct_invoiced": _pct(row["pct_invoiced"]),
            "distinct_months": int(row["distinct_months"]),
        }

    def monthly(self, spec: FilterSpec) -> list[dict[str, object]]:
        return [
            {
                "month": row["month"],
                "category_l1": row["category_l1"],
                "ordered_value_thb": _amount(row["ordered_value_thb"]),
                "line_count": int(row["line_count"]),
            }
            for row in self.repo.monthly_by_category(spec)
        ]

    def by_category(self, spec: FilterSpec, level: CategoryLevel) -> list[dict[str, object]]:
        return [
            {
                "category": row["category"],
                "total_value": _amount(row["total_value"]),
                "line_count": int(row["line_count"]),
            }
            for row in self.repo.by_category(spec, level)
        ]

    def by_uom(self, spec: FilterSpec) -> list[dict[str, object]]:
        return [
            {
                "uom": row["uom"],
                "line_count": int(row["line_count"]),
                "total_ordered_qty": _qty(row["total_ordered_qty"]),
                "total_received_qty": _qty(row["total_received_qty"]),
                "total_value_thb": _amount(row["total_value_thb"]),
                "pct_received": _pct(row["pct_received"]),
            }
            for row in self.repo.by_uom(spec)
        ]

    def lines(self, spec: FilterSpec, request: LinePageRequest) -> dict[str, object]:
        # Count and page share the session so both see the same snapshot.
        total = self.repo.count_line_rollup(spec)
        rows = self.repo.line_rollup_page(
            spec,
            sort_column=request.sort_column,
            descending=request.descending,
            limit=request.page_size,
            offset=request.offset,
        )
        return {
            "total": total,
            "page": request.page,
            "pageSize": request.page_size,
            "data": [self.serialize_line(row) for row in rows],
        }

    def price_trend(self, spec: FilterSpec) -> list[dict[str, object]]:
        return [
            {
                "date": str(row["date"]),
                "price": _price(row["price"]),
                "ma_30d": _price(row["ma_30d"]),
                "ma_3m": _price(row["ma_3m"]),
            }
            for row in self.repo.daily_price_trend(spec)
        ]

    def price_by_quarter(self, spec: FilterSpec) -> list[dict[str, object]]:
        return [
            {
                "year": int(row["year"]),
                "quarter": int(row["quarter"]),
                "price": _price(row["price"]),
            }
            for row in self.repo.price_by_quarter(spec)
        ]

    # ---------- Lookups ----------
    def filter_options(self) -> dict[str, object]:
        spec = self.default_spec()
        months = self.repo.available_months(spec)

        hierarchy: dict[str, dict[str, list[str]]] = {}
        for row in self.repo.category_paths(spec):
            l1, l2, l3 = row["l1"], row["l2"], row["l3"]
            if not l1:
                continue
            level2 = hierarchy.setdefault(l1, {})
            if not l2:
                continue
            level3 = level2.setdefault(l2, [])
            if l3 and l3 not in level3:
                level3.append(l3)

        ordered = {
            l1: {l2: sorted(hierarchy[l1][l2]) for l2 in sorted(hierarchy[l1])}
            for l1 in sorted(hierarchy)
        }
        return {"months": months, "l1s": list(ordered), "hierarchy": ordered}

    def search_products(self, spec: FilterSpec, query: str | None) -> list[dict[str, object]]:
        q = (query or "").strip()
        if len(q) < 1:
            return []
        rows = self.repo.search_products(spec, q, limit=self.settings.typeahead_limit)
        return [
            {
                "tmpl_id": row["tmpl_id"],
                "product_name": row["product_name"],
                "template_sku": row["template_sku"],
            }
            for row in rows
        ]

    def search_skus(
        self,
        spec: FilterSpec,
        query: str | None,
        tmpl_id: str | None = None,
    ) -> list[dict[str, object]]:
        q = (query or "").strip()
        if len(q) < 1:
            return []
        scope = _parse_int(tmpl_id, 0)
        rows = self.repo.search_skus(
            spec,
            q,
            limit=self.settings.typeahead_limit,
            tmpl_id=scope if 0 < scope <= MAX_RECORD_ID else None,
        )
        return [{"sku": row["sku"], "product_name": row["product_name"]} for row in rows]
