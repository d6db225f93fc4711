"""Filter specification and its compilation into a shared SQL predicate.

Every dashboard aggregation runs over the same joined purchase-line
relation and the same user filters. ``FilterSpec`` is the validated,
immutable form of those filters; ``FilterCompiler`` turns it into a
``CompiledFilter`` whose predicate text and ordered parameters can be
dropped verbatim into any query template.

Predicates are accumulated as ``Predicate(template, params)`` pairs. A
template refers to its own parameters as ``{0}``, ``{1}``, ... and the
single rendering pass in ``FilterCompiler.compile`` replaces them with
globally numbered placeholders ``:p1 .. :pN`` in append order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import IntEnum
from typing import Any

from sqlalchemy import bindparam, text
from sqlalchemy.sql.elements import TextClause

from po_dashboard.db.dialect import SqlDialect

CATEGORY_SEPARATOR = " / "
UNCATEGORIZED = "Uncategorized"
CONFIRMED_ORDER_STATES = ("purchase", "done")
FAR_FUTURE_SENTINEL = "2099-01-01"
# ERP record ids are 32-bit integer columns.
MAX_RECORD_ID = 2**31 - 1

SKU_EXPR = "COALESCE(pp.default_code, pt.default_code)"

BASE_JOINS = """
  FROM purchase_order_line pol
  JOIN purchase_order po ON po.id = pol.order_id
  JOIN product_product pp ON pp.id = pol.product_id
  JOIN product_template pt ON pt.id = pp.product_tmpl_id
  LEFT JOIN product_category pc ON pc.id = pt.categ_id
  LEFT JOIN uom_uom uom_pol ON uom_pol.id = pol.product_uom
"""


def category_segment_expr(level: int) -> str:
    """Nth category path segment, NULL (never '') when the path is shorter."""

    return f"NULLIF(split_part(pc.complete_name, '{CATEGORY_SEPARATOR}', {int(level)}), '')"


def split_category_path(path: str | None) -> list[str]:
    if not path:
        return []
    return path.split(CATEGORY_SEPARATOR)


def parse_month(raw: str | None) -> date | None:
    """Parse ``YYYY-MM`` into the first day of that month; None when malformed."""

    if not raw:
        return None
    try:
        return datetime.strptime(raw.strip(), "%Y-%m").date()
    except ValueError:
        return None


def next_month_start(month_start: date) -> date | None:
    """First day of the following month; None past ``date.max``."""

    if month_start.month == 12:
        if month_start.year == date.max.year:
            return None
        return date(month_start.year + 1, 1, 1)
    return date(month_start.year, month_start.month + 1, 1)


def _clean(raw: str | None) -> str | None:
    if raw is None:
        return None
    value = raw.strip()
    return value or None


def _split_tokens(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [token.strip() for token in raw.split(",") if token.strip()]


def _positive_ints(raw: str | None) -> list[int]:
    ids: list[int] = []
    for token in _split_tokens(raw):
        try:
            value = int(token)
        except ValueError:
            continue
        if 0 < value <= MAX_RECORD_ID:
            ids.append(value)
    return ids


class CategoryLevel(IntEnum):
    """Category hierarchy depth used by the drill-down breakdown."""

    L1 = 1
    L2 = 2
    L3 = 3

    @classmethod
    def drill_down_for(cls, spec: FilterSpec) -> CategoryLevel:
        """Next level below the deepest category already filtered on."""

        if spec.category_l2:
            return cls.L3
        if spec.category_l1:
            return cls.L2
        return cls.L1


@dataclass(frozen=True, slots=True)
class FilterSpec:
    """Validated dashboard filters shared by every aggregation."""

    date_from: date
    date_to_exclusive: date | None = None
    category_l1: str | None = None
    category_l2: str | None = None
    category_l3: str | None = None
    search: str | None = None
    skus: tuple[str, ...] = ()
    product_tmpl_ids: tuple[int, ...] = ()

    @classmethod
    def from_query(
        cls,
        *,
        default_date_from: str,
        date_from: str | None = None,
        date_to: str | None = None,
        cat_l1: str | None = None,
        cat_l2: str | None = None,
        cat_l3: str | None = None,
        search: str | None = None,
        skus: str | None = None,
        product_tmpl_ids: str | None = None,
    ) -> FilterSpec:
        """Build a spec from raw query-string values.

        Malformed values never raise: a bad ``dateFrom`` falls back to the
        default epoch, a bad or unbounded ``dateTo`` leaves the range open,
        and invalid list tokens are dropped.
        """

        start = parse_month(date_from) or parse_month(default_date_from)
        if start is None:
            raise ValueError(f"Invalid default_date_from: {default_date_from!r}")
        end_month = parse_month(date_to)
        return cls(
            date_from=start,
            date_to_exclusive=next_month_start(end_month) if end_month else None,
            category_l1=_clean(cat_l1),
            category_l2=_clean(cat_l2),
            category_l3=_clean(cat_l3),
            search=_clean(search),
            skus=tuple(_split_tokens(skus)),
            product_tmpl_ids=tuple(_positive_ints(product_tmpl_ids)),
        )


@dataclass(frozen=True, slots=True)
class Predicate:
    template: str
    params: tuple[Any, ...] = ()


@dataclass(frozen=True, slots=True)
class CompiledFilter:
    """Rendered predicate plus the values bound to ``:p1 .. :pN``."""

    where: str
    params: tuple[Any, ...]

    def bind_params(self) -> dict[str, Any]:
        return {f"p{index}": value for index, value in enumerate(self.params, start=1)}

    def statement(self, sql: str, **extra: Any) -> TextClause:
        """Wrap ``sql`` (which embeds ``where``) with all parameters bound."""

        values = {**self.bind_params(), **extra}
        return text(sql).bindparams(*(bindparam(key, value) for key, value in values.items()))


@dataclass(slots=True)
class FilterCompiler:
    """Accumulates predicates for a spec and renders them in one pass."""

    dialect: SqlDialect
    name_language: str = "en_US"
    predicates: list[Predicate] = field(default_factory=list)

    @property
    def product_name_expr(self) -> str:
        return self.dialect.json_text("pt.name", self.name_language)

    def add(self, template: str, *params: Any) -> FilterCompiler:
        self.predicates.append(Predicate(template=template, params=tuple(params)))
        return self

    def add_in(self, column: str, values: tuple[Any, ...] | list[Any]) -> FilterCompiler:
        if not values:
            return self
        slots = ", ".join(f"{{{index}}}" for index in range(len(values)))
        return self.add(f"{column} IN ({slots})", *values)

    def add_order_window(self, spec: FilterSpec) -> FilterCompiler:
        """State and date predicates; they only reference ``po``."""

        states = ", ".join(f"'{state}'" for state in CONFIRMED_ORDER_STATES)
        self.add(f"po.state IN ({states})")
        self.add("po.date_order >= {0}", spec.date_from)
        if spec.date_to_exclusive is not None:
            self.add("po.date_order < {0}", spec.date_to_exclusive)
        else:
            self.add(f"po.date_order < '{FAR_FUTURE_SENTINEL}'")
        return self

    def add_spec(self, spec: FilterSpec) -> FilterCompiler:
        self.add_order_window(spec)

        for level, value in (
            (CategoryLevel.L1, spec.category_l1),
            (CategoryLevel.L2, spec.category_l2),
            (CategoryLevel.L3, spec.category_l3),
        ):
            if value:
                self.add(f"{category_segment_expr(level)} = {{0}}", value)

        if spec.search:
            ilike = self.dialect.ilike
            self.add(
                f"({SKU_EXPR} {ilike} {{0}} OR {self.product_name_expr} {ilike} {{0}})",
                f"%{spec.search}%",
            )

        self.add_in(SKU_EXPR, spec.skus)
        self.add_in("pp.product_tmpl_id", spec.product_tmpl_ids)
        return self

    def compile(self) -> CompiledFilter:
        conditions: list[str] = []
        params: list[Any] = []
        for predicate in self.predicates:
            offset = len(params)
            names = [f":p{offset + index}" for index in range(1, len(predicate.params) + 1)]
            conditions.append(predicate.template.format(*names))
            params.extend(predicate.params)
        return CompiledFilter(where=" AND ".join(conditions), params=tuple(params))


def compile_filter(spec: FilterSpec, dialect: SqlDialect, *, name_language: str = "en_US") -> CompiledFilter:
    return FilterCompiler(dialect=dialect, name_language=name_language).add_spec(spec).compile()
