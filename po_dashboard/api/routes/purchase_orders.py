"""Purchase-order analytics endpoints backing the dashboard."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from po_dashboard.core.config import get_settings
from po_dashboard.db.dependencies import get_db_session
from po_dashboard.services.filter_compiler import CategoryLevel, FilterSpec
from po_dashboard.services.purchase_analytics_service import LinePageRequest, PurchaseAnalyticsService

router = APIRouter(prefix="/po", tags=["purchase-orders"])


def _service(db: Session) -> PurchaseAnalyticsService:
    return PurchaseAnalyticsService(db)


def get_filter_spec(
    date_from: str | None = Query(default=None, alias="dateFrom"),
    date_to: str | None = Query(default=None, alias="dateTo"),
    cat_l1: str | None = Query(default=None, alias="catL1"),
    cat_l2: str | None = Query(default=None, alias="catL2"),
    cat_l3: str | None = Query(default=None, alias="catL3"),
    search: str | None = None,
    skus: str | None = None,
    product_tmpl_ids: str | None = Query(default=None, alias="productTmplIds"),
) -> FilterSpec:
    """Parse the shared dashboard filters once per request."""

    return FilterSpec.from_query(
        default_date_from=get_settings().default_date_from,
        date_from=date_from,
        date_to=date_to,
        cat_l1=cat_l1,
        cat_l2=cat_l2,
        cat_l3=cat_l3,
        search=search,
        skus=skus,
        product_tmpl_ids=product_tmpl_ids,
    )


def get_category_level(spec: FilterSpec = Depends(get_filter_spec)) -> CategoryLevel:
    return CategoryLevel.drill_down_for(spec)


@router.get("/kpis")
def get_kpis(
    spec: FilterSpec = Depends(get_filter_spec),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return _service(db).kpis(spec)


@router.get("/monthly")
def get_monthly(
    spec: FilterSpec = Depends(get_filter_spec),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    return _service(db).monthly(spec)


@router.get("/by-category")
def get_by_category(
    spec: FilterSpec = Depends(get_filter_spec),
    level: CategoryLevel = Depends(get_category_level),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    return _service(db).by_category(spec, level)


@router.get("/by-uom")
def get_by_uom(
    spec: FilterSpec = Depends(get_filter_spec),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    return _service(db).by_uom(spec)


@router.get("/lines")
def get_lines(
    page: str | None = None,
    page_size: str | None = Query(default=None, alias="pageSize"),
    sort_by: str | None = Query(default=None, alias="sortBy"),
    sort_dir: str | None = Query(default=None, alias="sortDir"),
    spec: FilterSpec = Depends(get_filter_spec),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    request = LinePageRequest.from_query(
        page=page,
        page_size=page_size,
        sort_by=sort_by,
        sort_dir=sort_dir,
        settings=get_settings(),
    )
    return _service(db).lines(spec, request)


@router.get("/price-trend")
def get_price_trend(
    spec: FilterSpec = Depends(get_filter_spec),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    return _service(db).price_trend(spec)


@router.get("/price-by-quarter")
def get_price_by_quarter(
    spec: FilterSpec = Depends(get_filter_spec),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    return _service(db).price_by_quarter(spec)


@router.get("/filters")
def get_filter_options(db: Session = Depends(get_db_session)) -> dict[str, object]:
    return _service(db).filter_options()


@router.get("/products")
def search_products(
    q: str | None = None,
    spec: FilterSpec = Depends(get_filter_spec),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    return _service(db).search_products(spec, q)


@router.get("/skus")
def search_skus(
    q: str | None = None,
    tmpl_id: str | None = Query(default=None, alias="tmplId"),
    spec: FilterSpec = Depends(get_filter_spec),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    return _service(db).search_skus(spec, q, tmpl_id)
