from __future__ import annotations

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from po_dashboard.core.config import Settings
from po_dashboard.services.purchase_analytics_service import MAX_SQL_INTEGER, LinePageRequest
from tests.factories import PurchaseCatalog


@pytest.fixture()
def seeded_lines(catalog: PurchaseCatalog) -> int:
    """25 SKUs ordered in January, every third one again in February."""

    steel = catalog.category("Raw / Metal / Steel")
    rows = 0
    for index in range(1, 26):
        product = catalog.product(f"Part {index:03d}", sku=f"SKU-{index:03d}", category=steel)
        catalog.line(product, "2025-01-10 00:00:00", qty=index, price=index % 7 + 1)
        rows += 1
        if index % 3 == 0:
            catalog.line(product, "2025-02-10 00:00:00", qty=1, price=2)
            rows += 1
    catalog.commit()
    return rows


def _page(client: TestClient, **params: object) -> dict:
    response = client.get("/api/po/lines", params=params)
    assert response.status_code == 200
    return response.json()


@pytest.mark.parametrize("page_size", [10, 25, 50])
def test_total_is_independent_of_page_size(client: TestClient, seeded_lines: int, page_size: int) -> None:
    payload = _page(client, pageSize=page_size)

    assert payload["total"] == seeded_lines
    assert payload["pageSize"] == page_size
    assert len(payload["data"]) == min(page_size, seeded_lines)


def test_pages_cover_every_row_exactly_once(client: TestClient, seeded_lines: int) -> None:
    keys: list[tuple[str, int]] = []
    page = 1
    while True:
        data = _page(client, page=page, pageSize=10, sortBy="ordered_value", sortDir="desc")["data"]
        if not data:
            break
        keys.extend((row["month"], row["variant_id"]) for row in data)
        page += 1

    assert len(keys) == seeded_lines
    assert len(set(keys)) == seeded_lines


def test_sort_is_monotonic_with_opposite_sku_tie_break(client: TestClient, seeded_lines: int) -> None:
    data = _page(client, pageSize=200, sortBy="avg_price", sortDir="desc")["data"]
    prices = [Decimal(row["avg_price_unit_thb"]) for row in data]
    assert prices == sorted(prices, reverse=True)

    for previous, current in zip(data, data[1:]):
        if previous["avg_price_unit_thb"] == current["avg_price_unit_thb"]:
            assert previous["sku"] <= current["sku"]

    ascending = _page(client, pageSize=200, sortBy="month", sortDir="asc")["data"]
    assert [row["month"] for row in ascending] == sorted(row["month"] for row in ascending)
    january = [row["sku"] for row in ascending if row["month"] == "2025-01"]
    assert january == sorted(january, reverse=True)


def test_default_sort_is_newest_month_first(client: TestClient, seeded_lines: int) -> None:
    data = _page(client)["data"]

    assert data[0]["month"] == "2025-02"
    assert data[0]["sku"] == "SKU-003"


@pytest.mark.parametrize(
    ("params", "expected"),
    [
        ({"pageSize": "5"}, (1, 10, "month", True)),
        ({"pageSize": "1000"}, (1, 200, "month", True)),
        ({"page": "0"}, (1, 50, "month", True)),
        ({"page": "abc", "pageSize": "x"}, (1, 50, "month", True)),
        ({"page": "3", "sortBy": "drop table", "sortDir": "sideways"}, (3, 50, "month", True)),
        ({"sortBy": "sku", "sortDir": "ASC"}, (1, 50, "sku", False)),
    ],
)
def test_page_request_is_clamped(params: dict[str, str], expected: tuple[int, int, str, bool]) -> None:
    request = LinePageRequest.from_query(
        page=params.get("page"),
        page_size=params.get("pageSize"),
        sort_by=params.get("sortBy"),
        sort_dir=params.get("sortDir"),
        settings=Settings(),
    )

    assert (request.page, request.page_size, request.sort_key, request.descending) == expected


def test_lines_endpoint_echoes_clamped_paging(client: TestClient, seeded_lines: int) -> None:
    payload = _page(client, page="0", pageSize="5", sortBy="nope")

    assert payload["page"] == 1
    assert payload["pageSize"] == 10
    assert payload["total"] == seeded_lines


def test_lines_in_same_month_variant_and_uom_are_merged(client: TestClient, catalog: PurchaseCatalog) -> None:
    kg = catalog.uom("kg")
    steel = catalog.category("Raw / Metal / Steel")
    bolt = catalog.product("Bolt", sku="B-1", category=steel)
    catalog.line(bolt, "2025-01-02 00:00:00", qty=2, price=10, received=1, uom=kg)
    catalog.line(bolt, "2025-01-20 00:00:00", qty=3, price=20, invoiced=3, uom=kg)
    catalog.line(bolt, "2025-01-21 00:00:00", qty=1, price=5)
    catalog.commit()

    payload = _page(client, sortBy="ordered_value")

    assert payload["total"] == 2
    merged = payload["data"][0]
    assert merged == {
        "month": "2025-01",
        "variant_id": bolt.id,
        "sku": "B-1",
        "product_name_en": "Bolt",
        "category_path": "Raw / Metal / Steel",
        "category_l1": "Raw",
        "category_l2": "Metal",
        "category_l3": "Steel",
        "category_depth": 3,
        "category_leaf": "Steel",
        "ordered_qty_po_uom": "5.000",
        "po_uom": "kg",
        "received_qty_po_uom": "1.000",
        "invoiced_qty_po_uom": "3.000",
        "ordered_value_thb": "80.00",
        "avg_price_unit_thb": "15.0000",
    }
    assert payload["data"][1]["po_uom"] is None


def test_sku_filter_falls_back_to_template_code(client: TestClient, catalog: PurchaseCatalog) -> None:
    own = catalog.product("Bolt", sku="SKU-A")
    inherited = catalog.product("Nut", template_sku="SKU-B")
    other = catalog.product("Washer", sku="SKU-C")
    for product in (own, inherited, other):
        catalog.line(product, "2025-01-02 00:00:00", qty=1, price=1)
    catalog.commit()

    payload = _page(client, skus="SKU-A, SKU-B", sortBy="sku", sortDir="asc")

    assert payload["total"] == 2
    assert [row["sku"] for row in payload["data"]] == ["SKU-A", "SKU-B"]
    assert payload["data"][0]["category_depth"] is None
    assert payload["data"][0]["category_l1"] is None


def test_huge_page_number_is_clamped_to_a_bindable_offset(client: TestClient, seeded_lines: int) -> None:
    payload = _page(client, page="99999999999999999999")

    assert payload["page"] == MAX_SQL_INTEGER // 50
    assert payload["total"] == seeded_lines
    assert payload["data"] == []
