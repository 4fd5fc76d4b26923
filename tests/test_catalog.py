# tests/test_catalog.py
import pytest

from app.core.exceptions import RecordStoreError
from app.modules.sales.catalog import (
    CODE_CONTAINS, CODE_PREFIX, EXACT_CODE, NAME_CONTAINS, CatalogCache, match_score
)
from app.modules.sales.schemas import Product

pytestmark = pytest.mark.anyio


def product(product_id, code, name):
    return Product(id=product_id, code=code, name=name, price=100, stock=10, unit="kg")


def test_score_tiers_never_overlap():
    p = product(1, "X" * 150 + "AB", "AB" + "y" * 150)

    assert match_score(product(1, "AB", "Otro"), "ab") == EXACT_CODE
    assert CODE_CONTAINS < match_score(product(1, "AB" + "9" * 150, "Otro"), "ab") <= CODE_PREFIX
    assert NAME_CONTAINS < match_score(p, "ab") <= CODE_CONTAINS
    assert 0 < match_score(product(1, "ZZ", "y" * 150 + "ab"), "ab") <= NAME_CONTAINS


def test_score_ignores_case_and_accents():
    assert match_score(product(1, "JAM001", "Jamón Crudo"), "jamon") > 0
    assert match_score(product(1, "JAM001", "Jamón Crudo"), "  ") == 0


def test_best_match_prefers_shorter_code_prefix(catalog):
    assert catalog.best_match("JAM").code == "JAM001"
    assert catalog.best_match("jam0012").code == "JAM0012"


def test_best_match_prefers_code_over_name(catalog):
    # "sal" aparece en el código de Salame y en ningún nombre antes
    assert catalog.best_match("sal").name == "Salame Milano"
    assert catalog.best_match("provo").name == "Queso Provoleta"


def test_ties_resolve_by_catalog_order(repository):
    catalog = CatalogCache(repository)
    catalog.load([product(1, "AAA1", "Uno"), product(2, "BBB1", "Dos"), product(3, "AAA2", "Tres")])

    assert catalog.best_match("aaa").id == 1
    assert [p.id for p in catalog.search("aaa")] == [1, 3]


def test_best_match_is_deterministic(catalog):
    results = {catalog.best_match("mi").id for _ in range(20)}
    assert len(results) == 1


def test_no_match_returns_none(catalog):
    assert catalog.best_match("xyz") is None
    assert catalog.best_match("") is None


def test_low_stock_orders_by_difference_with_minimum(catalog):
    assert [p.id for p in catalog.low_stock()][:2] == [4, 2]


async def test_refresh_loads_products_and_clients(repository, store):
    store.seed("clientes", [{"nombre": "Ana", "apellido": "Pérez"}])
    catalog = CatalogCache(repository)

    await catalog.refresh()

    assert [p.name for p in catalog.products][:2] == ["Gaseosa Cola", "Jamón Cocido"]
    assert catalog.clients[0].full_name == "Ana Pérez"
    assert catalog.product(3).unit.value == "gramos"


async def test_refresh_failure_keeps_previous_snapshot(catalog, store):
    store.fail_on("select", "productos")

    with pytest.raises(RecordStoreError):
        await catalog.refresh()

    assert len(catalog.products) == 5
