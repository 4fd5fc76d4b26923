# tests/conftest.py
"""
Fixtures compartidas: almacén en memoria con catálogo de la fiambrería,
canal de cambios y helpers para lecturas de balanza.
"""
from datetime import datetime, timedelta, timezone

import pytest

from app.modules.sales.cart import CartAssembler
from app.modules.sales.catalog import CatalogCache
from app.modules.sales.repository import SalesRepository
from app.modules.sales.schemas import Product
from app.shared.store import ChangeFeed, MemoryRecordStore

BASE_TIME = datetime(2024, 5, 10, 12, 0, 0, tzinfo=timezone.utc)

PRODUCTS = [
    {"id": 1, "codigo": "JAM001", "nombre": "Jamón Crudo", "precio": 4500, "stock": 10, "unidad_medida": "kg", "stock_minimo": 2},
    {"id": 2, "codigo": "SAL002", "nombre": "Salame Milano", "precio": 3800, "stock": 5, "unidad_medida": "kg", "stock_minimo": 1},
    {"id": 3, "codigo": "QUE003", "nombre": "Queso Provoleta", "precio": 5.2, "stock": 2000, "unidad_medida": "gramos", "stock_minimo": 500},
    {"id": 4, "codigo": "GAS001", "nombre": "Gaseosa Cola", "precio": 1500, "stock": 24, "unidad_medida": "unidades", "stock_minimo": 30},
    {"id": 5, "codigo": "JAM0012", "nombre": "Jamón Cocido", "precio": 3200, "stock": 8, "unidad_medida": "kg", "stock_minimo": 2},
]


def at(seconds: float = 0) -> datetime:
    return BASE_TIME + timedelta(seconds=seconds)


def reading_row(reading_id, seconds=0, weight=0.5, product_id=None, used=False, sale_id=None):
    return {
        "id": reading_id,
        "fecha_lectura": at(seconds),
        "peso": weight,
        "producto_id": product_id,
        "usado": used,
        "venta_id": sale_id,
    }


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def feed():
    return ChangeFeed(queue_size=10)


@pytest.fixture
def store(feed):
    store = MemoryRecordStore(feed=feed)
    store.seed("productos", PRODUCTS)
    return store


@pytest.fixture
def repository(store):
    return SalesRepository(store)


@pytest.fixture
def products():
    return {row["id"]: Product.model_validate(row) for row in PRODUCTS}


@pytest.fixture
def catalog(repository, products):
    catalog = CatalogCache(repository)
    catalog.load(list(products.values()), [])
    return catalog


@pytest.fixture
def cart(catalog):
    return CartAssembler(catalog)
