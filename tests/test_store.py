# tests/test_store.py
import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from app.core.exceptions import RecordStoreError
from app.shared.store import (
    INSERT, UPDATE, ChangeFeed, MemoryRecordStore, Order, SQLAlchemyRecordStore, eq, ilike, in_, is_null
)

from conftest import PRODUCTS, at

pytestmark = pytest.mark.anyio


@pytest.fixture
def sqlite_store():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    store = SQLAlchemyRecordStore(engine, feed=ChangeFeed())
    store.create_schema()
    return store


@pytest.fixture(params=["memory", "sqlalchemy"])
def any_store(request, sqlite_store):
    if request.param == "memory":
        return MemoryRecordStore(feed=ChangeFeed())
    return sqlite_store


# ==================== CONTRATO COMÚN ====================

async def test_insert_assigns_ids_and_defaults(any_store):
    rows = await any_store.insert("lecturas_balanza", [
        {"peso": 0.5, "fecha_lectura": at(0)},
        {"peso": 1.2, "fecha_lectura": at(1)},
    ])

    assert [r["id"] for r in rows] == [1, 2]
    assert all(r["usado"] is False for r in rows)
    assert all(r["producto_id"] is None for r in rows)


async def test_select_filters_order_and_limit(any_store):
    await any_store.insert("productos", PRODUCTS)

    rows = await any_store.select(
        "productos",
        columns="id,nombre",
        filters=[in_("id", [1, 2, 5])],
        order=[Order("nombre", descending=True)],
        limit=2,
    )

    assert rows == [{"id": 2, "nombre": "Salame Milano"}, {"id": 1, "nombre": "Jamón Crudo"}]


async def test_ilike_is_case_insensitive(any_store):
    await any_store.insert("clientes", {"nombre": "Consumidor Final"})

    rows = await any_store.select("clientes", filters=[ilike("nombre", "consumidor final")])

    assert len(rows) == 1


async def test_update_returns_count_and_respects_filters(any_store):
    await any_store.insert("lecturas_balanza", [
        {"peso": 0.5, "fecha_lectura": at(0)},
        {"peso": 0.7, "fecha_lectura": at(1)},
    ])

    updated = await any_store.update(
        "lecturas_balanza", {"producto_id": None, "usado": True}, [eq("id", 2), is_null("venta_id")]
    )
    rows = await any_store.select("lecturas_balanza", filters=[eq("usado", True)])

    assert updated == 1
    assert [r["id"] for r in rows] == [2]


async def test_delete_removes_matching_rows(any_store):
    await any_store.insert("clientes", [{"nombre": "Ana"}, {"nombre": "Luis"}])

    deleted = await any_store.delete("clientes", [eq("nombre", "Ana")])

    assert deleted == 1
    assert [r["nombre"] for r in await any_store.select("clientes")] == ["Luis"]


async def test_update_and_delete_require_filters(any_store):
    with pytest.raises(RecordStoreError):
        await any_store.update("productos", {"stock": 0}, [])
    with pytest.raises(RecordStoreError):
        await any_store.delete("productos", [])


async def test_unknown_relation_and_column_are_errors(any_store):
    with pytest.raises(RecordStoreError):
        await any_store.select("products")
    with pytest.raises(RecordStoreError):
        await any_store.select("productos", filters=[eq("price", 1)])


async def test_writes_are_published_to_the_feed(any_store):
    subscription = any_store.feed.subscribe("lecturas_balanza", (INSERT, UPDATE))

    await any_store.insert("lecturas_balanza", {"peso": 0.5, "fecha_lectura": at(0)})
    await any_store.update("lecturas_balanza", {"producto_id": 1}, [eq("id", 1)])
    subscription.close()

    events = [event async for event in subscription]
    assert [e.event_type for e in events] == [INSERT, UPDATE]
    assert events[1].new_row["producto_id"] == 1


# ==================== MEMORIA ====================

async def test_memory_failure_injection():
    store = MemoryRecordStore()
    store.fail_on("insert", "tickets", "sin conexión", times=1)

    with pytest.raises(RecordStoreError) as exc_info:
        await store.insert("tickets", {"id_venta": 1, "numero_ticket": "T-1", "fecha_impresion": at(0)})
    rows = await store.insert("tickets", {"id_venta": 1, "numero_ticket": "T-1", "fecha_impresion": at(0)})

    assert exc_info.value.relation == "tickets"
    assert "sin conexión" in str(exc_info.value)
    assert len(rows) == 1


async def test_memory_select_returns_copies(store):
    rows = await store.select("productos", filters=[eq("id", 1)])
    rows[0]["stock"] = -1

    assert store.rows("productos")[0]["stock"] == 10


# ==================== SQLALCHEMY ====================

async def test_sqlalchemy_wraps_database_errors(sqlite_store):
    await sqlite_store.insert("tickets", {"id_venta": 1, "numero_ticket": "T-1", "fecha_impresion": at(0)})

    # numero_ticket es único
    with pytest.raises(RecordStoreError) as exc_info:
        await sqlite_store.insert("tickets", {"id_venta": 1, "numero_ticket": "T-1", "fecha_impresion": at(0)})

    assert exc_info.value.operation == "insert"
