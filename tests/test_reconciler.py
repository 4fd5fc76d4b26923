# tests/test_reconciler.py
import asyncio
import random

import pytest

from app.modules.sales.reconciler import ReadingFeedReconciler, reading_key
from app.modules.sales.schemas import Reading
from app.shared.store import INSERT, ChangeEvent, eq

from conftest import reading_row

pytestmark = pytest.mark.anyio


def reading(reading_id, seconds=0, **kwargs) -> Reading:
    return Reading.model_validate(reading_row(reading_id, seconds, **kwargs))


@pytest.fixture
def reconciler(repository, feed):
    return ReadingFeedReconciler(repository, feed, poll_interval=0.01, snapshot_limit=50, ready_limit=3)


# ==================== ADMISIÓN ====================

def test_same_timestamp_is_ordered_by_numeric_id(reconciler):
    reconciler.apply(reading(5, 0))
    reconciler.apply(reading(12, 0))

    assert reconciler.last_applied.id == 12
    assert reconciler.pending.id == 12


def test_same_timestamp_in_reverse_order_keeps_higher_id(reconciler):
    reconciler.apply(reading(12, 0))
    applied = reconciler.apply(reading(5, 0))

    assert applied is False
    assert reconciler.last_applied.id == 12


def test_older_and_replayed_readings_are_discarded(reconciler):
    assert reconciler.apply(reading(2, 10)) is True
    assert reconciler.apply(reading(1, 5)) is False
    assert reconciler.apply(reading(2, 10)) is False

    assert reconciler.pending.id == 2


def test_applied_key_never_decreases(reconciler):
    deliveries = [reading(i, seconds=random.Random(i).randint(0, 20)) for i in range(1, 60)]
    deliveries += deliveries[::3]
    random.Random(7).shuffle(deliveries)

    keys = []
    for delivery in deliveries:
        reconciler.apply(delivery)
        keys.append(reading_key(reconciler.last_applied))

    assert keys == sorted(keys)
    assert reconciler.last_applied == max(deliveries, key=reading_key)


# ==================== CLASIFICACIÓN ====================

def test_reading_with_product_goes_to_ready_list(reconciler):
    reconciler.apply(reading(1, 0))
    reconciler.apply(reading(2, 1, product_id=1))

    assert reconciler.pending.id == 1
    assert [r.id for r in reconciler.ready] == [2]


def test_ready_list_is_capped_and_most_recent_first(reconciler):
    for i in range(1, 6):
        reconciler.apply(reading(i, i, product_id=1))

    assert [r.id for r in reconciler.ready] == [5, 4, 3]


def test_consumed_readings_are_never_surfaced(reconciler):
    reconciler.apply(reading(1, 0, used=True))
    reconciler.apply(reading(2, 1, product_id=1, sale_id=9))

    assert reconciler.pending is None
    assert reconciler.ready == []


def test_head_refresh_drops_reading_consumed_elsewhere(reconciler):
    reconciler.apply(reading(1, 0))
    applied = reconciler.apply(reading(1, 0, used=True, sale_id=3))

    assert applied is False
    assert reconciler.pending is None


def test_tracked_reading_bound_later_moves_to_ready(reconciler):
    reconciler.apply(reading(1, 0))
    reconciler.apply(reading(2, 5, product_id=2))
    reconciler.apply(reading(1, 0, product_id=1))

    assert reconciler.pending is None
    assert [r.id for r in reconciler.ready] == [2, 1]


def test_stale_redelivery_does_not_unbind_a_ready_reading(reconciler):
    reconciler.apply(reading(1, 0, product_id=1))
    reconciler.apply(reading(1, 0))

    assert reconciler.pending is None
    assert [r.id for r in reconciler.ready] == [1]


def test_rearm_retires_consumed_readings(reconciler):
    reconciler.apply(reading(1, 0, product_id=1))
    reconciler.rearm([1])
    # la consulta siguiente todavía la ve sin usar (falló el marcado)
    reconciler.ingest_snapshot([reading(1, 0, product_id=1)])

    assert reconciler.ready == []


# ==================== FUENTES ====================

async def test_poll_once_ingests_snapshot_from_store(reconciler, store):
    store.seed("lecturas_balanza", [reading_row(1, 0), reading_row(2, 1, product_id=1), reading_row(3, 2, used=True)])

    applied = await reconciler.poll_once()

    assert applied == 3
    assert reconciler.pending.id == 1
    assert [r.id for r in reconciler.ready] == [2]


async def test_poll_error_keeps_previous_state(reconciler, store):
    reconciler.apply(reading(4, 0))
    store.fail_on("select", "lecturas_balanza")

    applied = await reconciler.poll_once()

    assert applied == 0
    assert reconciler.poll_errors == 1
    assert reconciler.pending.id == 4


def test_malformed_event_is_ignored(reconciler):
    bad = ChangeEvent(INSERT, "lecturas_balanza", {"id": 1, "peso": "mucho"})

    assert reconciler.handle_event(bad) is False
    assert reconciler.last_applied is None


def test_event_and_stale_poll_race(reconciler):
    # el evento llega antes que una consulta iniciada antes de la lectura nueva
    reconciler.handle_event(ChangeEvent(INSERT, "lecturas_balanza", reading_row(8, 30)))
    reconciler.ingest_snapshot([reading(7, 20), reading(6, 10)])

    assert reconciler.pending.id == 8


async def test_running_reconciler_follows_store_writes(reconciler, store):
    reconciler.start()
    try:
        await store.insert("lecturas_balanza", reading_row(1, 0, weight=0.75))
        for _ in range(100):
            if reconciler.pending is not None:
                break
            await asyncio.sleep(0.01)
        assert reconciler.pending.id == 1

        await store.update("lecturas_balanza", {"producto_id": 1}, [eq("id", 1)])
        for _ in range(100):
            if reconciler.ready:
                break
            await asyncio.sleep(0.01)
        assert reconciler.pending is None
        assert [r.id for r in reconciler.ready] == [1]
    finally:
        await reconciler.stop()

    assert not reconciler.running


async def test_pause_stops_polling_until_resumed(reconciler, store):
    reconciler.feed = None
    reconciler.pause()
    reconciler.start()
    try:
        store.seed("lecturas_balanza", reading_row(1, 0))
        await asyncio.sleep(0.05)
        assert reconciler.pending is None

        reconciler.resume()
        for _ in range(100):
            if reconciler.pending is not None:
                break
            await asyncio.sleep(0.01)
        assert reconciler.pending.id == 1
    finally:
        await reconciler.stop()


def test_retired_ids_are_forgotten_past_the_limit(reconciler):
    reconciler.rearm(range(1, 61))
    reconciler.ingest_snapshot([reading(60, 60, product_id=1), reading(1, 61, product_id=1)])

    assert reconciler.retired_limit == 53
    assert [r.id for r in reconciler.ready] == [1]
