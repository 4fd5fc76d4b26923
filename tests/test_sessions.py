# tests/test_sessions.py
import asyncio

import pytest

from app.config.settings import Settings
from app.core.exceptions import SaleInProgress
from app.modules.sales.schemas import PaymentMethod
from app.modules.sales.service import SaleSession, SaleSessionManager

pytestmark = pytest.mark.anyio


@pytest.fixture
def settings():
    return Settings(reading_poll_interval_seconds=0.01, sale_session_idle_seconds=60)


# ==================== SESIÓN DE VENTA ====================

async def test_cart_is_locked_while_sale_is_saving(repository, feed, settings, monkeypatch):
    session = SaleSession("operador-1", repository, feed, settings)
    await session.start()
    try:
        item = session.add_manual(4, 1)
        release = asyncio.Event()
        original = repository.create_sale

        async def slow_create_sale(**kwargs):
            await release.wait()
            return await original(**kwargs)

        monkeypatch.setattr(repository, "create_sale", slow_create_sale)
        commit = asyncio.create_task(session.commit(PaymentMethod.efectivo))
        for _ in range(100):
            if session.committer.is_processing:
                break
            await asyncio.sleep(0)

        with pytest.raises(SaleInProgress):
            session.add_manual(4, 1)
        with pytest.raises(SaleInProgress):
            session.remove_item(item.line_id)
        with pytest.raises(SaleInProgress):
            await session.associate("JAM")

        release.set()
        response = await commit

        assert response.success
        assert response.total == 1500
        assert session.add_manual(4, 1).quantity == 1
    finally:
        await session.stop()


# ==================== ADMINISTRADOR DE SESIONES ====================

async def test_slow_session_start_does_not_block_other_operators(store, feed, settings, monkeypatch):
    release = asyncio.Event()
    original_start = SaleSession.start

    async def start(self):
        if self.user_id == "operador-lento":
            await release.wait()
        await original_start(self)

    monkeypatch.setattr(SaleSession, "start", start)
    manager = SaleSessionManager(store, feed, settings)
    try:
        slow = asyncio.create_task(manager.get("operador-lento"))
        await asyncio.sleep(0)

        fast = await asyncio.wait_for(manager.get("operador-rapido"), timeout=1)

        assert fast.user_id == "operador-rapido"
        assert not slow.done()
        release.set()
        assert (await slow).user_id == "operador-lento"
        assert len(manager) == 2
    finally:
        await manager.close_all()


async def test_concurrent_requests_share_one_session(store, feed, settings, monkeypatch):
    starts = []
    original_start = SaleSession.start

    async def start(self):
        starts.append(self.user_id)
        await asyncio.sleep(0.01)
        await original_start(self)

    monkeypatch.setattr(SaleSession, "start", start)
    manager = SaleSessionManager(store, feed, settings)
    try:
        first, second = await asyncio.gather(manager.get("operador-1"), manager.get("operador-1"))

        assert first is second
        assert starts == ["operador-1"]
    finally:
        await manager.close_all()


async def test_idle_sessions_are_closed(store, feed, settings):
    now = [0.0]
    manager = SaleSessionManager(store, feed, settings, clock=lambda: now[0])
    try:
        idle = await manager.get("operador-1")
        now[0] = 30
        await manager.get("operador-2")
        now[0] = 61

        await manager.get("operador-2")

        assert "operador-1" not in manager
        assert "operador-2" in manager
        assert not idle.reconciler.running
    finally:
        await manager.close_all()
