# app/modules/sales/service.py
import asyncio
import logging
import time
from typing import Callable, Dict, Optional

from app.config.settings import Settings
from app.core.exceptions import NoMatchFound, RecordStoreError, SaleInProgress
from app.shared.store import ChangeFeed, RecordStore
from .association import AssociationEngine
from .cart import CartAssembler
from .catalog import CatalogCache
from .committer import SaleCommitter
from .reconciler import ReadingFeedReconciler
from .repository import SalesRepository
from .schemas import (
    CartLineItem, CommitResponse, CommitState, PaymentMethod, Reading, ReadingResponse,
    SaleSessionResponse, UnitOfMeasure
)

logger = logging.getLogger(__name__)


def _reading_response(reading: Optional[Reading]) -> Optional[ReadingResponse]:
    if reading is None:
        return None
    return ReadingResponse(
        id=reading.id,
        timestamp=reading.timestamp,
        weight=reading.weight,
        product_id=reading.product_id,
        consumed=reading.is_consumed,
    )


class SaleSession:
    """
    Venta en curso de un operador: catálogo, carrito, reconciliador de
    lecturas, asociación y confirmación comparten el mismo estado.
    """

    def __init__(self, user_id: str, repository: SalesRepository,
                 feed: Optional[ChangeFeed], settings: Settings):
        self.user_id = user_id
        self.repository = repository
        self.catalog = CatalogCache(repository)
        self.cart = CartAssembler(self.catalog)
        self.reconciler = ReadingFeedReconciler(
            repository,
            feed,
            poll_interval=settings.reading_poll_interval_seconds,
            snapshot_limit=settings.reading_snapshot_limit,
            ready_limit=settings.ready_readings_limit,
        )
        self.association = AssociationEngine(repository, self.catalog, self.cart)
        self.committer = SaleCommitter(
            repository,
            self.catalog,
            self.cart,
            self.reconciler,
            walk_in_client_name=settings.walk_in_client_name,
        )

    async def start(self) -> None:
        try:
            await self.catalog.refresh()
        except RecordStoreError as e:
            logger.error(f"❌ No se pudo cargar el catálogo para {self.user_id}: {e}")
        await self.reconciler.poll_once()
        self.reconciler.start()

    async def stop(self) -> None:
        await self.reconciler.stop()

    # ==================== ESTADO ====================

    def state(self) -> SaleSessionResponse:
        in_cart = set(self.cart.reading_ids)
        pending = self.reconciler.pending
        if pending is not None and pending.id in in_cart:
            pending = None
        return SaleSessionResponse(
            items=self.cart.items,
            total=self.cart.total,
            pending_reading=_reading_response(pending),
            ready_readings=[_reading_response(r) for r in self.reconciler.ready if r.id not in in_cart],
            has_weighed_item=self.cart.weighed_item is not None,
            is_processing=self.committer.is_processing,
            polling_paused=self.reconciler.paused,
        )

    # ==================== CARRITO ====================

    def _check_not_processing(self) -> None:
        # el carrito queda fijo mientras se guarda la venta
        if self.committer.is_processing:
            raise SaleInProgress()

    def add_manual(self, product_id: int, quantity: float,
                   unit: Optional[UnitOfMeasure] = None) -> CartLineItem:
        self._check_not_processing()
        product = self.catalog.product(product_id)
        if product is None:
            raise NoMatchFound(f"El producto #{product_id} no está en el catálogo", product_id=product_id)
        return self.cart.add_manual(product, quantity, unit)

    async def add_reading(self, reading_id: int) -> CartLineItem:
        """Agregar al carrito una lectura que ya tiene producto asociado"""
        self._check_not_processing()
        reading = self.reconciler.find(reading_id)
        if reading is None:
            readings = await self.repository.get_readings_by_ids([reading_id])
            if not readings:
                raise NoMatchFound(f"La lectura #{reading_id} no existe", reading_id=reading_id)
            reading = readings[0]
        return self.cart.add_from_reading(reading)

    async def associate(self, query: str, reading_id: Optional[int] = None) -> Optional[CartLineItem]:
        self._check_not_processing()
        if reading_id is None:
            reading = self.reconciler.pending
            if reading is None or reading.id in self.cart.reading_ids:
                raise NoMatchFound("No hay ninguna lectura de balanza pendiente de asociar")
        else:
            reading = self.reconciler.find(reading_id)
            if reading is None:
                readings = await self.repository.get_readings_by_ids([reading_id])
                if not readings:
                    raise NoMatchFound(f"La lectura #{reading_id} no existe", reading_id=reading_id)
                reading = readings[0]
        return await self.association.associate(reading, query)

    def remove_item(self, line_id: str) -> CartLineItem:
        self._check_not_processing()
        item = self.cart.remove(line_id)
        if item is None:
            raise NoMatchFound(f"El ítem {line_id} no está en el carrito", line_id=line_id)
        return item

    # ==================== CONFIRMACIÓN ====================

    async def commit(self, payment_method: PaymentMethod, client_id: Optional[int] = None) -> CommitResponse:
        total = self.cart.total
        result = await self.committer.commit(self.user_id, payment_method, client_id)
        if result is None:
            return CommitResponse(
                success=False,
                state=CommitState.committing,
                sale_id=None,
                ticket_number=None,
                total=total,
                warnings=[],
                message="Ya hay una venta en proceso",
            )

        # el catálogo se refresca sólo entre ventas
        try:
            await self.catalog.refresh()
        except RecordStoreError as e:
            logger.warning(f"⚠️ No se pudo refrescar el catálogo después de la venta: {e}")

        message = "Venta registrada correctamente"
        if result.warnings:
            message = "Venta registrada con advertencias"
        return CommitResponse(
            success=result.success,
            state=result.state,
            sale_id=result.sale.id if result.sale else None,
            ticket_number=result.ticket.number if result.ticket else None,
            total=result.sale.total if result.sale else total,
            warnings=result.warnings,
            message=message,
        )

    def set_visibility(self, hidden: bool) -> None:
        if hidden:
            self.reconciler.pause()
        else:
            self.reconciler.resume()


class SaleSessionManager:
    """
    Sesiones de venta por operador (id de usuario).

    Cada operador arranca su sesión con su propio lock, así el arranque de una
    sesión no frena a los demás. Las sesiones sin uso por más de
    ``sale_session_idle_seconds`` se cierran, salvo que estén confirmando una venta.
    """

    def __init__(self, store: RecordStore, feed: Optional[ChangeFeed], settings: Settings,
                 clock: Callable[[], float] = time.monotonic):
        self.repository = SalesRepository(store)
        self.feed = feed
        self.settings = settings
        self.clock = clock
        self._sessions: Dict[str, SaleSession] = {}
        self._last_used: Dict[str, float] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._sessions

    async def get(self, user_id: str) -> SaleSession:
        await self.evict_idle(keep=user_id)

        session = self._sessions.get(user_id)
        if session is None:
            lock = self._locks.setdefault(user_id, asyncio.Lock())
            async with lock:
                session = self._sessions.get(user_id)
                if session is None:
                    session = SaleSession(user_id, self.repository, self.feed, self.settings)
                    await session.start()
                    self._sessions[user_id] = session
                    logger.info(f"Sesión de venta iniciada para {user_id}")

        self._last_used[user_id] = self.clock()
        return session

    async def evict_idle(self, keep: Optional[str] = None) -> int:
        """Cerrar las sesiones inactivas; devuelve cuántas se cerraron"""
        limit = self.settings.sale_session_idle_seconds
        now = self.clock()
        idle = [
            user_id for user_id, session in self._sessions.items()
            if user_id != keep
            and not session.committer.is_processing
            and now - self._last_used.get(user_id, now) > limit
        ]
        for user_id in idle:
            logger.info(f"Sesión de venta de {user_id} cerrada por inactividad")
            await self.close(user_id)
        return len(idle)

    async def close(self, user_id: str) -> None:
        session = self._sessions.pop(user_id, None)
        self._last_used.pop(user_id, None)
        lock = self._locks.get(user_id)
        if lock is not None and not lock.locked():
            del self._locks[user_id]
        if session is not None:
            await session.stop()

    async def close_all(self) -> None:
        for user_id in list(self._sessions):
            await self.close(user_id)
