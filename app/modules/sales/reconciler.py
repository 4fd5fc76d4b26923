# app/modules/sales/reconciler.py
"""
Reconciliador de lecturas de balanza.

Combina dos fuentes poco confiables, la consulta periódica al almacén y los
eventos del canal de cambios, en una sola señal: la última lectura sin
consumir. Una lectura se admite sólo si su clave (fecha_lectura, id) es
estrictamente mayor que la última aplicada; así los reenvíos y las respuestas
viejas de cualquiera de las dos fuentes se descartan sin bloquear nada.

Salidas:

- ``pending``: la lectura más reciente sin producto asociado.
- ``ready``: lecturas con producto y sin consumir, de la más nueva a la más
  vieja, con tope de largo.
"""
import asyncio
import logging
from collections import deque
from datetime import datetime
from typing import Deque, Iterable, List, Optional, Set, Tuple

from pydantic import ValidationError

from app.core.exceptions import RecordStoreError
from app.shared.store import INSERT, UPDATE, ChangeEvent, ChangeFeed, Subscription
from .repository import READINGS, SalesRepository
from .schemas import Reading

logger = logging.getLogger(__name__)

ReadingKey = Tuple[datetime, Tuple[int, int, str]]


def _id_key(reading_id) -> Tuple[int, int, str]:
    # ids numéricos se comparan como números ("12" > "5")
    text = str(reading_id)
    if text.isdigit():
        return (0, int(text), "")
    return (1, 0, text)


def reading_key(reading: Reading) -> ReadingKey:
    return (reading.timestamp, _id_key(reading.id))


class ReadingFeedReconciler:
    def __init__(self, repository: SalesRepository, feed: Optional[ChangeFeed] = None,
                 poll_interval: float = 3.0, snapshot_limit: int = 50, ready_limit: int = 50,
                 retired_limit: Optional[int] = None):
        self.repository = repository
        self.feed = feed
        self.poll_interval = poll_interval
        self.snapshot_limit = snapshot_limit
        self.ready_limit = ready_limit

        self.last_applied: Optional[Reading] = None
        self._last_key: Optional[ReadingKey] = None
        self._pending: Optional[Reading] = None
        self._ready: List[Reading] = []
        # ids retirados por rearm, los más viejos se olvidan pasado el tope;
        # una lectura fuera de la ventana de consulta ya no vuelve a aparecer
        self.retired_limit = retired_limit or (snapshot_limit + ready_limit)
        self._retired: Set[int] = set()
        self._retired_order: Deque[int] = deque()

        self.poll_errors = 0
        self._visible = asyncio.Event()
        self._visible.set()
        self._subscription: Optional[Subscription] = None
        self._tasks: List[asyncio.Task] = []

    # ==================== ESTADO ====================

    @property
    def pending(self) -> Optional[Reading]:
        return self._pending

    @property
    def ready(self) -> List[Reading]:
        return list(self._ready)

    @property
    def paused(self) -> bool:
        return not self._visible.is_set()

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def find(self, reading_id: int) -> Optional[Reading]:
        if self._pending is not None and self._pending.id == reading_id:
            return self._pending
        return next((r for r in self._ready if r.id == reading_id), None)

    # ==================== ADMISIÓN ====================

    def apply(self, reading: Reading) -> bool:
        """
        Aplicar una lectura si es más nueva que la última aplicada.

        Las que no avanzan el cursor sólo pueden hacer avanzar el estado de una
        lectura ya conocida (sin producto -> con producto -> consumida).
        Devuelve True si la lectura avanzó el cursor.
        """
        key = reading_key(reading)
        if self._last_key is not None and key <= self._last_key:
            self._refresh_tracked(reading)
            return False

        self._last_key = key
        self.last_applied = reading
        self._classify(reading)
        return True

    def ingest_snapshot(self, readings: Iterable[Reading]) -> int:
        applied = 0
        for reading in sorted(readings, key=reading_key):
            if self.apply(reading):
                applied += 1
        return applied

    def handle_event(self, event: ChangeEvent) -> bool:
        if event.relation != READINGS or event.event_type not in (INSERT, UPDATE):
            return False
        try:
            reading = Reading.model_validate(event.new_row)
        except ValidationError as e:
            logger.warning(f"⚠️ Evento de lectura inválido ignorado: {e.error_count()} errores")
            return False
        return self.apply(reading)

    def rearm(self, consumed_ids: Iterable[int]) -> None:
        """Dejar listo el reconciliador para la próxima venta"""
        for reading_id in consumed_ids:
            if reading_id not in self._retired:
                self._retired.add(reading_id)
                self._retired_order.append(reading_id)
            self._discard(reading_id)
        while len(self._retired_order) > self.retired_limit:
            self._retired.discard(self._retired_order.popleft())

    def _classify(self, reading: Reading) -> None:
        if reading.id in self._retired or reading.is_consumed:
            self._discard(reading.id)
        elif reading.product_id is None:
            self._ready = [r for r in self._ready if r.id != reading.id]
            self._pending = reading
        else:
            if self._pending is not None and self._pending.id == reading.id:
                self._pending = None
            self._add_ready(reading)

    def _refresh_tracked(self, reading: Reading) -> None:
        tracked = self.find(reading.id)
        if tracked is None:
            return
        if reading.is_consumed:
            self._discard(reading.id)
        elif reading.product_id is not None and tracked.product_id is None:
            self._pending = None
            self._add_ready(reading)

    def _add_ready(self, reading: Reading) -> None:
        ready = [r for r in self._ready if r.id != reading.id]
        ready.append(reading)
        ready.sort(key=reading_key, reverse=True)
        self._ready = ready[:self.ready_limit]

    def _discard(self, reading_id: int) -> None:
        if self._pending is not None and self._pending.id == reading_id:
            self._pending = None
        self._ready = [r for r in self._ready if r.id != reading_id]

    # ==================== FUENTES ====================

    async def poll_once(self) -> int:
        try:
            readings = await self.repository.get_recent_readings(self.snapshot_limit)
        except RecordStoreError as e:
            # se conserva el estado anterior
            self.poll_errors += 1
            logger.warning(f"⚠️ Error consultando lecturas de balanza: {e}")
            return 0
        return self.ingest_snapshot(readings)

    async def _poll_loop(self) -> None:
        while True:
            await self._visible.wait()
            await self.poll_once()
            await asyncio.sleep(self.poll_interval)

    async def _feed_loop(self, subscription: Subscription) -> None:
        async for event in subscription:
            self.handle_event(event)
        logger.info("Suscripción a lecturas cerrada; se continúa sólo con consultas periódicas")

    def start(self) -> None:
        if self.running:
            return
        self._tasks = [asyncio.create_task(self._poll_loop())]
        if self.feed is not None:
            self._subscription = self.feed.subscribe(READINGS, (INSERT, UPDATE))
            self._tasks.append(asyncio.create_task(self._feed_loop(self._subscription)))
        logger.info(f"Reconciliador de lecturas iniciado (cada {self.poll_interval:g}s)")

    async def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []

    def pause(self) -> None:
        if not self.paused:
            logger.info("Consulta de lecturas en pausa (página oculta)")
        self._visible.clear()

    def resume(self) -> None:
        if self.paused:
            logger.info("Consulta de lecturas reanudada")
        self._visible.set()
