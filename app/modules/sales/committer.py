# app/modules/sales/committer.py
"""
Confirmación de la venta.

El almacén no ofrece transacciones entre filas, así que la venta se persiste
en pasos con una política explícita:

1. resolver el cliente (Consumidor Final si no se eligió ninguno)
2. insertar la venta                 -> si falla: SaleCreateFailed, no se hace nada más
3. insertar los detalles             -> si falla: se borra la venta, LineItemsFailed
4. descontar stock (neto por producto, nunca por debajo de cero)
5. emitir el ticket
6. marcar las lecturas como usadas

Los pasos 4, 5 y 6 corren en paralelo; sus fallas se registran y vuelven como
advertencias, la venta queda registrada igual.
"""
import asyncio
import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from app.core.exceptions import (
    AlreadyConsumed, EmptyCart, InvalidQuantity, LineItemsFailed, RecordStoreError,
    SaleCreateFailed, SalesError, SessionExpired
)
from .cart import CartAssembler
from .catalog import CatalogCache
from .reconciler import ReadingFeedReconciler
from .repository import SalesRepository
from .schemas import CartLineItem, CommitState, PaymentMethod, Sale, SaleLineItem, Ticket
from .units import convert_quantity, money

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def generate_ticket_number(now: datetime) -> str:
    """Número de ticket: fecha y hora más un sufijo aleatorio"""
    return f"{now:%Y%m%d%H%M%S}-{secrets.randbelow(10000):04d}"


@dataclass
class CommitResult:
    state: CommitState
    sale: Optional[Sale] = None
    items: List[SaleLineItem] = field(default_factory=list)
    ticket: Optional[Ticket] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.state == CommitState.committed


class SaleCommitter:
    def __init__(self, repository: SalesRepository, catalog: CatalogCache, cart: CartAssembler,
                 reconciler: Optional[ReadingFeedReconciler] = None,
                 walk_in_client_name: str = "Consumidor Final",
                 ticket_number_factory: Callable[[datetime], str] = generate_ticket_number,
                 clock: Callable[[], datetime] = utc_now):
        self.repository = repository
        self.catalog = catalog
        self.cart = cart
        self.reconciler = reconciler
        self.walk_in_client_name = walk_in_client_name
        self.ticket_number_factory = ticket_number_factory
        self.clock = clock

        self.state = CommitState.idle
        self._processing = False

    @property
    def is_processing(self) -> bool:
        return self._processing

    async def commit(self, user_id: Optional[str], payment_method: PaymentMethod,
                     client_id: Optional[int] = None) -> Optional[CommitResult]:
        """
        Persistir el carrito como venta.

        Se confirma una foto del carrito tomada al empezar: lo que se agregue
        mientras la venta se guarda queda en el carrito para la próxima.
        Devuelve None si ya hay una confirmación en curso (doble click).
        """
        if self._processing:
            logger.info("Confirmación de venta ya en curso, se ignora")
            return None

        self._processing = True
        try:
            self.state = CommitState.idle
            if not user_id:
                raise SessionExpired()
            cart_items = self.cart.items
            self._check_cart(cart_items)
            reading_ids = [item.reading_id for item in cart_items if item.reading_id is not None]

            self.state = CommitState.committing
            try:
                await self._check_readings_unconsumed(reading_ids)
                client_id = await self._resolve_client(client_id)
                sale = await self._create_sale(client_id, user_id, payment_method, cart_items)
                items = await self._create_line_items(sale, cart_items)
            except (SaleCreateFailed, LineItemsFailed):
                self.state = CommitState.aborted
                raise
            except SalesError:
                self.state = CommitState.idle
                raise

            ticket, warnings = await self._finish(sale, items, user_id, reading_ids)
            self.state = CommitState.committed

            for item in cart_items:
                self.cart.remove(item.line_id)
            if self.reconciler is not None:
                self.reconciler.rearm(reading_ids)

            if warnings:
                logger.warning(f"⚠️ Venta #{sale.id} registrada con {len(warnings)} advertencias")
            else:
                logger.info(f"✅ Venta #{sale.id} registrada: ${sale.total:,.2f} ({len(items)} ítems)")
            return CommitResult(self.state, sale=sale, items=items, ticket=ticket, warnings=warnings)
        finally:
            self._processing = False

    # ==================== PRECONDICIONES ====================

    def _check_cart(self, items: List[CartLineItem]) -> None:
        if not items:
            raise EmptyCart("El carrito está vacío")
        for item in items:
            if item.quantity <= 0:
                raise InvalidQuantity(
                    f"Cantidad inválida para {item.product_name}",
                    product=item.product_name,
                    quantity=item.quantity,
                )

    async def _check_readings_unconsumed(self, reading_ids: List[int]) -> None:
        if not reading_ids:
            return
        try:
            readings = await self.repository.get_readings_by_ids(reading_ids)
        except RecordStoreError as e:
            raise SaleCreateFailed(f"No se pudieron verificar las lecturas de balanza: {e.message}") from e
        for reading in readings:
            if reading.is_consumed:
                raise AlreadyConsumed(
                    f"La lectura #{reading.id} ya fue utilizada en la venta #{reading.sale_id}",
                    reading_id=reading.id,
                    sale_id=reading.sale_id,
                )

    # ==================== PASOS ABORTABLES ====================

    async def _resolve_client(self, client_id: Optional[int]) -> int:
        if client_id is not None:
            return client_id
        name = self.walk_in_client_name
        try:
            client = await self.repository.find_client_by_name(name)
            if client is None:
                client = await self.repository.create_client(name)
                logger.info(f"Cliente \"{name}\" creado (id {client.id})")
        except RecordStoreError as e:
            raise SaleCreateFailed(f"No se pudo obtener el cliente {name}: {e.message}") from e
        return client.id

    async def _create_sale(self, client_id: int, user_id: str, payment_method: PaymentMethod,
                           cart_items: List[CartLineItem]) -> Sale:
        try:
            return await self.repository.create_sale(
                client_id=client_id,
                user_id=user_id,
                total=money(sum(item.subtotal for item in cart_items)),
                payment_method=PaymentMethod(payment_method).value,
            )
        except RecordStoreError as e:
            logger.error(f"❌ Error creando la venta: {e}")
            raise SaleCreateFailed(f"No se pudo crear la venta: {e.message}") from e

    async def _create_line_items(self, sale: Sale, cart_items: List[CartLineItem]) -> List[SaleLineItem]:
        rows = [
            SaleLineItem(
                sale_id=sale.id,
                product_id=item.product_id,
                quantity=item.quantity,
                unit=item.unit,
                unit_price=item.unit_price,
                subtotal=item.subtotal,
            )
            for item in cart_items
        ]
        try:
            return await self.repository.create_sale_items(rows)
        except RecordStoreError as e:
            logger.error(f"❌ Error creando los detalles de la venta #{sale.id}: {e}")
            orphan = None
            try:
                await self.repository.delete_sale(sale.id)
            except RecordStoreError as delete_error:
                orphan = sale.id
                logger.error(f"❌ No se pudo borrar la venta #{sale.id} sin detalles: {delete_error}")
            raise LineItemsFailed(
                f"No se pudieron guardar los productos de la venta: {e.message}",
                sale_id=sale.id,
                orphan_sale_id=orphan,
            ) from e

    # ==================== PASOS NO ABORTABLES ====================

    async def _finish(self, sale: Sale, items: List[SaleLineItem], user_id: str, reading_ids: List[int]):
        stock_step, ticket_step, readings_step = await asyncio.gather(
            self._decrement_stock(items),
            self._issue_ticket(sale, user_id),
            self._consume_readings(sale, reading_ids),
            return_exceptions=True,
        )

        warnings: List[str] = []
        if isinstance(stock_step, Exception):
            warnings.append(f"No se pudo actualizar el stock: {stock_step}")
        else:
            warnings.extend(stock_step)

        ticket = None
        if isinstance(ticket_step, Exception):
            warnings.append(f"No se pudo emitir el ticket: {ticket_step}")
        else:
            ticket = ticket_step

        if isinstance(readings_step, Exception):
            warnings.append(f"No se pudieron marcar las lecturas como usadas: {readings_step}")
        else:
            warnings.extend(readings_step)

        for warning in warnings:
            logger.warning(f"⚠️ Venta #{sale.id}: {warning}")
        return ticket, warnings

    async def _decrement_stock(self, items: List[SaleLineItem]) -> List[str]:
        """Un descuento neto por producto, en su unidad base, con piso en cero"""
        fresh = await self.repository.get_products_by_ids({item.product_id for item in items})
        products = {p.id: p for p in fresh}

        net: Dict[int, float] = {}
        for item in items:
            product = products.get(item.product_id)
            if product is None:
                continue
            net[product.id] = net.get(product.id, 0.0) + convert_quantity(item.quantity, item.unit, product.unit)

        warnings = []
        for product_id in sorted({item.product_id for item in items}):
            product = products.get(product_id)
            if product is None:
                warnings.append(f"El producto #{product_id} ya no existe; no se descontó stock")
                continue
            new_stock = max(0.0, round(product.stock - net[product_id], 6))
            try:
                await self.repository.update_product_stock(product_id, new_stock)
            except RecordStoreError as e:
                warnings.append(f"No se pudo actualizar el stock de {product.name}: {e.message}")
        return warnings

    async def _issue_ticket(self, sale: Sale, user_id: str) -> Ticket:
        now = self.clock()
        return await self.repository.create_ticket(
            sale_id=sale.id,
            number=self.ticket_number_factory(now),
            issued_at=now,
            user_id=user_id,
        )

    async def _consume_readings(self, sale: Sale, reading_ids: List[int]) -> List[str]:
        """Marcar las lecturas como usadas; las que ya usó otra venta no se pisan"""
        if not reading_ids:
            return []
        updated = await self.repository.consume_readings(reading_ids, sale.id)
        if updated >= len(reading_ids):
            return []

        try:
            readings = await self.repository.get_readings_by_ids(reading_ids)
        except RecordStoreError as e:
            missing = len(reading_ids) - updated
            return [f"{missing} lectura(s) no se marcaron como usadas y no se pudo verificar por qué: {e.message}"]
        found = {reading.id: reading for reading in readings}
        warnings = []
        for reading_id in reading_ids:
            reading = found.get(reading_id)
            if reading is None:
                warnings.append(f"La lectura #{reading_id} ya no existe; no se marcó como usada")
            elif reading.sale_id != sale.id:
                warnings.append(f"La lectura #{reading_id} ya fue usada en otra venta (#{reading.sale_id})")
        return warnings
