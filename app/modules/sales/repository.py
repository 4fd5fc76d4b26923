# app/modules/sales/repository.py
import logging
from datetime import datetime
from typing import Iterable, List, Optional, Type, TypeVar

from pydantic import ValidationError

from app.core.exceptions import RecordStoreError
from app.shared.store import Order, RecordStore, Row, eq, ilike, in_, is_null
from .schemas import (
    Client, Product, Reading, RowModel, Sale, SaleLineItem, SaleStatus, Ticket, TicketStatus
)

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=RowModel)

PRODUCTS = "productos"
CLIENTS = "clientes"
SALES = "ventas"
SALE_ITEMS = "detalles_ventas"
READINGS = "lecturas_balanza"
TICKETS = "tickets"


def parse_rows(model: Type[T], rows: Iterable[Row], relation: str) -> List[T]:
    """Validar filas de una consulta; las mal formadas se registran y se omiten"""
    parsed = []
    for row in rows:
        try:
            parsed.append(model.model_validate(row))
        except ValidationError as e:
            logger.warning(f"⚠️ Fila inválida en {relation} (id={row.get('id')}): {e.error_count()} errores")
    return parsed


def parse_row(model: Type[T], row: Optional[Row], relation: str, operation: str) -> T:
    """Validar la fila de la que depende el flujo; si es inválida es un error del almacén"""
    if row is None:
        raise RecordStoreError(operation, relation, "respuesta vacía")
    try:
        return model.model_validate(row)
    except ValidationError as e:
        raise RecordStoreError(operation, relation, f"fila inválida: {e.error_count()} errores") from e


class SalesRepository:
    """
    Repositorio tipado sobre el almacén de registros para la venta en curso
    """

    def __init__(self, store: RecordStore):
        self.store = store

    # ==================== PRODUCTOS ====================

    async def get_products(self) -> List[Product]:
        rows = await self.store.select(PRODUCTS, order=[Order("nombre")])
        return parse_rows(Product, rows, PRODUCTS)

    async def get_products_by_ids(self, product_ids: Iterable[int]) -> List[Product]:
        ids = list(product_ids)
        if not ids:
            return []
        rows = await self.store.select(PRODUCTS, filters=[in_("id", ids)])
        return parse_rows(Product, rows, PRODUCTS)

    async def update_product_stock(self, product_id: int, stock: float) -> int:
        return await self.store.update(PRODUCTS, {"stock": stock}, [eq("id", product_id)])

    # ==================== CLIENTES ====================

    async def get_clients(self) -> List[Client]:
        rows = await self.store.select(CLIENTS, order=[Order("nombre")])
        return parse_rows(Client, rows, CLIENTS)

    async def find_client_by_name(self, name: str) -> Optional[Client]:
        rows = await self.store.select(
            CLIENTS, filters=[ilike("nombre", name)], order=[Order("id")], limit=1
        )
        clients = parse_rows(Client, rows, CLIENTS)
        return clients[0] if clients else None

    async def create_client(self, name: str) -> Client:
        rows = await self.store.insert(CLIENTS, {"nombre": name})
        return parse_row(Client, rows[0] if rows else None, CLIENTS, "insert")

    # ==================== LECTURAS DE BALANZA ====================

    async def get_recent_readings(self, limit: int) -> List[Reading]:
        rows = await self.store.select(
            READINGS,
            order=[Order("fecha_lectura", descending=True), Order("id", descending=True)],
            limit=limit,
        )
        return parse_rows(Reading, rows, READINGS)

    async def get_readings_by_ids(self, reading_ids: Iterable[int]) -> List[Reading]:
        ids = list(reading_ids)
        if not ids:
            return []
        rows = await self.store.select(READINGS, filters=[in_("id", ids)])
        return parse_rows(Reading, rows, READINGS)

    async def create_reading(self, weight: float, timestamp: datetime) -> Reading:
        rows = await self.store.insert(READINGS, {"peso": weight, "fecha_lectura": timestamp, "usado": False})
        return parse_row(Reading, rows[0] if rows else None, READINGS, "insert")

    async def bind_reading_product(self, reading_id: int, product_id: int) -> int:
        # sólo lecturas sin consumir; si otra sesión la usó, no se toca
        return await self.store.update(
            READINGS,
            {"producto_id": product_id},
            [eq("id", reading_id), eq("usado", False), is_null("venta_id")],
        )

    async def consume_readings(self, reading_ids: Iterable[int], sale_id: int) -> int:
        ids = list(reading_ids)
        if not ids:
            return 0
        # una lectura que ya usó otra venta no se reasigna
        return await self.store.update(
            READINGS,
            {"usado": True, "venta_id": sale_id},
            [in_("id", ids), eq("usado", False), is_null("venta_id")],
        )

    # ==================== VENTAS ====================

    async def create_sale(self, client_id: int, user_id: str, total: float, payment_method: str) -> Sale:
        rows = await self.store.insert(SALES, {
            "id_cliente": client_id,
            "id_usuario": user_id,
            "monto_total": total,
            "metodo_pago": payment_method,
            "estado": SaleStatus.completada.value,
        })
        return parse_row(Sale, rows[0] if rows else None, SALES, "insert")

    async def delete_sale(self, sale_id: int) -> int:
        return await self.store.delete(SALES, [eq("id", sale_id)])

    async def create_sale_items(self, items: List[SaleLineItem]) -> List[SaleLineItem]:
        rows = await self.store.insert(SALE_ITEMS, [item.to_row(exclude={"id"}) for item in items])
        if len(rows) != len(items):
            raise RecordStoreError("insert", SALE_ITEMS, f"se esperaban {len(items)} filas, se recibieron {len(rows)}")
        return [parse_row(SaleLineItem, row, SALE_ITEMS, "insert") for row in rows]

    # ==================== TICKETS ====================

    async def create_ticket(self, sale_id: int, number: str, issued_at: datetime,
                            user_id: Optional[str]) -> Ticket:
        rows = await self.store.insert(TICKETS, {
            "id_venta": sale_id,
            "numero_ticket": number,
            "fecha_impresion": issued_at,
            "id_usuario": user_id,
            "estado": TicketStatus.emitido.value,
        })
        return parse_row(Ticket, rows[0] if rows else None, TICKETS, "insert")
