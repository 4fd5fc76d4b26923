# app/modules/scale/service.py
import logging
from datetime import datetime, timezone
from typing import Dict, Optional

import requests

from app.core.exceptions import AlreadyConsumed, InvalidQuantity, NoMatchFound
from app.modules.sales.repository import SalesRepository
from app.modules.sales.schemas import Product, Reading, UnitOfMeasure
from app.modules.sales.units import money, weight_in_unit
from app.shared.store import RecordStore
from .client import ScaleClient
from .schemas import ScaleReadingResponse, ScaleReadingsResponse, ScaleStatusResponse

logger = logging.getLogger(__name__)


def reading_total(reading: Reading, product: Optional[Product]) -> Optional[float]:
    """Total de una lectura: peso en la unidad del producto por su precio"""
    if product is None or product.unit == UnitOfMeasure.unidades:
        return None
    return money(weight_in_unit(reading.weight, product.unit) * product.price)


class ScaleService:
    def __init__(self, store: RecordStore, client: Optional[ScaleClient] = None):
        self.repository = SalesRepository(store)
        self.client = client

    def _to_response(self, reading: Reading, product: Optional[Product]) -> ScaleReadingResponse:
        return ScaleReadingResponse(
            id=reading.id,
            timestamp=reading.timestamp,
            weight=reading.weight,
            product_id=reading.product_id,
            product_name=product.name if product else None,
            product_code=product.code if product else None,
            unit=product.unit if product else None,
            consumed=reading.is_consumed,
            sale_id=reading.sale_id,
            total=reading_total(reading, product),
        )

    # ==================== LECTURAS ====================

    async def register_reading(self, weight: float, timestamp: Optional[datetime] = None) -> ScaleReadingResponse:
        if weight is None or weight <= 0:
            raise InvalidQuantity("El peso debe ser mayor que cero", weight=weight)
        reading = await self.repository.create_reading(weight, timestamp or datetime.now(timezone.utc))
        logger.info(f"Lectura #{reading.id} registrada: {reading.weight:.3f} kg")
        return self._to_response(reading, None)

    async def list_readings(self, limit: int = 50, only_available: bool = False) -> ScaleReadingsResponse:
        readings = await self.repository.get_recent_readings(limit)
        if only_available:
            readings = [r for r in readings if not r.is_consumed]

        product_ids = {r.product_id for r in readings if r.product_id is not None}
        products: Dict[int, Product] = {
            p.id: p for p in await self.repository.get_products_by_ids(product_ids)
        }

        items = [self._to_response(r, products.get(r.product_id)) for r in readings]
        return ScaleReadingsResponse(
            readings=items,
            count=len(items),
            total_weight=round(sum(item.weight for item in items), 3),
            total_value=money(sum(item.total or 0 for item in items)),
        )

    async def bind_product(self, reading_id: int, product_id: int) -> ScaleReadingResponse:
        """Asociar un producto a una lectura desde la pantalla de balanza"""
        readings = await self.repository.get_readings_by_ids([reading_id])
        if not readings:
            raise NoMatchFound(f"La lectura #{reading_id} no existe", reading_id=reading_id)
        reading = readings[0]
        if reading.is_consumed:
            raise AlreadyConsumed(f"La lectura #{reading_id} ya fue utilizada en una venta", reading_id=reading_id)

        products = await self.repository.get_products_by_ids([product_id])
        if not products:
            raise NoMatchFound(f"El producto #{product_id} no existe", product_id=product_id)
        product = products[0]
        # productos por unidad no se pueden pesar
        weight_in_unit(reading.weight, product.unit)

        updated = await self.repository.bind_reading_product(reading_id, product_id)
        if not updated:
            raise AlreadyConsumed(f"La lectura #{reading_id} ya fue utilizada en una venta", reading_id=reading_id)

        bound = reading.model_copy(update={"product_id": product_id})
        logger.info(f"✅ Lectura #{reading_id} asociada a {product.name}")
        return self._to_response(bound, product)

    # ==================== BALANZA ====================

    def check_scale(self) -> ScaleStatusResponse:
        """Consultar la balanza; se aborta pasado el timeout configurado"""
        try:
            data = self.client.read()
        except requests.RequestException as e:
            logger.warning(f"⚠️ Balanza no disponible en {self.client.reading_url}: {e}")
            return ScaleStatusResponse(
                connected=False,
                url=self.client.reading_url,
                message="No se pudo conectar con la balanza",
            )
        except ValueError:
            return ScaleStatusResponse(
                connected=False,
                url=self.client.reading_url,
                message="La balanza respondió con un formato inválido",
            )

        weight = data.get("peso") if isinstance(data, dict) else None
        if not isinstance(weight, (int, float)) or isinstance(weight, bool):
            return ScaleStatusResponse(
                connected=True,
                url=self.client.reading_url,
                message="La balanza respondió sin peso",
            )
        return ScaleStatusResponse(
            connected=True,
            url=self.client.reading_url,
            weight=float(weight),
            stable=bool(data["estable"]) if "estable" in data else None,
            message=f"Peso actual: {float(weight):.3f} kg",
        )
