# app/modules/sales/association.py
import logging
from typing import Optional, Set

from app.core.exceptions import NoMatchFound, RecordStoreError
from .cart import CartAssembler
from .catalog import CatalogCache
from .repository import SalesRepository
from .schemas import CartLineItem, Product, Reading

logger = logging.getLogger(__name__)


class AssociationEngine:
    """
    Asocia una lectura pendiente con un producto a partir de lo que tipea el
    operador (código o nombre parcial) y la agrega al carrito.
    """

    def __init__(self, repository: SalesRepository, catalog: CatalogCache, cart: CartAssembler):
        self.repository = repository
        self.catalog = catalog
        self.cart = cart
        self._in_flight: Set[int] = set()

    @property
    def is_associating(self) -> bool:
        return bool(self._in_flight)

    def match(self, query: str) -> Product:
        product = self.catalog.best_match(query)
        if product is None:
            raise NoMatchFound(
                f"No se encontró ningún producto para \"{(query or '').strip()}\"",
                query=query,
            )
        return product

    async def associate(self, reading: Reading, query: str) -> Optional[CartLineItem]:
        """
        Resolver el producto, validar, escribir producto_id en la lectura y
        agregar el ítem pesado al carrito.

        Devuelve None si ya hay una asociación en curso para la misma lectura.
        """
        if reading.id in self._in_flight:
            logger.info(f"Asociación de la lectura #{reading.id} ya en curso, se ignora")
            return None

        self._in_flight.add(reading.id)
        try:
            product = self.match(query)
            # todo se valida antes de escribir en el almacén
            self.cart.check_reading(reading, product)

            try:
                updated = await self.repository.bind_reading_product(reading.id, product.id)
            except RecordStoreError as e:
                logger.warning(f"⚠️ No se pudo guardar el producto en la lectura #{reading.id}: {e}")
            else:
                if not updated:
                    logger.warning(f"⚠️ La lectura #{reading.id} no se actualizó (¿consumida en otra venta?)")

            bound = reading.model_copy(update={"product_id": product.id})
            item = self.cart.add_from_reading(bound, product)
            logger.info(f"✅ Lectura #{reading.id} asociada a {product.name} ({product.code})")
            return item
        finally:
            self._in_flight.discard(reading.id)
