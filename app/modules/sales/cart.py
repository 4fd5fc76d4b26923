# app/modules/sales/cart.py
import logging
import math
from typing import List, Optional

from app.core.exceptions import (
    AlreadyConsumed, DuplicateInCart, InsufficientStock, InvalidQuantity, InvalidUnit,
    NoMatchFound, TooManyWeighedItems
)
from .catalog import CatalogCache
from .schemas import CartLineItem, Product, Reading, UnitOfMeasure
from .units import allowed_units, convert_price, convert_quantity, money, weight_in_unit

logger = logging.getLogger(__name__)

# tolerancia para comparar cantidades convertidas
_EPSILON = 1e-9


class CartAssembler:
    """
    Carrito de la venta en curso.

    Reglas:
    - a lo sumo un producto pesado (proveniente de una lectura) por venta
    - lo pedido más lo que ya está en el carrito no puede superar el stock
    - el total se recalcula en cada lectura, nunca se guarda
    """

    def __init__(self, catalog: CatalogCache):
        self.catalog = catalog
        self._items: List[CartLineItem] = []

    # ==================== CONSULTAS ====================

    @property
    def items(self) -> List[CartLineItem]:
        return list(self._items)

    @property
    def total(self) -> float:
        return money(sum(item.subtotal for item in self._items))

    @property
    def is_empty(self) -> bool:
        return not self._items

    @property
    def weighed_item(self) -> Optional[CartLineItem]:
        return next((item for item in self._items if item.is_weighed), None)

    @property
    def reading_ids(self) -> List[int]:
        return [item.reading_id for item in self._items if item.reading_id is not None]

    def quantity_in_cart(self, product: Product) -> float:
        """Cantidad del producto ya cargada, en su unidad base"""
        return round(sum(
            convert_quantity(item.quantity, item.unit, product.unit)
            for item in self._items if item.product_id == product.id
        ), 6)

    # ==================== VALIDACIONES ====================

    def _check_stock(self, product: Product, requested: float) -> None:
        in_cart = self.quantity_in_cart(product)
        if requested + in_cart > product.stock + _EPSILON:
            raise InsufficientStock(
                product.name,
                available=product.stock,
                requested=requested,
                in_cart=in_cart,
                unit=product.unit.value,
            )

    def check_reading(self, reading: Reading, product: Optional[Product] = None) -> Product:
        """
        Validar que una lectura pueda entrar al carrito como producto pesado.
        Devuelve el producto con el que se va a cotizar.
        """
        if reading.is_consumed:
            raise AlreadyConsumed(
                f"La lectura #{reading.id} ya fue utilizada en una venta",
                reading_id=reading.id,
            )
        if any(item.reading_id == reading.id for item in self._items):
            raise DuplicateInCart(
                f"La lectura #{reading.id} ya está en el carrito",
                reading_id=reading.id,
            )
        if self.weighed_item is not None:
            raise TooManyWeighedItems(
                "Sólo se permite un producto pesado por venta",
                reading_id=reading.id,
                current_reading_id=self.weighed_item.reading_id,
            )

        if product is None:
            if reading.product_id is None:
                raise NoMatchFound(
                    f"La lectura #{reading.id} no tiene producto asociado",
                    reading_id=reading.id,
                )
            product = self.catalog.product(reading.product_id)
            if product is None:
                raise NoMatchFound(
                    f"El producto #{reading.product_id} no está en el catálogo",
                    product_id=reading.product_id,
                )

        if reading.weight <= 0:
            raise InvalidQuantity(
                f"La lectura #{reading.id} no tiene un peso válido",
                reading_id=reading.id,
                weight=reading.weight,
            )
        self._check_stock(product, weight_in_unit(reading.weight, product.unit))
        return product

    # ==================== MUTACIONES ====================

    def add_manual(self, product: Product, quantity: float,
                   unit: Optional[UnitOfMeasure] = None) -> CartLineItem:
        unit = unit or product.unit
        if quantity is None or not math.isfinite(quantity) or quantity <= 0:
            raise InvalidQuantity(
                "La cantidad debe ser mayor que cero",
                product=product.name,
                quantity=quantity,
            )
        if unit not in allowed_units(product.unit):
            raise InvalidUnit(
                f"{product.name} no se vende en {unit.value}",
                product=product.name,
                unit=unit.value,
                allowed=[u.value for u in allowed_units(product.unit)],
            )

        self._check_stock(product, convert_quantity(quantity, unit, product.unit))

        unit_price = convert_price(product.price, product.unit, unit)
        item = CartLineItem(
            product_id=product.id,
            product_name=product.name,
            unit=unit,
            quantity=quantity,
            unit_price=unit_price,
            subtotal=money(unit_price * quantity),
        )
        self._items.append(item)
        logger.debug(f"Carrito: + {quantity:g} {unit.value} de {product.name}")
        return item

    def add_from_reading(self, reading: Reading, product: Optional[Product] = None) -> CartLineItem:
        product = self.check_reading(reading, product)

        # la balanza pesa en kg; el precio se expresa por kg
        unit_price = convert_price(product.price, product.unit, UnitOfMeasure.kg)
        item = CartLineItem(
            product_id=product.id,
            product_name=product.name,
            unit=UnitOfMeasure.kg,
            quantity=reading.weight,
            unit_price=unit_price,
            subtotal=money(unit_price * reading.weight),
            reading_id=reading.id,
        )
        self._items.append(item)
        logger.debug(f"Carrito: + lectura #{reading.id} ({reading.weight:g} kg de {product.name})")
        return item

    def remove(self, line_id: str) -> Optional[CartLineItem]:
        for index, item in enumerate(self._items):
            if item.line_id == line_id:
                return self._items.pop(index)
        return None

    def clear(self) -> None:
        self._items = []
