# app/modules/warehouse/service.py
import logging
from typing import Awaitable, Dict, List, TypeVar

from fastapi import HTTPException

from app.core.exceptions import InvalidUnit, NoMatchFound, RecordStoreError
from app.modules.sales.schemas import Product, UnitOfMeasure
from app.modules.sales.units import convert_quantity, money
from app.shared.store import RecordStore
from .repository import WarehouseRepository
from .schemas import (
    InvoiceCreateRequest, InvoiceItemResponse, InvoiceResponse,
    ShoppingListItem, ShoppingListResponse
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def intake_units(base_unit: UnitOfMeasure) -> List[UnitOfMeasure]:
    """Unidades en las que se puede cargar una factura según la unidad base del producto"""
    if base_unit == UnitOfMeasure.kg:
        return [UnitOfMeasure.kg, UnitOfMeasure.gramos]
    return [base_unit]


class WarehouseService:
    """
    Servicio de ingreso de mercadería (facturas de proveedor) y lista de compras
    """

    def __init__(self, store: RecordStore):
        self.repository = WarehouseRepository(store)

    async def _step(self, context: str, operation: Awaitable[T]) -> T:
        # cada paso falla con el contexto de dónde se cortó la carga
        try:
            return await operation
        except RecordStoreError as e:
            logger.error(f"❌ {context}: {e}")
            raise HTTPException(status_code=502, detail=f"{context}: {e.message}")

    # ==================== INGRESO DE MERCADERÍA ====================

    async def register_invoice(self, request: InvoiceCreateRequest) -> InvoiceResponse:
        """
        Registrar una factura de proveedor y sumar el stock recibido

        Pasos:
        1. Buscar o crear el proveedor por nombre
        2. Rechazar factura duplicada (proveedor + número)
        3. Crear la salida, luego cada detalle, y actualizar stock
        """
        product_ids = {item.product_id for item in request.items}
        products: Dict[int, Product] = {
            p.id: p for p in await self._step("Buscar productos", self.repository.get_products(product_ids))
        }

        # Validar ítems antes de escribir nada
        units = []
        for item in request.items:
            product = products.get(item.product_id)
            if product is None:
                raise NoMatchFound(f"El producto #{item.product_id} no existe", product_id=item.product_id)
            allowed = intake_units(product.unit)
            unit = item.unit or allowed[0]
            if unit not in allowed:
                raise InvalidUnit(
                    f"{product.name} no admite {unit.value}",
                    product=product.name,
                    unit=unit.value,
                    allowed=[u.value for u in allowed],
                )
            units.append(unit)

        supplier = await self._step("Buscar proveedor", self.repository.find_supplier_by_name(request.supplier_name))
        if supplier is None:
            supplier = await self._step("Crear proveedor", self.repository.create_supplier(request.supplier_name))
            logger.info(f"Proveedor \"{supplier.name}\" creado (id {supplier.id})")

        duplicated = await self._step(
            "Verificar duplicado",
            self.repository.invoice_exists(supplier.id, request.invoice_number)
        )
        if duplicated:
            raise HTTPException(
                status_code=409,
                detail="Ya existe una factura con ese proveedor y número. Cambie proveedor o número de factura."
            )

        subtotals = [money(item.unit_price * item.quantity) for item in request.items]
        invoice = await self._step("Crear salida", self.repository.create_invoice(
            supplier_id=supplier.id,
            invoice_number=request.invoice_number,
            date=request.invoice_date.isoformat(),
            total=money(sum(subtotals)),
            notes=request.notes,
        ))

        stock = {p.id: p.stock for p in products.values()}
        items = []
        for item, unit, subtotal in zip(request.items, units, subtotals):
            product = products[item.product_id]
            detail = await self._step("Crear detalle de salida", self.repository.create_invoice_item(
                invoice_id=invoice.id,
                product_id=product.id,
                unit=unit.value,
                unit_price=item.unit_price,
                quantity=item.quantity,
                subtotal=subtotal,
            ))

            stock[product.id] = round(stock[product.id] + convert_quantity(item.quantity, unit, product.unit), 6)
            await self._step("Actualizar stock", self.repository.update_stock(product.id, stock[product.id]))

            items.append(InvoiceItemResponse(
                id=detail.id,
                product_id=product.id,
                product_name=product.name,
                unit=unit,
                quantity=item.quantity,
                unit_price=item.unit_price,
                subtotal=subtotal,
                stock_after=stock[product.id],
            ))

        logger.info(f"✅ Factura {request.invoice_number} de {supplier.name} registrada ({len(items)} ítems)")
        return InvoiceResponse(
            success=True,
            message="Factura registrada y stock actualizado",
            invoice_id=invoice.id,
            supplier_id=supplier.id,
            supplier_name=supplier.name,
            invoice_number=invoice.invoice_number,
            date=invoice.date,
            total=invoice.total,
            items=items,
        )

    # ==================== LISTA DE COMPRAS ====================

    async def get_shopping_list(self) -> ShoppingListResponse:
        """Productos ordenados por diferencia entre stock y stock mínimo (ascendente)"""
        products = await self._step("Buscar productos", self.repository.get_products())
        products.sort(key=lambda p: p.stock - p.min_stock)

        items = [
            ShoppingListItem(
                id=p.id,
                code=p.code,
                name=p.name,
                unit=p.unit,
                stock=p.stock,
                min_stock=p.min_stock,
                difference=round(p.stock - p.min_stock, 6),
                below_minimum=p.stock < p.min_stock,
            )
            for p in products
        ]
        return ShoppingListResponse(
            items=items,
            below_minimum_count=sum(1 for item in items if item.below_minimum),
        )
