# app/modules/warehouse/repository.py
from typing import Iterable, List, Optional

from app.modules.sales.repository import PRODUCTS, parse_row, parse_rows
from app.modules.sales.schemas import Product
from app.shared.store import Order, RecordStore, eq, ilike, in_
from .schemas import Supplier, SupplierInvoice, SupplierInvoiceItem

SUPPLIERS = "proveedores"
INVOICES = "salidas"
INVOICE_ITEMS = "detalles_salidas"


class WarehouseRepository:
    """
    Repositorio para el ingreso de mercadería y la lista de compras
    """

    def __init__(self, store: RecordStore):
        self.store = store

    # ==================== PROVEEDORES ====================

    async def find_supplier_by_name(self, name: str) -> Optional[Supplier]:
        rows = await self.store.select(SUPPLIERS, filters=[ilike("nombre", name)], order=[Order("id")], limit=1)
        suppliers = parse_rows(Supplier, rows, SUPPLIERS)
        return suppliers[0] if suppliers else None

    async def create_supplier(self, name: str) -> Supplier:
        rows = await self.store.insert(SUPPLIERS, {"nombre": name})
        return parse_row(Supplier, rows[0] if rows else None, SUPPLIERS, "insert")

    # ==================== SALIDAS ====================

    async def invoice_exists(self, supplier_id: int, invoice_number: str) -> bool:
        rows = await self.store.select(
            INVOICES,
            columns="id",
            filters=[eq("proveedor_id", supplier_id), eq("numero_factura", invoice_number)],
            limit=1,
        )
        return bool(rows)

    async def create_invoice(self, supplier_id: int, invoice_number: str, date: str,
                             total: float, notes: Optional[str] = None) -> SupplierInvoice:
        rows = await self.store.insert(INVOICES, {
            "proveedor_id": supplier_id,
            "numero_factura": invoice_number,
            "fecha": date,
            "total": total,
            "notas": notes,
        })
        return parse_row(SupplierInvoice, rows[0] if rows else None, INVOICES, "insert")

    async def create_invoice_item(self, invoice_id: int, product_id: int, unit: str,
                                  unit_price: float, quantity: float, subtotal: float) -> SupplierInvoiceItem:
        rows = await self.store.insert(INVOICE_ITEMS, {
            "id_salida": invoice_id,
            "id_producto": product_id,
            "unidad_medida": unit,
            "precio_unitario": unit_price,
            "cantidad": quantity,
            "subtotal": subtotal,
        })
        return parse_row(SupplierInvoiceItem, rows[0] if rows else None, INVOICE_ITEMS, "insert")

    # ==================== PRODUCTOS ====================

    async def get_products(self, product_ids: Optional[Iterable[int]] = None) -> List[Product]:
        filters = [] if product_ids is None else [in_("id", list(product_ids))]
        rows = await self.store.select(PRODUCTS, filters=filters, order=[Order("nombre")])
        return parse_rows(Product, rows, PRODUCTS)

    async def update_stock(self, product_id: int, stock: float) -> int:
        return await self.store.update(PRODUCTS, {"stock": stock}, [eq("id", product_id)])
