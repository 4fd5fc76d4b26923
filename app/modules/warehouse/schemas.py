# app/modules/warehouse/schemas.py
from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import date

from app.modules.sales.schemas import RowModel, UnitOfMeasure, parse_unit

# ==================== FILAS DEL ALMACÉN ====================

class Supplier(RowModel):
    id: int
    name: str = Field(..., alias="nombre")

class SupplierInvoice(RowModel):
    id: int
    supplier_id: int = Field(..., alias="proveedor_id")
    invoice_number: str = Field(..., alias="numero_factura")
    date: str = Field(..., alias="fecha")
    total: float = 0.0
    notes: Optional[str] = Field(None, alias="notas")

class SupplierInvoiceItem(RowModel):
    id: int
    invoice_id: int = Field(..., alias="id_salida")
    product_id: int = Field(..., alias="id_producto")
    unit: UnitOfMeasure = Field(..., alias="unidad_medida")
    unit_price: float = Field(..., alias="precio_unitario")
    quantity: float = Field(..., alias="cantidad")
    subtotal: float

    @field_validator("unit", mode="before")
    @classmethod
    def normalize_unit(cls, v):
        return parse_unit(v)

# ==================== REQUEST SCHEMAS ====================

class InvoiceItemRequest(BaseModel):
    product_id: int
    quantity: float = Field(..., gt=0, description="Cantidad recibida en la unidad elegida")
    unit: Optional[UnitOfMeasure] = Field(None, description="Por defecto la primera permitida para el producto")
    unit_price: float = Field(0.0, ge=0, description="Precio unitario de compra")

    @field_validator("unit", mode="before")
    @classmethod
    def normalize_unit(cls, v):
        return None if v in (None, "") else parse_unit(v)

class InvoiceCreateRequest(BaseModel):
    supplier_name: str = Field(..., min_length=1, description="Se busca sin distinguir mayúsculas; si no existe se crea")
    invoice_number: str = Field(..., min_length=1)
    invoice_date: date = Field(default_factory=date.today, description="Fecha de la factura")
    notes: Optional[str] = None
    items: List[InvoiceItemRequest] = Field(..., min_length=1)

    @field_validator("supplier_name", "invoice_number")
    @classmethod
    def strip_text(cls, v: str):
        v = v.strip()
        if not v:
            raise ValueError("No puede estar vacío")
        return v

# ==================== RESPONSE SCHEMAS ====================

class InvoiceItemResponse(BaseModel):
    id: int
    product_id: int
    product_name: str
    unit: UnitOfMeasure
    quantity: float
    unit_price: float
    subtotal: float
    stock_after: float

class InvoiceResponse(BaseModel):
    success: bool
    message: str
    invoice_id: int
    supplier_id: int
    supplier_name: str
    invoice_number: str
    date: str
    total: float
    items: List[InvoiceItemResponse]

class ShoppingListItem(BaseModel):
    id: int
    code: str
    name: str
    unit: UnitOfMeasure
    stock: float
    min_stock: float
    difference: float
    below_minimum: bool

class ShoppingListResponse(BaseModel):
    items: List[ShoppingListItem]
    below_minimum_count: int
