from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import List, Optional, Any
from datetime import datetime, timezone
from enum import Enum
import uuid

# ==================== ENUMS ====================

class UnitOfMeasure(str, Enum):
    unidades = "unidades"
    kg = "kg"
    gramos = "gramos"

UNIT_ALIASES = {
    "unidades": UnitOfMeasure.unidades,
    "unidad": UnitOfMeasure.unidades,
    "u": UnitOfMeasure.unidades,
    "kg": UnitOfMeasure.kg,
    "kilo": UnitOfMeasure.kg,
    "kilogramo": UnitOfMeasure.kg,
    "kilogramos": UnitOfMeasure.kg,
    "gramos": UnitOfMeasure.gramos,
    "gramo": UnitOfMeasure.gramos,
    "g": UnitOfMeasure.gramos,
    "gr": UnitOfMeasure.gramos,
}

class PaymentMethod(str, Enum):
    efectivo = "efectivo"
    tarjeta_debito = "tarjeta_debito"
    tarjeta_credito = "tarjeta_credito"
    transferencia = "transferencia"

class SaleStatus(str, Enum):
    completada = "completada"

class TicketStatus(str, Enum):
    emitido = "emitido"
    impreso = "impreso"
    enviado = "enviado"

class CommitState(str, Enum):
    idle = "idle"
    committing = "committing"
    committed = "committed"
    aborted = "aborted"


def parse_unit(value: Any) -> UnitOfMeasure:
    if isinstance(value, UnitOfMeasure):
        return value
    key = str(value or "").strip().lower()
    if key not in UNIT_ALIASES:
        raise ValueError(f"Unidad de medida desconocida: {value!r}")
    return UNIT_ALIASES[key]

# ==================== FILAS DEL ALMACÉN ====================

class RowModel(BaseModel):
    """
    Base de las filas leídas del almacén: atributos en inglés, columnas de la
    base (en castellano) como alias.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_row(self, exclude: Optional[set] = None) -> dict:
        row = self.model_dump(by_alias=True, exclude=exclude or set())
        return {k: (v.value if isinstance(v, Enum) else v) for k, v in row.items()}


class Product(RowModel):
    id: int
    code: str = Field("", alias="codigo")
    name: str = Field(..., alias="nombre")
    price: float = Field(0.0, alias="precio", ge=0)
    stock: float = Field(0.0, alias="stock")
    unit: UnitOfMeasure = Field(UnitOfMeasure.unidades, alias="unidad_medida")
    min_stock: float = Field(0.0, alias="stock_minimo")

    @field_validator("unit", mode="before")
    @classmethod
    def normalize_unit(cls, v):
        if v is None:
            return UnitOfMeasure.unidades
        return parse_unit(v)

    @field_validator("price", "stock", "min_stock", mode="before")
    @classmethod
    def default_numbers(cls, v):
        return 0.0 if v is None else v

    @field_validator("code", mode="before")
    @classmethod
    def default_code(cls, v):
        return "" if v is None else str(v)


class Client(RowModel):
    id: int
    first_name: str = Field(..., alias="nombre")
    last_name: Optional[str] = Field(None, alias="apellido")
    document_number: Optional[str] = Field(None, alias="numero_documento")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name or ''}".strip()


class Reading(RowModel):
    id: int
    timestamp: datetime = Field(..., alias="fecha_lectura")
    weight: float = Field(..., alias="peso", ge=0)
    product_id: Optional[int] = Field(None, alias="producto_id")
    consumed: bool = Field(False, alias="usado")
    sale_id: Optional[int] = Field(None, alias="venta_id")

    @field_validator("timestamp")
    @classmethod
    def assume_utc(cls, v: datetime):
        # SQLite devuelve fechas sin zona; todas se guardan en UTC
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @field_validator("consumed", mode="before")
    @classmethod
    def default_consumed(cls, v):
        return False if v is None else v

    @property
    def is_consumed(self) -> bool:
        return self.consumed or self.sale_id is not None


class Sale(RowModel):
    id: int
    client_id: int = Field(..., alias="id_cliente")
    user_id: Optional[str] = Field(None, alias="id_usuario")
    total: float = Field(..., alias="monto_total")
    payment_method: str = Field(..., alias="metodo_pago")
    status: str = Field(SaleStatus.completada.value, alias="estado")
    created_at: Optional[datetime] = None


class SaleLineItem(RowModel):
    id: Optional[int] = None
    sale_id: int = Field(..., alias="id_venta")
    product_id: int = Field(..., alias="id_producto")
    quantity: float = Field(..., alias="cantidad")
    unit: UnitOfMeasure = Field(..., alias="unidad_medida")
    unit_price: float = Field(..., alias="precio_unitario")
    subtotal: float

    @field_validator("unit", mode="before")
    @classmethod
    def normalize_unit(cls, v):
        return parse_unit(v)


class Ticket(RowModel):
    id: int
    sale_id: int = Field(..., alias="id_venta")
    number: str = Field(..., alias="numero_ticket")
    issued_at: datetime = Field(..., alias="fecha_impresion")
    user_id: Optional[str] = Field(None, alias="id_usuario")
    status: str = Field(TicketStatus.emitido.value, alias="estado")

    @field_validator("number", mode="before")
    @classmethod
    def number_as_text(cls, v):
        return str(v)

# ==================== CARRITO ====================

class CartLineItem(BaseModel):
    """Ítem del carrito en curso; sólo vive en la sesión del operador"""
    line_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    product_id: int
    product_name: str
    unit: UnitOfMeasure
    quantity: float
    unit_price: float
    subtotal: float
    reading_id: Optional[int] = Field(None, description="Lectura de balanza de la que proviene")

    @property
    def is_weighed(self) -> bool:
        return self.reading_id is not None

# ==================== REQUEST SCHEMAS ====================

class ManualItemRequest(BaseModel):
    product_id: int = Field(..., description="Producto del catálogo")
    quantity: float = Field(..., description="Cantidad en la unidad elegida")
    unit: Optional[UnitOfMeasure] = Field(None, description="Unidad elegida; por defecto la del producto")

    @field_validator("unit", mode="before")
    @classmethod
    def normalize_unit(cls, v):
        return None if v in (None, "") else parse_unit(v)

class AssociateRequest(BaseModel):
    query: str = Field(..., description="Código o nombre (parcial) del producto")
    reading_id: Optional[int] = Field(None, description="Lectura a asociar; por defecto la pendiente")

class CommitRequest(BaseModel):
    payment_method: PaymentMethod
    client_id: Optional[int] = Field(None, description="Sin cliente se usa Consumidor Final")

class VisibilityRequest(BaseModel):
    hidden: bool

# ==================== RESPONSE SCHEMAS ====================

class ReadingResponse(BaseModel):
    id: int
    timestamp: datetime
    weight: float
    product_id: Optional[int]
    consumed: bool

class SaleSessionResponse(BaseModel):
    items: List[CartLineItem]
    total: float
    pending_reading: Optional[ReadingResponse]
    ready_readings: List[ReadingResponse]
    has_weighed_item: bool
    is_processing: bool
    polling_paused: bool

class CommitResponse(BaseModel):
    success: bool
    state: CommitState
    sale_id: Optional[int]
    ticket_number: Optional[str]
    total: float
    warnings: List[str]
    message: str

class ProductMatchResponse(BaseModel):
    id: int
    code: str
    name: str
    price: float
    stock: float
    unit: UnitOfMeasure
