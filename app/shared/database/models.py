from sqlalchemy import Column, Integer, String, Boolean, DateTime, Float, Text, ForeignKey, Numeric, UniqueConstraint, Index
from sqlalchemy.sql import func
from app.config.database import Base

# Esquema fijo de la base de la fiambrería. Los nombres de tablas y columnas
# son los de la base existente (en castellano); cualquier cambio es una
# migración, nunca un intento en tiempo de ejecución.

SCHEMA_VERSION = 3

# ===== CATÁLOGO =====

class Product(Base):
    """Modelo de Producto"""
    __tablename__ = "productos"

    id = Column(Integer, primary_key=True, index=True)
    codigo = Column(String(64), nullable=False, index=True)
    nombre = Column(String(255), nullable=False)
    precio = Column(Numeric(12, 2), nullable=False, default=0)
    stock = Column(Float, nullable=False, default=0)
    unidad_medida = Column(String(20), nullable=False, default="unidades")
    stock_minimo = Column(Float, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class Client(Base):
    """Modelo de Cliente"""
    __tablename__ = "clientes"

    id = Column(Integer, primary_key=True, index=True)
    nombre = Column(String(255), nullable=False, index=True)
    apellido = Column(String(255))
    numero_documento = Column(String(50))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class Supplier(Base):
    """Modelo de Proveedor"""
    __tablename__ = "proveedores"

    id = Column(Integer, primary_key=True, index=True)
    nombre = Column(String(255), nullable=False, index=True)

# ===== VENTAS =====

class Sale(Base):
    """Modelo de Venta"""
    __tablename__ = "ventas"

    id = Column(Integer, primary_key=True, index=True)
    id_cliente = Column(Integer, ForeignKey("clientes.id"), nullable=False)
    id_usuario = Column(String(64))
    monto_total = Column(Numeric(12, 2), nullable=False)
    metodo_pago = Column(String(50), nullable=False)
    estado = Column(String(50), nullable=False, default="completada")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

class SaleItem(Base):
    """Modelo de Detalle de Venta"""
    __tablename__ = "detalles_ventas"

    id = Column(Integer, primary_key=True, index=True)
    id_venta = Column(Integer, ForeignKey("ventas.id", ondelete="CASCADE"), nullable=False, index=True)
    id_producto = Column(Integer, ForeignKey("productos.id"), nullable=False)
    cantidad = Column(Float, nullable=False)
    unidad_medida = Column(String(20), nullable=False)
    precio_unitario = Column(Numeric(12, 4), nullable=False)
    subtotal = Column(Numeric(12, 2), nullable=False)

class Ticket(Base):
    """Modelo de Ticket (comprobante de venta)"""
    __tablename__ = "tickets"

    id = Column(Integer, primary_key=True, index=True)
    id_venta = Column(Integer, ForeignKey("ventas.id"), nullable=False, index=True)
    numero_ticket = Column(String(64), nullable=False, unique=True)
    fecha_impresion = Column(DateTime(timezone=True), nullable=False)
    id_usuario = Column(String(64))
    estado = Column(String(20), nullable=False, default="emitido")

# ===== BALANZA =====

class ScaleReading(Base):
    """Modelo de Lectura de Balanza"""
    __tablename__ = "lecturas_balanza"

    id = Column(Integer, primary_key=True, index=True)
    fecha_lectura = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    peso = Column(Float, nullable=False)
    producto_id = Column(Integer, ForeignKey("productos.id"), nullable=True)
    usado = Column(Boolean, nullable=False, default=False)
    venta_id = Column(Integer, ForeignKey("ventas.id"), nullable=True)

    __table_args__ = (
        Index("ix_lecturas_balanza_fecha_id", "fecha_lectura", "id"),
    )

# ===== INGRESO DE MERCADERÍA (SALIDAS) =====

class SupplierInvoice(Base):
    """Modelo de Salida (factura de proveedor)"""
    __tablename__ = "salidas"

    id = Column(Integer, primary_key=True, index=True)
    proveedor_id = Column(Integer, ForeignKey("proveedores.id"), nullable=False)
    numero_factura = Column(String(64), nullable=False)
    fecha = Column(String(10), nullable=False)
    total = Column(Numeric(12, 2), nullable=False, default=0)
    notas = Column(Text)

    __table_args__ = (
        UniqueConstraint("proveedor_id", "numero_factura", name="salidas_proveedor_factura_unique"),
    )

class SupplierInvoiceItem(Base):
    """Modelo de Detalle de Salida"""
    __tablename__ = "detalles_salidas"

    id = Column(Integer, primary_key=True, index=True)
    id_salida = Column(Integer, ForeignKey("salidas.id", ondelete="CASCADE"), nullable=False, index=True)
    id_producto = Column(Integer, ForeignKey("productos.id"), nullable=False)
    unidad_medida = Column(String(20), nullable=False)
    precio_unitario = Column(Numeric(12, 4), nullable=False)
    cantidad = Column(Float, nullable=False)
    subtotal = Column(Numeric(12, 2), nullable=False)
