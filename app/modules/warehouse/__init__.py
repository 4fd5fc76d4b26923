# app/modules/warehouse/__init__.py
"""
Módulo Warehouse - Ingreso de Mercadería

- Carga de facturas de proveedor (salidas) con actualización de stock
- Lista de compras ordenada por faltante respecto del stock mínimo

Arquitectura:
- router.py: Endpoints FastAPI
- service.py: Lógica de negocio
- repository.py: Acceso al almacén de registros
- schemas.py: Modelos Pydantic de filas, request y response
"""

from .router import router as warehouse_router
from .service import WarehouseService
from .repository import WarehouseRepository

__all__ = [
    "warehouse_router",
    "WarehouseService",
    "WarehouseRepository"
]
