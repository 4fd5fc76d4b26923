# app/modules/sales/__init__.py
"""
Módulo de Ventas - Nueva Venta

Este módulo implementa el armado y confirmación de una venta en mostrador:

- Catálogo en memoria con búsqueda por código o nombre
- Reconciliación de lecturas de balanza (consulta periódica + canal de cambios)
- Asociación de una lectura con un producto
- Carrito con un solo producto pesado por venta y control de stock
- Confirmación de la venta con ticket y consumo de lecturas

Arquitectura:
- router.py: Endpoints FastAPI
- service.py: Sesiones de venta por operador
- catalog.py, reconciler.py, association.py, cart.py, committer.py: Núcleo de la venta
- repository.py: Acceso al almacén de registros
- schemas.py: Modelos Pydantic de filas, request y response
"""

from .router import router as sales_router
from .service import SaleSession, SaleSessionManager
from .repository import SalesRepository

__all__ = [
    "sales_router",
    "SaleSession",
    "SaleSessionManager",
    "SalesRepository"
]
