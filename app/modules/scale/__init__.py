# app/modules/scale/__init__.py
"""
Módulo de Balanza

- Registro de lecturas enviadas por la balanza
- Listado de lecturas recientes con producto y total calculado
- Asociación de un producto a una lectura desde la pantalla de balanza
- Verificación de conexión con la balanza

Arquitectura:
- router.py: Endpoints FastAPI
- service.py: Lógica de negocio
- client.py: Cliente HTTP de la balanza
- schemas.py: Modelos Pydantic de request/response
"""

from .router import router as scale_router
from .service import ScaleService

__all__ = [
    "scale_router",
    "ScaleService"
]
