# app/api/v1/router.py
from fastapi import APIRouter

from app.config.settings import settings
from app.shared.database.models import SCHEMA_VERSION

from app.modules.sales import sales_router
from app.modules.scale import scale_router
from app.modules.warehouse import warehouse_router


# Crear router principal de la API v1
api_router = APIRouter(prefix="/api/v1")

# ==================== MÓDULOS ====================

api_router.include_router(sales_router)
api_router.include_router(scale_router)
api_router.include_router(warehouse_router)

# ==================== ENDPOINTS RAÍZ ====================

@api_router.get("/")
async def api_root():
    """Root endpoint de la API"""
    return {
        "message": "Fiambrería API v1",
        "version": settings.version,
        "status": "active",
        "available_endpoints": {
            "sales": "/api/v1/ventas/nueva",
            "scale": "/api/v1/balanza",
            "warehouse": "/api/v1/warehouse"
        }
    }

@api_router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.version,
        "architecture": "modular_monolith",
        "schema_version": SCHEMA_VERSION,
        "modules": {
            "sales": {
                "status": "active",
                "features": [
                    "Lecturas de balanza en tiempo real",
                    "Asociación de lecturas con productos",
                    "Carrito con control de stock",
                    "Confirmación con ticket"
                ]
            },
            "scale": {
                "status": "active",
                "features": ["Registro de lecturas", "Estado de la balanza"]
            },
            "warehouse": {
                "status": "active",
                "features": ["Facturas de proveedor", "Lista de compras"]
            }
        }
    }
