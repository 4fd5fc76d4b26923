# app/modules/scale/router.py
from fastapi import APIRouter, Depends, Query

from app.config.settings import settings
from app.core.auth.dependencies import get_current_user_id, get_record_store
from app.shared.store import RecordStore
from .client import ScaleClient
from .service import ScaleService
from .schemas import (
    BindProductRequest, ReadingCreateRequest, ScaleReadingResponse,
    ScaleReadingsResponse, ScaleStatusResponse
)

router = APIRouter(prefix="/balanza", tags=["Balanza"])


def get_scale_client() -> ScaleClient:
    return ScaleClient(settings.scale_url, timeout=settings.scale_timeout_seconds)

# ==================== LECTURAS ====================

@router.post("/lecturas", response_model=ScaleReadingResponse, status_code=201)
async def register_reading(
    request: ReadingCreateRequest,
    store: RecordStore = Depends(get_record_store)
):
    """
    Registrar una lectura enviada por la balanza

    La lectura queda sin producto y sin usar hasta que se asocia en una venta.
    """
    service = ScaleService(store)
    return await service.register_reading(request.weight, request.timestamp)

@router.get("/lecturas", response_model=ScaleReadingsResponse)
async def list_readings(
    limit: int = Query(50, ge=1, le=500),
    only_available: bool = Query(False, description="Sólo lecturas sin usar"),
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store)
):
    """Lecturas recientes con producto asociado y total calculado"""
    service = ScaleService(store)
    return await service.list_readings(limit, only_available)

@router.put("/lecturas/{reading_id}/producto", response_model=ScaleReadingResponse)
async def bind_product(
    reading_id: int,
    request: BindProductRequest,
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store)
):
    """Asociar un producto a una lectura sin usar"""
    service = ScaleService(store)
    return await service.bind_product(reading_id, request.product_id)

# ==================== ESTADO DE LA BALANZA ====================

@router.get("/estado", response_model=ScaleStatusResponse)
def scale_status(
    store: RecordStore = Depends(get_record_store),
    client: ScaleClient = Depends(get_scale_client)
):
    """Verificar la conexión con la balanza (GET /lectura con timeout)"""
    service = ScaleService(store, client)
    return service.check_scale()
