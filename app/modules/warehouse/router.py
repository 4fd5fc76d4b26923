# app/modules/warehouse/router.py
from fastapi import APIRouter, Depends

from app.core.auth.dependencies import get_current_user_id, get_record_store
from app.shared.store import RecordStore
from .service import WarehouseService
from .schemas import InvoiceCreateRequest, InvoiceResponse, ShoppingListResponse

router = APIRouter(prefix="/warehouse", tags=["Warehouse - Mercadería"])

# ==================== INGRESO DE MERCADERÍA ====================

@router.post("/salidas", response_model=InvoiceResponse, status_code=201)
async def register_supplier_invoice(
    request: InvoiceCreateRequest,
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store)
):
    """
    Cargar factura de proveedor y actualizar stock

    **Funcionalidad:**
    - Proveedor buscado por nombre (se crea si no existe)
    - Rechazo de factura duplicada para el mismo proveedor
    - Unidades permitidas según la unidad base del producto
    - Suma de stock convertida a la unidad base
    """
    service = WarehouseService(store)
    return await service.register_invoice(request)

# ==================== LISTA DE COMPRAS ====================

@router.get("/lista-compras", response_model=ShoppingListResponse)
async def get_shopping_list(
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store)
):
    """
    Lista de compras: productos con menos stock respecto del mínimo primero
    """
    service = WarehouseService(store)
    return await service.get_shopping_list()
