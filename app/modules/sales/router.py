# app/modules/sales/router.py
from fastapi import APIRouter, Depends, HTTPException, Query
from typing import List

from app.core.auth.dependencies import get_current_user_id, get_session_manager
from .service import SaleSession, SaleSessionManager
from .schemas import (
    AssociateRequest, CartLineItem, CommitRequest, CommitResponse, ManualItemRequest,
    ProductMatchResponse, SaleSessionResponse, VisibilityRequest
)

router = APIRouter(prefix="/ventas/nueva", tags=["Ventas - Nueva Venta"])


async def get_sale_session(
    user_id: str = Depends(get_current_user_id),
    manager: SaleSessionManager = Depends(get_session_manager)
) -> SaleSession:
    return await manager.get(user_id)

# ==================== ESTADO ====================

@router.get("/estado", response_model=SaleSessionResponse)
async def get_sale_state(session: SaleSession = Depends(get_sale_session)):
    """
    Estado de la venta en curso

    Incluye:
    - Ítems del carrito y total
    - Lectura de balanza pendiente de asociar
    - Lecturas con producto listas para agregar
    """
    return session.state()

@router.get("/productos", response_model=List[ProductMatchResponse])
async def search_products(
    q: str = Query(..., min_length=1, description="Código o nombre (parcial)"),
    limit: int = Query(10, ge=1, le=50),
    session: SaleSession = Depends(get_sale_session)
):
    """Buscar productos del catálogo por código o nombre"""
    return [
        ProductMatchResponse(id=p.id, code=p.code, name=p.name, price=p.price, stock=p.stock, unit=p.unit)
        for p in session.catalog.search(q, limit)
    ]

# ==================== CARRITO ====================

@router.post("/items", response_model=CartLineItem)
async def add_manual_item(
    request: ManualItemRequest,
    session: SaleSession = Depends(get_sale_session)
):
    """Agregar un producto del catálogo con cantidad y unidad elegidas"""
    return session.add_manual(request.product_id, request.quantity, request.unit)

@router.post("/lecturas/{reading_id}", response_model=CartLineItem)
async def add_reading_item(
    reading_id: int,
    session: SaleSession = Depends(get_sale_session)
):
    """Agregar una lectura de balanza que ya tiene producto asociado"""
    return await session.add_reading(reading_id)

@router.post("/asociar", response_model=CartLineItem)
async def associate_reading(
    request: AssociateRequest,
    session: SaleSession = Depends(get_sale_session)
):
    """
    Asociar la lectura pendiente (o la indicada) con el producto que mejor
    coincide con lo ingresado, y agregarla al carrito
    """
    item = await session.associate(request.query, request.reading_id)
    if item is None:
        raise HTTPException(status_code=409, detail="Ya hay una asociación en curso para esta lectura")
    return item

@router.delete("/items/{line_id}", response_model=CartLineItem)
async def remove_item(
    line_id: str,
    session: SaleSession = Depends(get_sale_session)
):
    return session.remove_item(line_id)

# ==================== CONFIRMACIÓN ====================

@router.post("/procesar", response_model=CommitResponse)
async def process_sale(
    request: CommitRequest,
    session: SaleSession = Depends(get_sale_session)
):
    """
    Procesar la venta

    Pasos:
    - Registrar venta y detalles (si falla, no queda nada registrado)
    - Descontar stock, emitir ticket y marcar lecturas como usadas
    - Las fallas de estos últimos pasos vuelven como advertencias
    """
    return await session.commit(request.payment_method, request.client_id)

# ==================== VARIOS ====================

@router.post("/visibilidad")
async def set_visibility(
    request: VisibilityRequest,
    session: SaleSession = Depends(get_sale_session)
):
    """Pausar o reanudar la consulta de lecturas según la visibilidad de la página"""
    session.set_visibility(request.hidden)
    return {"success": True, "polling_paused": session.reconciler.paused}

@router.post("/catalogo/refrescar")
async def refresh_catalog(session: SaleSession = Depends(get_sale_session)):
    await session.catalog.refresh()
    return {
        "success": True,
        "products": len(session.catalog.products),
        "clients": len(session.catalog.clients),
    }
