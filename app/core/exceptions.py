# app/core/exceptions.py
"""
Errores de dominio de la fiambrería.

Cada error lleva un código estable, el status HTTP con el que se reporta y un
mensaje para el operador con el contexto necesario para reintentar (qué
producto, cuánto hay disponible, cuánto se pidió).
"""
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
import logging

logger = logging.getLogger(__name__)


class RecordStoreError(Exception):
    """Falla de una operación contra el almacén de registros"""

    def __init__(self, operation: str, relation: str, message: str):
        self.operation = operation
        self.relation = relation
        self.message = message
        super().__init__(f"{operation} {relation}: {message}")


class SalesError(Exception):
    code = "sales_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = context
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        payload = {"error": self.code, "detail": self.message}
        if self.context:
            payload["context"] = self.context
        return payload


# ==================== ERRORES DE ENTRADA ====================

class InvalidQuantity(SalesError):
    code = "invalid_quantity"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class InvalidUnit(SalesError):
    code = "invalid_unit"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class NoMatchFound(SalesError):
    code = "no_match_found"
    status_code = status.HTTP_404_NOT_FOUND


# ==================== ERRORES DE PRECONDICIÓN ====================

class InsufficientStock(SalesError):
    code = "insufficient_stock"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, product_name: str, available: float, requested: float,
                 in_cart: float = 0.0, unit: Optional[str] = None):
        unit_label = f" {unit}" if unit else ""
        message = (
            f"Stock insuficiente para {product_name}. "
            f"Disponible: {available:g}{unit_label}. Solicitado: {requested:g}{unit_label}"
        )
        if in_cart:
            message += f". En carrito: {in_cart:g}{unit_label}"
        super().__init__(
            message,
            product=product_name,
            available=available,
            requested=requested,
            in_cart=in_cart,
            unit=unit,
        )


class TooManyWeighedItems(SalesError):
    code = "too_many_weighed_items"
    status_code = status.HTTP_409_CONFLICT


class DuplicateInCart(SalesError):
    code = "duplicate_in_cart"
    status_code = status.HTTP_409_CONFLICT


class AlreadyConsumed(SalesError):
    code = "already_consumed"
    status_code = status.HTTP_409_CONFLICT


class EmptyCart(SalesError):
    code = "empty_cart"
    status_code = status.HTTP_400_BAD_REQUEST


class SaleInProgress(SalesError):
    code = "sale_in_progress"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str = "Hay una venta en proceso; espere a que termine para modificar el carrito"):
        super().__init__(message)


# ==================== ERRORES AL PROCESAR LA VENTA ====================

class SaleCreateFailed(SalesError):
    code = "sale_create_failed"
    status_code = status.HTTP_502_BAD_GATEWAY


class LineItemsFailed(SalesError):
    code = "line_items_failed"
    status_code = status.HTTP_502_BAD_GATEWAY


class SessionExpired(SalesError):
    code = "session_expired"
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Tu sesión ha expirado. Por favor, inicia sesión de nuevo."):
        super().__init__(message)


def setup_exception_handlers(app: FastAPI):
    """Registrar el mapeo de errores de dominio a respuestas HTTP"""

    @app.exception_handler(SalesError)
    async def sales_error_handler(request: Request, exc: SalesError):
        logger.info(f"{request.method} {request.url.path} - {exc.code}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RecordStoreError)
    async def record_store_error_handler(request: Request, exc: RecordStoreError):
        logger.error(f"❌ Error del almacén en {request.url.path}: {exc}")
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"error": "record_store_error", "detail": f"Error de base de datos: {exc.message}"},
        )
