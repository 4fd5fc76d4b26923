# app/core/auth/dependencies.py
from typing import Optional

from fastapi import Header, Request

from app.core.exceptions import SessionExpired


async def get_current_user_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id", description="Operador autenticado por el servicio de identidad")
) -> str:
    """
    Obtener el operador de la request.

    La autenticación la resuelve el servicio de identidad externo; acá sólo se
    detecta la sesión vencida antes de tocar la venta.
    """
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise SessionExpired()
    return user_id


def get_session_manager(request: Request):
    return request.app.state.sale_sessions


def get_record_store(request: Request):
    return request.app.state.record_store
