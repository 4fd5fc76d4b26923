# app/core/middleware.py
import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from app.config.settings import settings

logger = logging.getLogger(__name__)

# un request más lento que esto se reporta como advertencia
SLOW_REQUEST_SECONDS = 1.0


def setup_middleware(app: FastAPI):
    """CORS para el dashboard y registro de cada request con su operador"""

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Accept", "Content-Type", "X-User-Id"],
        expose_headers=["X-Process-Time"],
        max_age=3600
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - started

        operator = request.headers.get("X-User-Id") or "-"
        line = f"{request.method} {request.url.path} [{operator}] - {response.status_code} en {elapsed:.3f}s"
        if response.status_code >= 500:
            logger.error(f"❌ {line}")
        elif elapsed > SLOW_REQUEST_SECONDS:
            logger.warning(f"⚠️ Request lento: {line}")
        else:
            logger.info(line)

        response.headers["X-Process-Time"] = f"{elapsed:.4f}"
        return response
