# app/main.py
import logging
from fastapi import FastAPI
from contextlib import asynccontextmanager

from app.config.settings import settings
from app.config.database import engine
from app.core.exceptions import setup_exception_handlers
from app.core.middleware import setup_middleware
from app.api.v1.router import api_router
from app.modules.sales.service import SaleSessionManager
from app.shared.store import ChangeFeed, SQLAlchemyRecordStore

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("🚀 Fiambrería API Starting...")
    logger.info(f"📍 Version: {settings.version}")
    logger.info(f"🌍 Environment: {'Development' if settings.debug else 'Production'}")
    logger.info(f"⚖️ Balanza: {settings.scale_url} - lecturas cada {settings.reading_poll_interval_seconds:g}s")

    feed = ChangeFeed(queue_size=settings.change_feed_queue_size)
    store = SQLAlchemyRecordStore(engine, feed=feed)
    store.create_schema()

    app.state.change_feed = feed
    app.state.record_store = store
    app.state.sale_sessions = SaleSessionManager(store, feed, settings)

    yield

    # Shutdown
    logger.info("🛑 Fiambrería API Shutting down...")
    await app.state.sale_sessions.close_all()
    feed.close()
    await store.close()

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="Punto de venta e inventario para fiambrería con integración de balanza",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan
)

# Setup middleware and error handlers
setup_middleware(app)
setup_exception_handlers(app)

# Include routers
app.include_router(api_router)

# Root endpoint
@app.get("/")
async def root():
    return {
        "message": "🚀 Fiambrería San Agustín API - Punto de Venta",
        "version": settings.version,
        "status": "running",
        "docs": "/docs" if settings.debug else "Disabled in production",
        "api": "/api/v1"
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
