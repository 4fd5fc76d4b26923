from pydantic import Field
from pydantic_settings import BaseSettings
from typing import List

class Settings(BaseSettings):
    # App Info
    app_name: str = "Fiambrería San Agustín API"
    version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite:///./fiambreria.db"

    # CORS
    allowed_origins: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # Lecturas de balanza
    reading_poll_interval_seconds: float = Field(
        default=3.0, gt=0,
        description="Intervalo de consulta de lecturas_balanza"
    )
    reading_snapshot_limit: int = Field(
        default=50, ge=1,
        description="Lecturas más recientes traídas en cada consulta"
    )
    ready_readings_limit: int = Field(
        default=50, ge=1,
        description="Máximo de lecturas listas para agregar que se conservan"
    )
    change_feed_queue_size: int = Field(default=100, ge=1)

    # Ventas
    walk_in_client_name: str = Field(
        default="Consumidor Final",
        description="Cliente usado cuando la venta no tiene cliente seleccionado"
    )
    sale_session_idle_seconds: float = Field(
        default=1800, gt=0,
        description="Inactividad tras la cual se cierra la sesión de venta de un operador"
    )

    # Balanza (hardware)
    scale_url: str = "http://localhost:3000"
    scale_timeout_seconds: float = 3.0

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    class Config:
        env_file = ".env"
        case_sensitive = False

settings = Settings()
