from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool
from .settings import settings


def build_engine(database_url: str, echo: bool = False):
    """Engine para la URL dada; SQLite en memoria comparte una sola conexión"""
    if database_url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url:
            options["poolclass"] = StaticPool
        return create_engine(database_url, echo=echo, **options)
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_recycle=300,
        echo=echo
    )

# Create engine
engine = build_engine(settings.database_url, echo=settings.debug)

# Base class for models
Base = declarative_base()
