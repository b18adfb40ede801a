from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import QueuePool

from socialproof.core.config import get_settings


def build_engine(database_url: str):
    if database_url.startswith("sqlite"):
        # Workers open sessions from Celery threads
        return create_engine(database_url, connect_args={"check_same_thread": False})

    # Pooled connections for PostgreSQL; one session per task keeps usage low
    return create_engine(
        database_url,
        poolclass=QueuePool,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
        pool_pre_ping=True,  # Verify connections before using them (handles stale connections)
        pool_recycle=3600,
        echo=False,
    )


engine = build_engine(get_settings().database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
