"""
Database session and engine.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from parkhub.config import settings
from parkhub.db.base import Base


def make_engine(url: str):
    """Engine for url. SQLite (tests, local dev) gets no pool tuning, thread-sharing and a lock wait."""
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False, "timeout": 30})
    return create_engine(
        url,
        pool_size=8,
        max_overflow=10,
        pool_pre_ping=True,
        pool_recycle=300,
        pool_timeout=30,
    )


engine = make_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_all(bind=None) -> None:
    """Create tables without alembic (tests, throwaway SQLite)."""
    import parkhub.models  # noqa: F401  registers every model on Base.metadata

    Base.metadata.create_all(bind=bind or engine)
