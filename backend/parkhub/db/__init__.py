from parkhub.db.base import Base
from parkhub.db.session import SessionLocal, create_all, engine, get_db
from parkhub.db.tables import ALL_TABLE_NAMES, RUNTIME_TABLE_NAMES

__all__ = ["get_db", "engine", "SessionLocal", "Base", "create_all", "ALL_TABLE_NAMES", "RUNTIME_TABLE_NAMES"]
