"""Declarative base shared by every model and by alembic env."""
from sqlalchemy.orm import declarative_base

Base = declarative_base()
