"""
Dialect-aware INSERT for idempotent provisioning (ON CONFLICT DO NOTHING).

PostgreSQL in deployment, SQLite in tests; both dialects expose the same on_conflict API.
"""
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session


def insert_ignore_conflicts(db: Session, model, rows: list[dict], index_elements: list[str]) -> int:
    """
    Insert rows, silently skipping any that collide on index_elements (a unique constraint).
    Safe to call concurrently: the database decides which writer wins. Returns rows inserted.
    """
    if not rows:
        return 0
    dialect = db.get_bind().dialect.name
    insert = pg_insert if dialect == "postgresql" else sqlite_insert
    stmt = insert(model).values(rows).on_conflict_do_nothing(index_elements=index_elements)
    result = db.execute(stmt)
    # rowcount is -1 on some drivers for multi-row inserts; callers treat it as a hint only
    return max(result.rowcount or 0, 0)
