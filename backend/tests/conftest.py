import os
from datetime import datetime, timezone

# Settings are read at import time; keep the module-level engine off any real database.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTO_INIT_SITE"] = "false"
# Small site; routes read the layout from settings, so fixtures and routes agree.
os.environ["BLOCKS_PER_SITE"] = "2"
os.environ["SLOTS_PER_BLOCK"] = "6"
os.environ["LIFTS_PER_BLOCK"] = "2"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from parkhub.config import get_site_layout
from parkhub.db.session import create_all, get_db, make_engine
from parkhub.main import app
from parkhub.services.lot_service import initialize_site

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)

ADMIN = {"X-User-Id": "admin-1", "X-User-Role": "admin"}
USER = {"X-User-Id": "user-1", "X-User-Role": "user"}
OTHER_USER = {"X-User-Id": "user-2", "X-User-Role": "user"}


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'parkhub.db'}")
    create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def layout():
    return get_site_layout()


@pytest.fixture
def site(db, layout):
    """BLOCK-A and BLOCK-B, 6 spots and 2 lifts each."""
    initialize_site(db, layout)
    return layout


@pytest.fixture
def client(session_factory, site):
    def _get_test_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_test_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
