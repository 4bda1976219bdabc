import os, sys
import pytest
from fastapi.testclient import TestClient
import tempfile
import uuid

# File-based SQLite per run; several sessions (leases, fakes) open their own connections
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite+pysqlite:///{os.path.join(tempfile.gettempdir(), f'callsync_test_{uuid.uuid4().hex}.db')}",
)

# backend/ を sys.path 先頭に追加しローカル callsync パッケージを優先 (tests/ for the shared fakes)
backend_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if backend_root not in sys.path:
    sys.path.insert(0, backend_root)
tests_root = os.path.dirname(os.path.abspath(__file__))
if tests_root not in sys.path:
    sys.path.insert(0, tests_root)

from callsync.main import app  # noqa: E402
from callsync.db.session import engine, Base, SessionLocal  # noqa: E402


@pytest.fixture(scope="function")
def client():
    # Fresh schema for each test
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    app.dependency_overrides.clear()
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def db(client):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
