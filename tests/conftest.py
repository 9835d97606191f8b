from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import stockbook.models.change_log  # noqa: F401
import stockbook.models.item  # noqa: F401
import stockbook.models.master  # noqa: F401
import stockbook.models.sku_counter  # noqa: F401
import stockbook.models.user  # noqa: F401
from stockbook.database import Base, get_db
from stockbook.main import app
from stockbook.models.item import Item, ItemType
from stockbook.models.user import User
from stockbook.services import auth_service
from stockbook.services.sku_service import next_sku

ADMIN_PASSWORD = "admin-pass"
STAFF_PASSWORD = "staff-pass"


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def admin_user(db) -> User:
    return auth_service.create_user(db, "admin", ADMIN_PASSWORD, "Admin", role="admin")


@pytest.fixture
def staff_user(db) -> User:
    return auth_service.create_user(db, "staff", STAFF_PASSWORD, "Staff", role="staff")


@pytest.fixture
def override_db(session_factory):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    yield
    app.dependency_overrides.clear()


def _login(username: str, password: str) -> TestClient:
    client = TestClient(app)
    resp = client.post("/api/v1/auth/login", json={"username": username, "password": password})
    assert resp.status_code == 200, resp.text
    return client


@pytest.fixture
def client(override_db, admin_user) -> TestClient:
    """Signed in as admin."""
    return _login("admin", ADMIN_PASSWORD)


@pytest.fixture
def staff_client(override_db, staff_user) -> TestClient:
    return _login("staff", STAFF_PASSWORD)


@pytest.fixture
def anon_client(override_db) -> TestClient:
    return TestClient(app)


@pytest.fixture
def make_item(db):
    """Insert an item directly, bypassing the API."""

    def _make(name="Item", item_type=ItemType.PRODUCT, tags=(), **fields):
        item_type = ItemType(item_type)
        if item_type == ItemType.PRODUCT:
            fields.setdefault("cost_price", Decimal("100"))
        item = Item(sku=next_sku(db, item_type), item_type=item_type.value, name=name, **fields)
        item.tags = list(tags)
        db.add(item)
        db.commit()
        return item

    return _make
