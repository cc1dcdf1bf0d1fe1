"""Pytest configuration and fixtures."""

import pytest
from decimal import Decimal
from typing import Generator

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from pos_inventory.core.rbac import UserRole
from pos_inventory.core.security import get_password_hash, create_access_token
from pos_inventory.db.base import Base
from pos_inventory.db.session import SessionLocal as AppSessionLocal, enable_sqlite_foreign_keys, get_db
from pos_inventory.main import app
# Import all models to ensure they're registered with Base.metadata
from pos_inventory.models import *
from pos_inventory.models.user import User
from pos_inventory.models.restaurant import MenuItem
from pos_inventory.models.warehouse import Warehouse
from pos_inventory.services.inventory_item_service import InventoryItemService
from pos_inventory.services.warehouse_service import WarehouseService

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine.

    The application session factory is rebound to it as well, so code that
    opens its own session (usage outbox worker, audit log) sees the same data.
    """
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    original_bind = AppSessionLocal.kw["bind"]
    AppSessionLocal.configure(bind=engine)
    yield engine
    AppSessionLocal.configure(bind=original_bind)
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Create a test database session."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    # Disable rate limiters during tests to avoid flaky failures
    from pos_inventory.core.rate_limit import limiter as global_limiter
    global_limiter.enabled = False
    # Don't raise server exceptions so we can test error status codes
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    global_limiter.enabled = True
    app.dependency_overrides.clear()


def _make_user(db_session: Session, email: str, role: UserRole, name: str) -> User:
    user = User(
        email=email,
        password_hash=get_password_hash("testpass123"),
        role=role,
        name=name,
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


def _headers_for(user: User) -> dict:
    token = create_access_token(
        data={"sub": str(user.id), "email": user.email, "role": user.role.value}
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def test_user(db_session: Session) -> User:
    """Create a test user (owner)."""
    return _make_user(db_session, "owner@bistro.uz", UserRole.OWNER, "Test Owner")


@pytest.fixture
def staff_user(db_session: Session) -> User:
    return _make_user(db_session, "cook@bistro.uz", UserRole.STAFF, "Line Cook")


@pytest.fixture
def auth_token(test_user: User) -> str:
    """Get an authentication token for the test user."""
    return create_access_token(
        data={"sub": str(test_user.id), "email": test_user.email, "role": test_user.role.value}
    )


@pytest.fixture
def auth_headers(auth_token: str) -> dict:
    """Get authentication headers."""
    return {"Authorization": f"Bearer {auth_token}"}


@pytest.fixture
def staff_headers(staff_user: User) -> dict:
    return _headers_for(staff_user)


@pytest.fixture
def main_warehouse(db_session: Session) -> Warehouse:
    """The default warehouse, created on first use."""
    warehouse = WarehouseService(db_session).ensure_default_warehouse()
    db_session.commit()
    db_session.refresh(warehouse)
    return warehouse


@pytest.fixture
def bar_warehouse(db_session: Session, main_warehouse: Warehouse) -> Warehouse:
    return WarehouseService(db_session).create_warehouse({"name": "Bar", "code": "bar", "type": "bar"})


@pytest.fixture
def make_item(db_session: Session, main_warehouse: Warehouse):
    """Factory for inventory items with an opening balance in the default warehouse."""
    def _make(name: str, stock="0", cost="0", par="0", unit="kg", **extra):
        data = {
            "name": name,
            "unit": unit,
            "current_stock": Decimal(str(stock)),
            "cost": Decimal(str(cost)),
            "par_level": Decimal(str(par)),
        }
        data.update(extra)
        return InventoryItemService(db_session).create_item(data)
    return _make


@pytest.fixture
def make_menu_item(db_session: Session):
    def _make(name: str, price="10.00", available=True, category="Food") -> MenuItem:
        menu_item = MenuItem(name=name, price=Decimal(price), category=category, available=available)
        db_session.add(menu_item)
        db_session.commit()
        db_session.refresh(menu_item)
        return menu_item
    return _make
