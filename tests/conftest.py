import os

# Must be set before app.* is imported: settings and the engine are built at import.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("IDENTITY_JWT_SECRET", "test-secret")
os.environ.setdefault("RPC_SHARED_SECRET", "test-rpc-secret")

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from app.core.auth import require_user
from app.core.catalog_client import parse_product
from app.core.errors import ProductNotFound
from app.database import build_engine, get_session
from app.main import app
from app.repositories.cart_repo import InMemoryCartRepository
from app.routers.cart import get_cart_service
from app.services.cart_service import CartService

USER_ID = "u1"


class FakeCatalog:
    """
    Stand-in for CatalogClient: products are raw catalog payloads and go
    through the same validation as real responses.
    """

    def __init__(self):
        self.products: dict[str, object] = {}
        self.failures: dict[str, Exception] = {}
        self.calls: list[str] = []

    def add(self, product_id: str, **data):
        self.products[product_id] = data

    def fail(self, product_id: str, error: Exception):
        self.failures[product_id] = error

    def get_product_details(self, product_id: str):
        self.calls.append(product_id)
        if product_id in self.failures:
            raise self.failures[product_id]
        if product_id not in self.products:
            raise ProductNotFound(f"Product {product_id} not found")
        return parse_product(product_id, self.products[product_id])


@pytest.fixture
def catalog():
    fake = FakeCatalog()
    fake.add("p1", name="Basic Tee", price=29.99, stock=5, imageUrl="https://img.example.com/p1.jpg")
    return fake


@pytest.fixture
def store():
    return InMemoryCartRepository()


@pytest.fixture
def service(store, catalog):
    return CartService(store, catalog)


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(service, session):
    """
    TestClient wired to the in-memory store and the fake catalog,
    with authentication resolved to USER_ID.
    """
    app.dependency_overrides[get_cart_service] = lambda: service
    app.dependency_overrides[get_session] = lambda: session
    app.dependency_overrides[require_user] = lambda: USER_ID
    yield TestClient(app)
    app.dependency_overrides.clear()
