import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["WEBHOOK_URLS"] = ""

import pytest
from fastapi.testclient import TestClient

from app.database import Base, SessionLocal, engine, get_db
from app.main import app
from app.models.location import InventoryItem, Location
from app.models.product import Product
from app.models.supplier import Supplier
from app.models.user import UserRole
from app.services import auth_service

ADMIN_EMAIL = "admin@example.com"
OPERATOR_EMAIL = "operator@example.com"
PASSWORD = "secret123"


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin(db):
    return auth_service.create_user(db, ADMIN_EMAIL, PASSWORD, "Alice Admin", UserRole.ADMIN)


@pytest.fixture
def operator(db):
    return auth_service.create_user(db, OPERATOR_EMAIL, PASSWORD, "Olivier Operateur", UserRole.OPERATOR)


def login(client, email, password=PASSWORD):
    resp = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return client


@pytest.fixture
def admin_client(client, admin):
    return login(client, ADMIN_EMAIL)


@pytest.fixture
def operator_client(client, operator):
    return login(client, OPERATOR_EMAIL)


# --- Factories ---

def make_product(db, name="Gants nitrile", sku=None, min_stock_level=5, warning_stock_level=10, **kwargs):
    product = Product(
        name=name,
        sku=sku,
        min_stock_level=min_stock_level,
        warning_stock_level=warning_stock_level,
        **kwargs,
    )
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


def make_location(db, name="Réserve", is_active=True):
    location = Location(name=name, is_active=is_active)
    db.add(location)
    db.commit()
    db.refresh(location)
    return location


def make_supplier(db, name="MedSupply"):
    supplier = Supplier(name=name)
    db.add(supplier)
    db.commit()
    db.refresh(supplier)
    return supplier


def make_stock(db, location, product, quantity, variant=None):
    item = InventoryItem(
        location_id=location.id,
        product_id=product.id,
        variant_id=variant.id if variant else None,
        quantity=quantity,
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    return item
