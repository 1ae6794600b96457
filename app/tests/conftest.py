"""Pytest fixtures for storefront API tests."""

import os
import shutil
import tempfile

# Settings are read at import time, so the environment goes first
TEST_DIR = tempfile.mkdtemp(prefix="storefront-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(TEST_DIR, 'app.db')}"
os.environ["UPLOAD_DIR"] = os.path.join(TEST_DIR, "uploads")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from storefront.main import app
from storefront.database import Base, get_db
from storefront.config import settings
from storefront import auth, models

SQLALCHEMY_TEST_DATABASE_URL = f"sqlite:///{os.path.join(TEST_DIR, 'test.db')}"
engine_test = create_engine(SQLALCHEMY_TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine_test)


def override_get_db():
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()

app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def reset_state():
    """Fresh tables and an empty upload directory for every test."""
    Base.metadata.drop_all(bind=engine_test)
    Base.metadata.create_all(bind=engine_test)
    shutil.rmtree(settings.UPLOAD_DIR, ignore_errors=True)
    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
    yield


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def db():
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    """Insert a user with the given role and return (user id, auth headers)."""

    def _make_user(name="Test User", email=None, role=models.ROLE_CUSTOMER, password="secret123"):
        email = email or f"{name.lower().replace(' ', '.')}@example.com"
        user = models.User(
            name=name,
            email=email,
            hashed_password=auth.get_password_hash(password),
            role=role,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        token = auth.create_user_token(user)
        return user.id, {"Authorization": f"Bearer {token}"}

    return _make_user


@pytest.fixture
def customer(make_user):
    return make_user("Carol Customer", "carol@example.com")


@pytest.fixture
def seller(make_user):
    return make_user("Sam Seller", "sam@example.com", role=models.ROLE_SELLER)


@pytest.fixture
def admin(make_user):
    return make_user("Ada Admin", "ada@example.com", role=models.ROLE_ADMIN)


@pytest.fixture
def create_product(client, seller):
    """Create a product through the API as the seller (or the given headers)."""

    def _create_product(headers=None, image=None, **fields):
        data = {
            "title": "Laptop",
            "description": "High performance laptop",
            "price": "999.99",
            "category": "Electronics",
            "stock": "10",
            "discount": "0",
        }
        data.update({key: str(value) for key, value in fields.items()})
        files = {"productImage": image} if image else None
        response = client.post("/api/products", data=data, files=files, headers=headers or seller[1])
        assert response.status_code == 201, response.text
        return response.json()

    return _create_product


@pytest.fixture
def shipping_address():
    return {
        "fullName": "Carol Customer",
        "address": "1 Main Street",
        "city": "Springfield",
        "postalCode": "12345",
        "country": "US",
    }


@pytest.fixture
def place_order(client, customer, shipping_address):
    def _place_order(items, headers=None, **extra):
        body = {
            "orderItems": [
                {"product": product_id, "quantity": quantity, "name": f"item-{index}"}
                for index, (product_id, quantity) in enumerate(items)
            ],
            "shippingAddress": shipping_address,
        }
        body.update(extra)
        return client.post("/api/orders", json=body, headers=headers or customer[1])

    return _place_order


def png_file(name="photo.png", content=b"\x89PNG\r\n\x1a\nfake-image-bytes"):
    return (name, content, "image/png")


def uploaded_path(image_url):
    return os.path.join(settings.UPLOAD_DIR, os.path.basename(image_url))
