import os

# Must be set before the storefront package is imported
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_app.db")

from decimal import Decimal
from functools import lru_cache

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from storefront.config import Settings
from storefront.database import Base, get_db
from storefront.main import create_app
from storefront.models import Product, User
from storefront.security import hash_password

SQLALCHEMY_DATABASE_URL = "sqlite:///./test_temp.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={
                       "check_same_thread": False})
TestingSessionLocal = sessionmaker(
    autocommit=False, autoflush=False, bind=engine)

PASSWORD = "correct horse battery"
WEBHOOK_SECRET = "whsec_test"


@lru_cache(maxsize=None)
def _hashed(password):
    # PBKDF2 is deliberately slow; hash each test password once per run
    return hash_password(password)


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def settings():
    return Settings(
        session_secret="test-session-secret",
        jwt_secret="test-jwt-secret",
        stripe_secret_key="sk_test_123",
        stripe_webhook_secret=WEBHOOK_SECRET,
        frontend_urls=["http://localhost:3000"],
    )


@pytest.fixture
def fastapi_app(settings):
    application = create_app(settings)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    application.dependency_overrides[get_db] = override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(fastapi_app):
    # Cookies are Secure, so talk to the app over https
    with TestClient(fastapi_app, base_url="https://testserver") as c:
        yield c


@pytest.fixture
def make_user():
    def _make_user(email="buyer@example.com", password=PASSWORD, role="user"):
        salt, key = _hashed(password)
        db = TestingSessionLocal()
        user = User(email=email, name="Buyer", role=role, password=key, salt=salt)
        db.add(user)
        db.commit()
        db.refresh(user)
        db.expunge(user)
        db.close()
        return user
    return _make_user


@pytest.fixture
def make_product():
    def _make_product(title="Lime", price="12.75", stock=10):
        db = TestingSessionLocal()
        product = Product(title=title, price=Decimal(price), stock=stock)
        db.add(product)
        db.commit()
        db.refresh(product)
        db.expunge(product)
        db.close()
        return product
    return _make_product


@pytest.fixture
def login(client):
    def _login(email="buyer@example.com", password=PASSWORD):
        response = client.post("/api/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200
        return response
    return _login


@pytest.fixture
def session_factory():
    return TestingSessionLocal
