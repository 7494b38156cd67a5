"""Pytest fixtures for storefront tests."""

import os

# До импорта storefront: приложение не должно искать Postgres
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.core.errors import PaymentGatewayError
from storefront.db.base import Base
from storefront.db.session import enable_sqlite_savepoints, get_db
from storefront.main import app
from storefront.services.gateway import get_gateway

from factories import OTHER_USER_ID, USER_ID, auth_headers


class FakeGateway:
    """Заменяет RazorpayGateway: запоминает вызовы и выдаёт предсказуемые id."""

    provider = "razorpay"
    key_id = "rzp_test_key"

    def __init__(self):
        self.calls = []
        self.fail = False

    def create_order(self, amount_minor, currency, receipt, notes=None):
        if self.fail:
            raise PaymentGatewayError("Payment gateway timeout")
        self.calls.append({"amount": amount_minor, "currency": currency, "receipt": receipt, "notes": notes})
        return {
            "id": f"order_rzp_{len(self.calls)}",
            "amount": amount_minor,
            "currency": currency,
            "receipt": receipt,
            "status": "created",
        }


@pytest.fixture
def engine():
    """In-memory SQLite с поддержкой SAVEPOINT; новая БД на каждый тест."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    """Сессия тестов; её же получают эндпоинты через get_db."""
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(db, gateway):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def headers():
    return auth_headers(USER_ID)


@pytest.fixture
def other_headers():
    return auth_headers(OTHER_USER_ID)
