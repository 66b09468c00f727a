"""Pytest fixtures for testing"""

import uuid
import pytest
from decimal import Decimal
from typing import Generator
from unittest.mock import AsyncMock, MagicMock
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from rentverse_bookings.api.main import create_app
from rentverse_bookings.api.dependencies import get_contract_issuer, get_gateway_client
from rentverse_bookings.config import settings
from rentverse_bookings.domain.models import ContractDocument
from rentverse_bookings.infrastructure.cache import read_cache
from rentverse_bookings.infrastructure.clients.gateway import GatewayClient
from rentverse_bookings.infrastructure.database.models import Base, Property, User
from rentverse_bookings.infrastructure.database.session import get_db
from rentverse_bookings.services.contracts import ContractIssuer


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

WEBHOOK_TOKEN = "test-callback-token"


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clear_read_cache():
    read_cache.invalidate()
    yield
    read_cache.invalidate()


@pytest.fixture(autouse=True)
def webhook_token(monkeypatch) -> str:
    monkeypatch.setattr(settings, "gateway_webhook_token", WEBHOOK_TOKEN)
    return WEBHOOK_TOKEN


@pytest.fixture
def landlord(db: Session) -> User:
    user = User(email="landlord@example.com", first_name="Lara", last_name="Landlord", role="LANDLORD")
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def tenant(db: Session) -> User:
    user = User(email="tenant@example.com", first_name="Tomi", last_name="Tenant", role="TENANT")
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def other_tenant(db: Session) -> User:
    user = User(email="other@example.com", first_name="Oki", last_name="Other", role="TENANT")
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def property_p1(db: Session, landlord: User) -> Property:
    prop = Property(
        owner_id=landlord.id,
        title="Sunset Loft",
        address="Jl. Melati 12",
        city="Jakarta",
        price=Decimal("1200.00"),
        currency_code="IDR",
    )
    db.add(prop)
    db.commit()
    return prop


@pytest.fixture
def contract_issuer() -> MagicMock:
    """Issuer that succeeds without rendering or uploading anything"""
    issuer = MagicMock(spec=ContractIssuer)

    async def issue(booking):
        return ContractDocument(
            url=f"https://storage.test/rental-agreements/rental_agreement_{booking.id}.pdf",
            key=f"rental-agreements/rental_agreement_{booking.id}.pdf",
            file_name=f"rental_agreement_{booking.id}.pdf",
            size=2048,
        )

    issuer.issue = AsyncMock(side_effect=issue)
    return issuer


@pytest.fixture
def gateway() -> MagicMock:
    """Gateway double; tests set return values per call"""
    client = MagicMock(spec=GatewayClient)
    client.create_invoice = AsyncMock()
    client.get_invoice = AsyncMock()
    client.expire_invoice = AsyncMock(return_value={"status": "EXPIRED"})
    return client


@pytest.fixture
def client(db: Session, contract_issuer: MagicMock, gateway: MagicMock) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_contract_issuer] = lambda: contract_issuer
    app.dependency_overrides[get_gateway_client] = lambda: gateway
    return TestClient(app)


def auth(user: User) -> dict:
    """Identity header normally injected by the authentication layer"""
    return {"X-User-ID": str(user.id)}


def booking_payload(property_id: uuid.UUID, **overrides) -> dict:
    payload = {
        "propertyId": str(property_id),
        "startDate": "2025-03-01",
        "endDate": "2025-03-31",
        "totalAmount": "1200.00",
        "paymentType": "CASH",
        "installmentCount": 3,
    }
    payload.update(overrides)
    return payload
