import os

# Settings are read at import time, so point them at the test database first.
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_marketplace.db")
os.environ.setdefault("SECRET_KEY", "test-secret")

# Imports for testing tools
import datetime
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from unittest.mock import AsyncMock
from jose import jwt

# Import your application code
from marketplace_bookings.main import app
from marketplace_bookings.database import Base, get_db
from marketplace_bookings.config import settings
from marketplace_bookings.routers import booking_router
from marketplace_bookings import models

# --- Test Database Setup ---
SQLALCHEMY_DATABASE_URL = os.environ["DATABASE_URL"]

engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# --- Database Management Fixtures ---
@pytest.fixture(scope="function")
def db_session():
    """
    Provides a session on freshly created tables for each test.
    Booking code commits on its own, so tables are recreated instead of
    wrapping the test in an outer transaction.
    """
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


# --- Mocking External Services ---
@pytest.fixture(scope="function", autouse=True)
def mock_background_tasks(mocker):
    """
    Mocks the background tasks and the rate limiter backend started on app lifespan.
    """
    mocker.patch("marketplace_bookings.main.run_outbox_poller", new_callable=AsyncMock)
    mocker.patch("marketplace_bookings.main.run_booking_scheduler", new_callable=AsyncMock)
    mocker.patch("marketplace_bookings.main.FastAPILimiter.init", new_callable=AsyncMock)


@pytest.fixture(scope="function", autouse=True)
def mock_send_mail(mocker):
    """No test talks to an SMTP server."""
    return mocker.patch("marketplace_bookings.notifications.send_mail", new_callable=AsyncMock)


# --- API Test Client Fixture ---
@pytest.fixture(scope="function")
def client(db_session):
    """Provides a TestClient for the booking service."""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[booking_router.create_rate_limit] = lambda: None
    app.dependency_overrides[booking_router.read_rate_limit] = lambda: None

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


# --- Auth helpers ---
def create_test_token(user_id: int = 1, role: str = "user", email: str | None = "guest@example.com") -> str:
    """Creates a JWT like the accounts service issues."""
    payload = {"sub": str(user_id), "role": role}
    if email:
        payload["email"] = email
    token = jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return f"Bearer {token}"


@pytest.fixture
def auth_headers():
    """Customer token (user_id=1, guest@example.com)."""
    return {"Authorization": create_test_token()}


@pytest.fixture
def vendor_headers(vendor):
    return {"Authorization": create_test_token(vendor.id, role="vendor", email=vendor.email)}


@pytest.fixture
def admin_headers():
    return {"Authorization": create_test_token(900, role="admin", email="admin@example.com")}


# --- Marketplace data ---
@pytest.fixture
def vendor(db_session):
    db_vendor = models.Vendor(id=10, full_name="Himalayan Homes", email="vendor@example.com")
    db_session.add(db_vendor)
    db_session.commit()
    return db_vendor


@pytest.fixture
def other_vendor(db_session):
    db_vendor = models.Vendor(id=20, full_name="Coastal Rides", email="rides@example.com")
    db_session.add(db_vendor)
    db_session.commit()
    return db_vendor


def add_listing(db_session, vendor_id: int, service_type: models.ServiceType, name: str, units: list[dict], **extra):
    listing = models.Listing(service_type=service_type, vendor_id=vendor_id, name=name, **extra)
    for unit in units:
        listing.units.append(models.BookableUnit(**unit))
    db_session.add(listing)
    db_session.commit()
    db_session.refresh(listing)
    return listing


@pytest.fixture
def stay(db_session, vendor):
    return add_listing(db_session, vendor.id, models.ServiceType.STAY, "Pine View Homestay", [
        {"name": "Deluxe", "price": 1000, "taxes": 100, "capacity": 2},
        {"name": "Suite", "price": 2000, "taxes": 200, "capacity": 4},
    ], category="hotels")


@pytest.fixture
def tour(db_session, vendor):
    return add_listing(db_session, vendor.id, models.ServiceType.TOUR, "Old Town Walk", [
        {"name": "Morning group", "price": 500, "taxes": 50, "capacity": 12, "details": {"duration": "3h"}},
        {"name": "Private", "price": 3000, "taxes": 300, "capacity": 4},
    ])


@pytest.fixture
def adventure(db_session, vendor):
    return add_listing(db_session, vendor.id, models.ServiceType.ADVENTURE, "River Rafting", [
        {"name": "Grade III run", "price": 1500, "taxes": 0, "capacity": 8, "details": {"difficulty": "moderate"}},
    ])


@pytest.fixture
def vehicle(db_session, other_vendor):
    return add_listing(db_session, other_vendor.id, models.ServiceType.VEHICLE, "Coastal Scooters", [
        {"name": "Activa 6G", "price": 400, "taxes": 40, "capacity": 2, "details": {"vehicle_type": "scooter"}},
    ])


@pytest.fixture
def coupon(db_session):
    db_coupon = models.Coupon(
        code="SAVE10",
        discount_type=models.DiscountType.PERCENTAGE,
        discount_amount=10,
        min_purchase=0,
        max_discount=150,
        start_date=datetime.datetime.utcnow() - datetime.timedelta(days=1),
        expiry_date=datetime.datetime.utcnow() + datetime.timedelta(days=365),
    )
    db_session.add(db_coupon)
    db_session.commit()
    return db_coupon
