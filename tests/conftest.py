"""
Shared test fixtures.

Sets up an isolated SQLite file database so tests never touch
the real database. Tables are created before each test and
dropped after it.

A file database (not :memory:) lets concurrency tests open
several connections that see the same data. The engine gets
the same BEGIN IMMEDIATE setup as production SQLite engines.
"""

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from freight_core.api.dependencies import get_coordinator
from freight_core.config import Settings
from freight_core.main import app
from freight_core.models import Base, Organization, Driver, Truck
from freight_core.models.base import build_engine, get_db
from freight_core.services.actor import Actor
from freight_core.services.coordinator import Coordinator


TEST_DATABASE_URL = "sqlite:///./test.db"

engine = build_engine(TEST_DATABASE_URL)

TestSessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)


class RecordingNotifier:
    """Collects published events instead of delivering them."""

    def __init__(self):
        self.events = []

    def publish(self, event: str, payload: dict) -> None:
        self.events.append((event, payload))

    def names(self) -> list[str]:
        return [event for event, _ in self.events]


@pytest.fixture(autouse=True)
def setup_database():
    """
    Create all tables before each test, drop them after.

    autouse=True means every test gets this automatically.
    """
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def test_settings():
    """Settings with retries fast enough for tests."""
    settings = Settings()
    settings.RETRY_BASE_DELAY_MS = 1
    settings.MAX_TRANSACTION_ATTEMPTS = 3
    settings.ALLOW_ADVANCE_PAYMENTS = False
    return settings


@pytest.fixture
def session_factory():
    return TestSessionLocal


@pytest.fixture
def db_session():
    """
    Provide a database session for direct service testing.

    Tests that also use the coordinator must not keep this
    session inside a transaction while it runs; SQLite allows
    one writer at a time.
    """
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def coordinator(notifier, test_settings):
    return Coordinator(TestSessionLocal, notifier=notifier, settings=test_settings)


@pytest.fixture
def world():
    """
    Three organizations with their fleets.

    source (A) ships to destination (B); other (C) is unrelated.
    """
    session = TestSessionLocal()
    try:
        source = Organization(name="Source Traders")
        destination = Organization(name="Destination Mart")
        other = Organization(name="Other Logistics")
        session.add_all([source, destination, other])
        session.flush()

        driver1 = Driver(org_id=source.id, name="Ravi", phone="9000000001")
        driver2 = Driver(org_id=source.id, name="Arun", phone="9000000002")
        other_driver = Driver(org_id=other.id, name="Mani", phone="9000000003")
        truck1 = Truck(org_id=source.id, registration_number="KA01AB1001")
        truck2 = Truck(org_id=source.id, registration_number="KA01AB1002")
        other_truck = Truck(org_id=other.id, registration_number="TN09CD2001")
        session.add_all([
            driver1, driver2, other_driver, truck1, truck2, other_truck,
        ])
        session.commit()

        return SimpleNamespace(
            source_id=source.id,
            destination_id=destination.id,
            other_id=other.id,
            driver1_id=driver1.id,
            driver2_id=driver2.id,
            other_driver_id=other_driver.id,
            truck1_id=truck1.id,
            truck2_id=truck2.id,
            other_truck_id=other_truck.id,
            source_actor=Actor("user-source", frozenset({source.id})),
            destination_actor=Actor(
                "user-destination", frozenset({destination.id})
            ),
            outsider=Actor("user-other", frozenset({other.id})),
        )
    finally:
        session.close()


@pytest.fixture
def client(coordinator):
    """
    Provide a test client with the test database.

    We override the coordinator and get_db dependencies so the
    FastAPI app uses the test database instead of the real one.
    """
    def override_get_db():
        db = TestSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_coordinator] = lambda: coordinator
    yield TestClient(app)
    app.dependency_overrides.clear()


def headers_for(actor: Actor) -> dict:
    """Gateway headers carrying the given actor."""
    headers = {
        "X-User-Id": actor.user_id,
        "X-Org-Ids": ",".join(str(o) for o in sorted(actor.org_ids)),
    }
    if actor.phone:
        headers["X-User-Phone"] = actor.phone
    return headers


@pytest.fixture
def headers():
    """Build gateway headers for an actor: headers(world.source_actor)."""
    return headers_for
