import os

# The API key has no default (the service must fail without it).
# Provide a test value so Settings() can be constructed in tests.
os.environ.setdefault("API_KEY", "test-api-key")

from pathlib import Path
from typing import TYPE_CHECKING, Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from rider_dispatch.api import create_app
from rider_dispatch.core.retry import RetryConfig
from rider_dispatch.db.database import init_database
from rider_dispatch.dispatch import BookingService, DispatchCoordinator
from rider_dispatch.events import EventBus
from rider_dispatch.ledger import EarningsLedger
from rider_dispatch.main import LEDGER_EVENTS
from rider_dispatch.matching import MatchEngine, RiderDirectory
from rider_dispatch.settings import (
    BookingSettings,
    DispatchSettings,
    MatchingSettings,
    Settings,
)
from tests.factories import DeliveryFactory, RiderFactory

if TYPE_CHECKING:
    from faker.proxy import Faker

# Retries without real sleeping
FAST_RETRY = RetryConfig(max_attempts=3, base_delay=0.0, max_delay=0.0)


@pytest.fixture
def temp_sqlite_db(tmp_path: Path) -> Path:
    """Temporary SQLite database for persistence tests."""
    return tmp_path / "test_dispatch.db"


@pytest.fixture
def session_factory(temp_sqlite_db: Path) -> sessionmaker[Any]:
    return init_database(str(temp_sqlite_db))


@pytest.fixture
def rider_factory() -> RiderFactory:
    """Factory for rider registrations with seeded Faker."""
    return RiderFactory(seed=42)


@pytest.fixture
def delivery_factory() -> DeliveryFactory:
    return DeliveryFactory(seed=42)


@pytest.fixture
def fake(rider_factory: RiderFactory) -> "Faker":
    """Seeded Faker instance for deterministic test data."""
    return rider_factory.fake


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def published_events(event_bus: EventBus) -> list[Any]:
    """Every event published on the bus, in order."""
    events: list[Any] = []
    event_bus.subscribe("*", events.append)
    return events


@pytest.fixture
def directory(session_factory: sessionmaker[Any]) -> RiderDirectory:
    return RiderDirectory(session_factory)


@pytest.fixture
def match_engine(directory: RiderDirectory) -> MatchEngine:
    return MatchEngine(directory, MatchingSettings())


@pytest.fixture
def coordinator(
    session_factory: sessionmaker[Any],
    match_engine: MatchEngine,
    directory: RiderDirectory,
    event_bus: EventBus,
) -> DispatchCoordinator:
    return DispatchCoordinator(
        session_factory,
        match_engine,
        directory,
        event_bus=event_bus,
        settings=DispatchSettings(),
        retry_config=FAST_RETRY,
    )


@pytest.fixture
def ledger(session_factory: sessionmaker[Any], directory: RiderDirectory) -> EarningsLedger:
    return EarningsLedger(session_factory, directory, retry_config=FAST_RETRY)


@pytest.fixture
def wired_ledger(ledger: EarningsLedger, event_bus: EventBus) -> EarningsLedger:
    """Ledger subscribed to delivery events the way the service wires it."""
    for event_type in LEDGER_EVENTS:
        event_bus.subscribe(event_type, ledger.handle_event)
    return ledger


@pytest.fixture
def bookings(session_factory: sessionmaker[Any], event_bus: EventBus) -> BookingService:
    return BookingService(session_factory, BookingSettings(), event_bus=event_bus)


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"X-API-Key": os.environ["API_KEY"]}


@pytest.fixture
def client(
    coordinator: DispatchCoordinator,
    directory: RiderDirectory,
    match_engine: MatchEngine,
    wired_ledger: EarningsLedger,
    bookings: BookingService,
) -> TestClient:
    """API client over the same components the other fixtures expose."""
    app = create_app(coordinator, directory, match_engine, wired_ledger, bookings, Settings())
    return TestClient(app)
