"""
Rider Dispatch Service - Entry Point

Wires settings, logging, storage and the dispatch components together and
serves the HTTP API with uvicorn.
"""

import logging
from dataclasses import dataclass
from typing import Any

import uvicorn
from fastapi import FastAPI
from sqlalchemy.orm import sessionmaker

from .api import create_app
from .db.database import init_database
from .dispatch import BookingService, DispatchCoordinator
from .dispatch_logging import setup_logging
from .events import EventBus
from .ledger import EarningsLedger
from .matching import MatchEngine, RiderDirectory
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

LEDGER_EVENTS = ("delivery.delivered", "delivery.cancelled", "delivery.failed")


@dataclass
class Components:
    event_bus: EventBus
    directory: RiderDirectory
    match_engine: MatchEngine
    coordinator: DispatchCoordinator
    ledger: EarningsLedger
    bookings: BookingService


def build_components(settings: Settings, session_factory: sessionmaker[Any]) -> Components:
    """Create the dispatch components and subscribe the ledger to delivery events."""
    retry_config = settings.retry.to_config()
    event_bus = EventBus()

    directory = RiderDirectory(session_factory, h3_resolution=settings.matching.h3_resolution)
    match_engine = MatchEngine(directory, settings.matching)
    coordinator = DispatchCoordinator(
        session_factory,
        match_engine,
        directory,
        event_bus=event_bus,
        settings=settings.dispatch,
        retry_config=retry_config,
    )
    ledger = EarningsLedger(session_factory, directory, retry_config=retry_config)
    bookings = BookingService(session_factory, settings.booking, event_bus=event_bus)

    for event_type in LEDGER_EVENTS:
        event_bus.subscribe(event_type, ledger.handle_event)

    return Components(
        event_bus=event_bus,
        directory=directory,
        match_engine=match_engine,
        coordinator=coordinator,
        ledger=ledger,
        bookings=bookings,
    )


def build_app(settings: Settings) -> FastAPI:
    session_factory = init_database(
        settings.database.path,
        busy_timeout_seconds=settings.database.busy_timeout_seconds,
        pool_timeout_seconds=settings.database.pool_timeout_seconds,
        echo=settings.database.echo,
    )
    components = build_components(settings, session_factory)

    # Postings lost to a crash between commit and event delivery
    components.ledger.backfill_missing()

    return create_app(
        coordinator=components.coordinator,
        directory=components.directory,
        match_engine=components.match_engine,
        ledger=components.ledger,
        bookings_service=components.bookings,
        settings=settings,
    )


def main() -> None:
    settings = get_settings()
    setup_logging(
        level=settings.logging.level,
        json_output=settings.logging.format == "json",
        environment=settings.logging.environment,
    )

    logger.info("Opening database at %s", settings.database.path)
    app = build_app(settings)

    logger.info("Starting rider dispatch service on port %d", settings.api.port)
    uvicorn.run(
        app,
        host=settings.api.host,
        port=settings.api.port,
        log_level=settings.logging.level.lower(),
    )


if __name__ == "__main__":
    main()
