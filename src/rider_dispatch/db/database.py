"""Database engine initialization and connection management."""

from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from .schema import Base, ServiceMetadata

SCHEMA_VERSION = "1.0.0"
IN_MEMORY = ":memory:"


def _configure_connection(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


def init_database(
    db_path: str,
    busy_timeout_seconds: float = 5.0,
    pool_timeout_seconds: float = 5.0,
    echo: bool = False,
) -> sessionmaker[Any]:
    """Initialize database and return session factory.

    Writers that find the database locked wait up to busy_timeout_seconds,
    and callers wait up to pool_timeout_seconds for a connection. Both
    surface as errors rather than blocking indefinitely.
    """
    engine_kwargs: dict[str, Any] = {
        "echo": echo,
        "connect_args": {"check_same_thread": False, "timeout": busy_timeout_seconds},
    }

    if db_path == IN_MEMORY:
        # A single shared connection keeps the in-memory database alive
        engine_kwargs["poolclass"] = StaticPool
    else:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        engine_kwargs["pool_timeout"] = pool_timeout_seconds

    engine = create_engine(f"sqlite:///{db_path}", **engine_kwargs)
    event.listen(engine, "connect", _configure_connection)
    Base.metadata.create_all(engine)

    session_maker = sessionmaker(bind=engine, expire_on_commit=False)

    with session_maker() as session:
        schema_version = session.get(ServiceMetadata, "schema_version")
        if not schema_version:
            session.add(ServiceMetadata(key="schema_version", value=SCHEMA_VERSION))
            session.commit()

    return session_maker
