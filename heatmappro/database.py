"""SQLAlchemy engine and session handling for the geo-grid history store."""

import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator

from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///data/heatmappro.db"


class Base(DeclarativeBase):
    """Declarative base for HeatMapPro ORM models."""
    pass


_engine: Engine | None = None
_SessionFactory: sessionmaker | None = None


def _sqlite_pragmas(dbapi_conn, connection_record):
    """WAL journal plus foreign keys for file-backed SQLite."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.execute("PRAGMA busy_timeout=5000;")
    cursor.close()


def get_engine(database_url: str | None = None, echo: bool = False) -> Engine:
    """Return the process-wide engine, creating it on first use.

    Args:
        database_url: SQLAlchemy URL.  Defaults to ``DATABASE_URL`` or a
                      SQLite file under ``data/``.
        echo: Log every SQL statement.
    """
    global _engine
    if _engine is not None:
        return _engine

    database_url = database_url or os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
    is_sqlite = database_url.startswith("sqlite")

    if database_url.startswith("sqlite:///") and ":memory:" not in database_url:
        Path(database_url.replace("sqlite:///", "")).parent.mkdir(parents=True, exist_ok=True)

    kwargs: dict[str, Any] = {"echo": echo, "pool_pre_ping": True}
    if is_sqlite:
        kwargs["connect_args"] = {"check_same_thread": False}
    _engine = create_engine(database_url, **kwargs)

    if is_sqlite:
        event.listen(_engine, "connect", _sqlite_pragmas)
    logger.info("Database engine created: %s", database_url)
    return _engine


def _session_factory() -> sessionmaker:
    global _SessionFactory
    if _SessionFactory is None:
        _SessionFactory = sessionmaker(bind=get_engine(), expire_on_commit=False)
    return _SessionFactory


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """Transactional session scope: commit on success, roll back on error."""
    session = _session_factory()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(database_url: str | None = None, echo: bool = False) -> None:
    """Create any missing tables."""
    engine = get_engine(database_url=database_url, echo=echo)
    import heatmappro.models  # noqa: F401  (registers models on Base.metadata)
    Base.metadata.create_all(bind=engine)
    logger.info("Geo-grid tables created / verified.")


def database_status() -> dict[str, Any]:
    """Table names and row counts, for the CLI status command."""
    engine = get_engine()
    tables = sorted(inspect(engine).get_table_names())
    counts = {}
    with engine.connect() as conn:
        for table in tables:
            counts[table] = conn.execute(text(f'SELECT COUNT(*) FROM "{table}"')).scalar_one()
    return {"url": str(engine.url), "tables": counts}


def reset_engine() -> None:
    """Dispose of the cached engine and session factory (tests)."""
    global _engine, _SessionFactory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None
