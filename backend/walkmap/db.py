import logging
import os
from contextlib import contextmanager

from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker, declarative_base
from walkmap.core.config import settings

logger = logging.getLogger(__name__)

# SQLAlchemy Base class for models to inherit
Base = declarative_base()


def _enable_sqlite_wal(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA journal_mode=WAL")
    finally:
        cursor.close()


def _is_sqlite_file(url) -> bool:
    return url.get_backend_name() == "sqlite" and bool(url.database) and url.database != ":memory:"


def _store_exists(url) -> bool:
    from walkmap.models.track import Track

    if _is_sqlite_file(url) and not os.path.exists(url.database):
        return False
    engine = create_engine(url)
    try:
        return inspect(engine).has_table(Track.__tablename__)
    finally:
        engine.dispose()


def create_db_engine(database_url: str | None = None, read_only: bool = False):
    """Create an engine and make sure the schema exists.

    SQLite files get their parent directory created and WAL journaling so
    readers never see a half-written upsert.

    With ``read_only`` nothing is created on disk: an existing store is
    opened as is, and a store that was never initialised is replaced by an
    empty in-memory one.
    """
    url = make_url(database_url or settings.database_url)
    if read_only:
        if _store_exists(url):
            return create_engine(url)
        logger.warning(
            "Store %s not initialised; reporting it as empty",
            url.render_as_string(hide_password=True),
        )
        url = make_url("sqlite://")

    if url.get_backend_name() == "sqlite":
        if _is_sqlite_file(url):
            parent = os.path.dirname(url.database)
            if parent:
                os.makedirs(parent, exist_ok=True)
        engine = create_engine(url)
        event.listen(engine, "connect", _enable_sqlite_wal)
    else:
        engine = create_engine(
            url,
            pool_pre_ping=True,   # helps avoid stale connections
        )

    # Import registers the table on Base.metadata
    from walkmap.models.track import Track  # noqa: F401

    Base.metadata.create_all(bind=engine)
    return engine


@contextmanager
def open_store(database_url: str | None = None, read_only: bool = False):
    """Acquire the store handle for one process run; always released."""
    from walkmap.store import TrackStore

    engine = create_db_engine(database_url, read_only=read_only)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = SessionLocal()
    logger.debug("Opened store %s", engine.url.render_as_string(hide_password=True))
    try:
        yield TrackStore(db)
    finally:
        db.close()
        engine.dispose()
