"""SQLModel database engine and unit-of-work factory."""

import logging
from pathlib import Path

from sqlalchemy.engine import make_url
from sqlmodel import SQLModel, create_engine

from backend.config import settings
from backend.repositories.sql import SqlUnitOfWork

logger = logging.getLogger(__name__)

# SQLite needs check_same_thread=False; PostgreSQL does not
connect_args = {}
if settings.database_url.startswith("sqlite"):
    connect_args["check_same_thread"] = False

engine = create_engine(
    settings.database_url,
    echo=False,
    connect_args=connect_args,
)


def _ensure_sqlite_directory():
    url = make_url(settings.database_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)


def create_db_and_tables():
    """Create all tables. Called on startup."""
    import backend.models  # noqa: F401  (register tables on the metadata)

    _ensure_sqlite_directory()
    SQLModel.metadata.create_all(engine)
    logger.info("Database tables ready")


def unit_of_work() -> SqlUnitOfWork:
    """A fresh unit of work bound to the application engine."""
    return SqlUnitOfWork(engine)
