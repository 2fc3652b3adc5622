"""Database engine construction."""

import os

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine

from ..logging import get_logger

logger = get_logger(__name__)

DEFAULT_DATABASE_URL = "sqlite:////data/documentinator.db"


def create_database_engine(database_url: str = None, echo: bool = False) -> Engine:
    """Create a SQLAlchemy engine for the relational store.

    Args:
        database_url: SQLAlchemy URL. If None, reads from DATABASE_URL env.
        echo: Log emitted SQL

    Returns:
        SQLAlchemy Engine. SQLite connections have foreign keys enabled so
        chunk rows cascade with their document.
    """
    url = database_url or os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)

    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            echo=echo,
            connect_args={'check_same_thread': False},
        )

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    else:
        engine = create_engine(url, echo=echo, pool_pre_ping=True)

    logger.info(f"Database engine created ({engine.dialect.name})")
    return engine
