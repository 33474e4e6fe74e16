"""Database engine and session factory for the reconciliation store."""

import logging

from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from ..config import DatabaseConfig

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def create_db_engine(config: DatabaseConfig) -> Engine:
    """
    Create the SQLAlchemy engine for the configured database URL.

    Args:
        config: Database section of the application configuration

    Returns:
        Engine instance
    """
    connect_args = {}
    if config.url.startswith("sqlite"):
        # Sessions may be handed between threads by the per-record locking
        connect_args["check_same_thread"] = False

    return create_engine(
        config.url,
        echo=config.echo,
        pool_pre_ping=True,
        connect_args=connect_args,
    )


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Session factory used by services; objects stay readable after commit."""
    return sessionmaker(
        engine,
        class_=Session,
        expire_on_commit=False,
        autoflush=False,
    )


def init_db(engine: Engine) -> None:
    """Create any missing tables and log what the database holds."""
    # Registers the mapped classes on Base.metadata
    from . import models  # noqa: F401

    Base.metadata.create_all(engine)
    tables = inspect(engine).get_table_names()
    logger.info(f"Database ready, tables: {tables}")
