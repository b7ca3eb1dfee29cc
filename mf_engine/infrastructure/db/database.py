"""
Database Configuration
SQLAlchemy setup for the ledger store
"""

import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create a sync engine

    In-memory SQLite shares one connection so every session sees the same
    database.
    """
    if database_url.startswith("sqlite") and ":memory:" in database_url:
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
        )
    return create_engine(database_url, echo=echo, pool_pre_ping=True)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        autoflush=False,
        expire_on_commit=False,
    )


def init_db(engine: Engine) -> None:
    """Initialize database (create tables)"""
    # Import models so they're registered on Base.metadata
    from mf_engine.infrastructure.db import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info(f"🗄️ Ledger tables ready on {engine.url.render_as_string(hide_password=True)}")
