"""
Database Session Management

Engine creation, session lifecycle and table initialization.
PostgreSQL in production, SQLite for local development and tests.
"""

import os
import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from .models import Base

logger = logging.getLogger(__name__)


def _normalize(url: str) -> str:
    # Hosted Postgres URLs use postgres:// but SQLAlchemy needs postgresql://
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


def get_database_url() -> str:
    """
    Resolve the alert database URL.

    Priority:
    1. DATABASE_URL
    2. POSTGRES_URL
    3. SQLite fallback for local development
    """
    for name in ("DATABASE_URL", "POSTGRES_URL"):
        url = os.getenv(name)
        if url:
            logger.info(f"Using PostgreSQL database from {name}")
            return _normalize(url)

    sqlite_path = os.getenv("SQLITE_PATH", "alignzo_dev.db")
    logger.warning(f"DATABASE_URL not set, security alerts go to SQLite at {sqlite_path}")
    return f"sqlite:///{sqlite_path}"


def create_db_engine(url: Optional[str] = None) -> Engine:
    """
    Engine for the alert database.

    PostgreSQL: Connection pooling with pre-ping
    SQLite: Single shared connection for in-memory databases
    """
    url = url or get_database_url()
    echo = os.getenv("SQL_DEBUG", "false").lower() == "true"

    if url.startswith("postgresql"):
        engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=5,
            max_overflow=10,
            pool_timeout=30,
            pool_recycle=1800,
            pool_pre_ping=True,
            echo=echo,
        )
        logger.info("Alert database: pooled PostgreSQL engine")
        return engine

    kwargs = {"connect_args": {"check_same_thread": False}, "echo": echo}
    if url in ("sqlite://", "sqlite:///:memory:"):
        # Every connection would otherwise see its own empty database
        kwargs["poolclass"] = StaticPool
    engine = create_engine(url, **kwargs)
    logger.info(f"Alert database: SQLite engine ({url})")
    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


@contextmanager
def session_scope(factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Transactional session: commit on success, rollback on error.

    Usage:
        with session_scope(factory) as db:
            db.add(record)
    """
    db = factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db(engine: Engine, drop_all: bool = False) -> None:
    """
    Create all tables.

    Args:
        engine: Target engine
        drop_all: Drop existing tables first
    """
    if drop_all:
        logger.warning("Dropping security alert tables")
        Base.metadata.drop_all(bind=engine)

    Base.metadata.create_all(bind=engine)
    logger.info("Security alert tables ready")


def check_db_connection(engine: Engine) -> bool:
    """True if a trivial query succeeds."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Alert database unreachable: {e}")
        return False
