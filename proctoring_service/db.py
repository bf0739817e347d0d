"""
Database setup - SQLAlchemy engine, declarative base and session factory
"""
import logging
from contextlib import contextmanager
from functools import lru_cache
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool

from .config import settings

logger = logging.getLogger(__name__)

Base = declarative_base()


def build_engine(db_url: Optional[str] = None) -> Engine:
    """
    Create an engine for the given URL.

    In-memory SQLite gets a single shared connection so every session
    (and every thread of the test client) sees the same database.
    """
    db_url = db_url or settings.database_url

    if db_url.startswith("sqlite") and ":memory:" in db_url:
        return create_engine(
            db_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool
        )

    return create_engine(
        db_url,
        pool_pre_ping=True,
        pool_recycle=300
    )


@lru_cache()
def get_engine() -> Engine:
    """Process-wide engine for the configured database"""
    engine = build_engine()
    logger.info(f"[DB] Engine created for {engine.url.render_as_string(hide_password=True)}")
    return engine


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(engine: Engine):
    """Create all tables known to the declarative base"""
    # Importing the models registers them on Base.metadata
    from .proctor.storage import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("[DB] Tables ensured")


@contextmanager
def session_scope(factory: sessionmaker) -> Iterator[Session]:
    """Transactional scope: commit on success, rollback on error"""
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
