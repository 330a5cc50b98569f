"""
Database connection and session management.
Uses SQLAlchemy; Postgres in production, SQLite for local runs and tests.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
import logging

from shopcore.core.config import get_config

logger = logging.getLogger("shop.database")

DATABASE_URL = get_config().database_url

# Base class for all our database models (must be defined before engine)
Base = declarative_base()


def make_engine(url: str):
    """Create an engine; SQLite connections may be shared across threads."""
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True)


engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
logger.info("Database engine created for %s", engine.url.render_as_string(hide_password=True))


def get_db():
    """
    Dependency function that provides a database session.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory() -> sessionmaker:
    """
    Dependency for work that outlives the request session (post-commit
    side effects run after the response is sent).
    """
    return SessionLocal
