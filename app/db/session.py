"""Database handle and session dependency.

The engine (connection pool) is built explicitly by ``Database`` and owned by
whoever created it: the FastAPI lifespan for the API, ``main()`` for CLI
scripts, fixtures for tests. Request handlers receive sessions via ``get_db``.
"""
import logging
from typing import Any, Generator, Optional

from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from app.db.db_url import resolve_db_url
from app.models.base import Base

logger = logging.getLogger(__name__)


class Database:
    """Engine + session factory with an explicit open/close lifecycle."""

    def __init__(self, url: Optional[str] = None, engine: Optional[Engine] = None, **engine_kwargs: Any):
        if engine is None:
            if not url:
                raise ValueError("Database needs a url or an engine")
            engine = create_engine(
                resolve_db_url(url),
                pool_pre_ping=True,  # Verify connections before using
                echo=False,
                **engine_kwargs,
            )
        self.engine = engine
        self.session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def session(self) -> Session:
        return self.session_factory()

    def check_connection(self) -> bool:
        """Check if database connection is available."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning("Database connection check failed: %s", e)
            return False

    def create_all(self) -> None:
        """Create tables (development/tests; migrations handle this in production)."""
        Base.metadata.create_all(bind=self.engine)

    def close(self) -> None:
        self.engine.dispose()


def get_database(request: Request) -> Database:
    """Dependency: the Database opened by the application lifespan."""
    return request.app.state.database


def get_db(request: Request) -> Generator[Session, None, None]:
    """Dependency for FastAPI routes to get database session."""
    db = get_database(request).session()
    try:
        yield db
    finally:
        db.close()
