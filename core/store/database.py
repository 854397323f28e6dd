"""
Record Store Connection - Engine, sessions and transaction scope.

Every logical operation runs inside one ``session_scope()``: the whole unit
commits together or rolls back together. Driver-level failures are
translated into the PropertyFlow error taxonomy at this boundary.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from core.exceptions import Conflict, DependencyUnavailable
from core.store.models import Base

logger = logging.getLogger(__name__)


# =============================================================================
# Database
# =============================================================================


class Database:
    """
    Owns the SQLAlchemy engine and session factory.

    SQLite URLs get ``check_same_thread=False`` so request threads can share
    the engine; in-memory SQLite uses a single static connection so every
    session sees the same database.
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.engine: Engine = self._create_engine(url, echo)
        self._session_factory = sessionmaker(
            bind=self.engine,
            expire_on_commit=False,
            future=True,
        )

    @staticmethod
    def _create_engine(url: str, echo: bool) -> Engine:
        if not url.startswith("sqlite"):
            return create_engine(url, echo=echo, pool_pre_ping=True, future=True)

        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        else:
            # sqlite:///relative/or/absolute/path.db
            db_path = url.split("sqlite:///", 1)[-1]
            if db_path:
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        return create_engine(url, echo=echo, future=True, **kwargs)

    def create_all(self) -> None:
        """Create all tables that do not exist yet."""
        Base.metadata.create_all(self.engine)

    def drop_all(self) -> None:
        """Drop all tables (tests only)."""
        Base.metadata.drop_all(self.engine)

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """
        Provide a transactional scope around a series of operations.

        Raises:
            DependencyUnavailable: If the store cannot be reached or is locked
            Conflict: If a uniqueness constraint is violated
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except OperationalError as e:
            session.rollback()
            logger.error("Record store operation failed: %s", e.orig)
            raise DependencyUnavailable("Record store is unavailable, retry later") from e
        except IntegrityError as e:
            session.rollback()
            logger.warning("Integrity violation: %s", e.orig)
            raise Conflict("Record conflicts with an existing record") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()


# =============================================================================
# Singleton Instance
# =============================================================================

_database_instance: Optional[Database] = None


def get_database(url: Optional[str] = None) -> Database:
    """
    Get the database singleton.

    Args:
        url: Optional database URL (only used on first call)

    Returns:
        Database instance
    """
    global _database_instance
    if _database_instance is None:
        if url is None:
            from utils.config import Config

            url = Config.load().database_url
        _database_instance = Database(url)
        _database_instance.create_all()
    return _database_instance


def reset_database() -> None:
    """Reset the singleton instance (for testing)."""
    global _database_instance
    if _database_instance is not None:
        _database_instance.dispose()
    _database_instance = None
