"""
Database Connection Module
Handles connection pooling, session management and dialect-aware upserts using SQLAlchemy.
"""

import os
from contextlib import contextmanager
from typing import Dict, Generator, List

from sqlalchemy import create_engine, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from ternity_sync.config_manager import ConfigManager, get_database_url
from ternity_sync.utils.logger import get_logger

logger = get_logger(__name__)


class DatabaseConnection:
    """Manages database connections with connection pooling."""

    def __init__(self, url: str = None):
        """
        Initialize the engine.

        Args:
            url: SQLAlchemy URL; defaults to DATABASE_URL from the environment
        """
        self._url = url or get_database_url()
        self._engine: Engine = None
        self._session_factory = None
        self._initialize_engine()

    def _initialize_engine(self) -> None:
        """Create SQLAlchemy engine with connection pooling."""
        echo = os.getenv('SQL_ECHO', 'false').lower() == 'true'

        if self._url.startswith('sqlite'):
            # One shared connection so in-memory databases survive across sessions
            self._engine = create_engine(
                self._url,
                poolclass=StaticPool,
                connect_args={'check_same_thread': False},
                echo=echo
            )
        else:
            db_config = ConfigManager().get_database_config()
            self._engine = create_engine(
                self._url,
                poolclass=QueuePool,
                pool_size=db_config.get('pool_size', 5),
                max_overflow=db_config.get('max_overflow', 10),
                pool_timeout=db_config.get('pool_timeout', 30),
                pool_pre_ping=True,  # Enable connection health checks
                echo=echo
            )

        self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)

        logger.info(f"Database engine initialized ({self._engine.dialect.name})")

    @property
    def engine(self) -> Engine:
        """Get the SQLAlchemy engine."""
        return self._engine

    def get_session(self) -> Session:
        """Create a new database session."""
        return self._session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Provide a transactional scope around a series of operations.

        Usage:
            with db.session_scope() as session:
                session.query(...)
        """
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"Database session error: {e}")
            raise
        finally:
            session.close()

    def create_all(self, drop: bool = False) -> None:
        """Create every table of the sync schema (optionally dropping first)."""
        from ternity_sync.database.models import Base

        if drop:
            Base.metadata.drop_all(self._engine)
            logger.warning("Dropped all tables")
        Base.metadata.create_all(self._engine)
        logger.info("Database schema created")

    def check_connection(self) -> bool:
        """
        Check if database connection is healthy.

        Returns:
            bool: True if connection is healthy, False otherwise.
        """
        try:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.debug("Database connection health check passed")
            return True
        except Exception as e:
            logger.error(f"Database connection health check failed: {e}")
            return False

    def dispose(self) -> None:
        """Dispose of the connection pool."""
        if self._engine:
            self._engine.dispose()
            logger.info("Database connection pool disposed")


_default_db: DatabaseConnection = None


def get_db() -> DatabaseConnection:
    """Get the process-wide database connection, created on first use."""
    global _default_db
    if _default_db is None:
        _default_db = DatabaseConnection()
    return _default_db


def upsert(session: Session, model, values: Dict, index_elements: List[str], update_columns: List[str] = None):
    """
    INSERT ... ON CONFLICT DO UPDATE for PostgreSQL and SQLite.

    Args:
        session: Active session
        model: ORM model class
        values: Column values for the row
        index_elements: Columns of the unique constraint to conflict on
        update_columns: Columns to overwrite on conflict (default: all non-key columns given)

    Returns:
        The statement result
    """
    dialect = session.get_bind().dialect.name
    insert = postgresql.insert if dialect == 'postgresql' else sqlite.insert

    if update_columns is None:
        update_columns = [k for k in values if k not in index_elements]

    stmt = insert(model).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=index_elements,
        set_={col: stmt.excluded[col] for col in update_columns}
    )
    return session.execute(stmt)
