"""
Database configuration and transaction management for the flight ledger.

This module provides RDBMS-agnostic database configuration with support for:
- SQLite (default, used by the test suite)
- MySQL/MariaDB
- PostgreSQL

Every ledger operation runs inside DatabaseConfig.transaction(): one session,
one transaction, a bounded timeout, commit on success, rollback on any error,
and storage errors translated to the ledger error taxonomy.
"""

import os
import logging
from typing import Optional, Dict, Any
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool, QueuePool
from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    OperationalError,
    SQLAlchemyError,
    TimeoutError as PoolTimeoutError,
)
from contextlib import contextmanager
from pathlib import Path

from .models import create_all_tables, drop_all_tables
from ..utils.exceptions import Conflict, LedgerError, StorageFailure

logger = logging.getLogger(__name__)


class DatabaseConfig:
    """
    Database configuration manager supporting multiple RDBMS backends.

    Supports SQLite (default), MySQL, and PostgreSQL. On SQLite every
    transaction starts with BEGIN IMMEDIATE so concurrent writers are
    serialized by the database lock; server databases rely on row locks
    taken by the engines with SELECT ... FOR UPDATE.
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        echo: bool = False,
        transaction_timeout: int = 30,
    ):
        """
        Initialize database configuration.

        Args:
            database_url: Optional database URL override
            echo: Enable SQL query logging for debugging
            transaction_timeout: Seconds a transaction may wait on locks
        """
        self.database_url = database_url or self._build_database_url()
        self.echo = echo
        self.transaction_timeout = transaction_timeout
        self.engine: Optional[Engine] = None
        self.SessionLocal: Optional[sessionmaker] = None
        self._is_initialized = False

        self.db_type = self._detect_database_type()
        self.engine_kwargs = self._get_engine_kwargs()

        logger.info(f"Database configuration initialized for {self.db_type}")

    def _build_database_url(self) -> str:
        """
        Build database URL from environment variables.

        Environment variables:
        - DATABASE_URL: Complete database URL (takes precedence)
        - DB_TYPE: Database type (sqlite, mysql, postgresql)
        - DB_HOST: Database host (default: localhost)
        - DB_PORT: Database port (default: varies by type)
        - DB_NAME: Database name (default: flightledger)
        - DB_USER: Database username
        - DB_PASSWORD: Database password

        Returns:
            Complete database URL string
        """
        database_url = os.getenv('DATABASE_URL')
        if database_url:
            return database_url

        db_type = os.getenv('DB_TYPE', 'sqlite').lower()

        if db_type == 'sqlite':
            db_name = os.getenv('DB_NAME', 'flightledger.db')
            db_path = Path(__file__).parent.parent / db_name
            return f"sqlite:///{db_path}"

        elif db_type in ['mysql', 'mariadb']:
            host = os.getenv('DB_HOST', 'localhost')
            port = os.getenv('DB_PORT', '3306')
            database = os.getenv('DB_NAME', 'flightledger')
            username = os.getenv('DB_USER', 'root')
            password = os.getenv('DB_PASSWORD', '')

            return f"mysql+pymysql://{username}:{password}@{host}:{port}/{database}?charset=utf8mb4"

        elif db_type == 'postgresql':
            host = os.getenv('DB_HOST', 'localhost')
            port = os.getenv('DB_PORT', '5432')
            database = os.getenv('DB_NAME', 'flightledger')
            username = os.getenv('DB_USER', 'postgres')
            password = os.getenv('DB_PASSWORD', '')

            return f"postgresql://{username}:{password}@{host}:{port}/{database}"

        else:
            raise ValueError(f"Unsupported database type: {db_type}")

    def _detect_database_type(self) -> str:
        """Detect database type from URL."""
        if self.database_url.startswith('sqlite'):
            return 'sqlite'
        elif self.database_url.startswith('mysql'):
            return 'mysql'
        elif self.database_url.startswith('postgresql'):
            return 'postgresql'
        else:
            return 'unknown'

    @property
    def is_memory_database(self) -> bool:
        """True for SQLite databases that live only in this process."""
        return self.db_type == 'sqlite' and (
            ':memory:' in self.database_url or self.database_url.rstrip('/') == 'sqlite:'
        )

    def _get_engine_kwargs(self) -> Dict[str, Any]:
        """
        Get database-specific engine configuration.

        Returns:
            Dictionary of engine configuration parameters
        """
        kwargs = {
            'echo': self.echo,
            'future': True,
        }

        if self.db_type == 'sqlite':
            kwargs.update({
                'connect_args': {
                    'check_same_thread': False,
                    # busy timeout doubles as the transaction lock timeout
                    'timeout': self.transaction_timeout,
                },
                'pool_pre_ping': True,
            })
            # An in-memory database exists only on its one connection
            if self.is_memory_database:
                kwargs['poolclass'] = StaticPool

        elif self.db_type in ['mysql', 'postgresql']:
            pool_size = int(os.getenv('DB_POOL_SIZE', '10'))
            max_overflow = int(os.getenv('DB_MAX_OVERFLOW', '20'))
            pool_timeout = int(os.getenv('DB_POOL_TIMEOUT', '30'))
            pool_recycle = int(os.getenv('DB_POOL_RECYCLE', '3600'))

            kwargs.update({
                'poolclass': QueuePool,
                'pool_size': pool_size,
                'max_overflow': max_overflow,
                'pool_timeout': pool_timeout,
                'pool_recycle': pool_recycle,
                'pool_pre_ping': True,
            })

            if self.db_type == 'mysql':
                kwargs['connect_args'] = {
                    'charset': 'utf8mb4',
                    'connect_timeout': 30,
                }

        return kwargs

    def initialize(self) -> None:
        """
        Initialize database engine and session factory.

        Raises:
            SQLAlchemyError: If database connection fails
        """
        if self._is_initialized:
            return

        try:
            self.engine = create_engine(self.database_url, **self.engine_kwargs)

            # Listeners must be in place before the first connection is opened
            self._setup_event_listeners()

            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))

            self.SessionLocal = sessionmaker(
                autocommit=False,
                autoflush=False,
                bind=self.engine,
                expire_on_commit=False
            )

            self._is_initialized = True
            logger.info(f"Database engine initialized successfully ({self.db_type})")

        except Exception as e:
            logger.error(f"Failed to initialize database: {e}")
            raise SQLAlchemyError(f"Database initialization failed: {e}")

    def _setup_event_listeners(self) -> None:
        """Set up SQLAlchemy event listeners for connection management."""
        if self.db_type != 'sqlite':
            return

        @event.listens_for(self.engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            """Configure SQLite-specific settings."""
            # Hand transaction control to the "begin" hook below
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            if not self.is_memory_database:
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

        @event.listens_for(self.engine, "begin")
        def begin_immediate(conn):
            """Take the write lock up front so concurrent writers queue."""
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    def create_tables(self) -> None:
        """
        Create all database tables if they don't exist.

        Raises:
            SQLAlchemyError: If table creation fails
        """
        if not self._is_initialized:
            self.initialize()

        try:
            create_all_tables(self.engine)
            logger.info("Database tables created successfully")
        except Exception as e:
            logger.error(f"Failed to create tables: {e}")
            raise SQLAlchemyError(f"Table creation failed: {e}")

    def drop_tables(self) -> None:
        """Drop all ledger tables."""
        if not self._is_initialized:
            self.initialize()
        drop_all_tables(self.engine)
        logger.info("Database tables dropped")

    def get_session(self) -> Session:
        """
        Get a new database session.

        Returns:
            SQLAlchemy session instance

        Raises:
            SQLAlchemyError: If session creation fails
        """
        if not self._is_initialized:
            self.initialize()

        try:
            return self.SessionLocal()
        except Exception as e:
            logger.error(f"Failed to create session: {e}")
            raise SQLAlchemyError(f"Session creation failed: {e}")

    @contextmanager
    def transaction(self):
        """
        Run one ledger operation atomically.

        Usage:
            with db_config.transaction() as session:
                cancel_booking(session, caller, "TKT-1")

        Ledger errors raised inside the block roll back and propagate
        unchanged. A lost uniqueness race becomes Conflict; lock timeouts,
        deadlocks and lost connections become a retryable StorageFailure.

        Yields:
            SQLAlchemy session bound to a single transaction
        """
        session = self.get_session()
        try:
            self._apply_timeout(session)
            yield session
            session.commit()
        except LedgerError:
            session.rollback()
            raise
        except IntegrityError as e:
            session.rollback()
            logger.warning(f"Integrity conflict, transaction rolled back: {e.orig}")
            raise Conflict(f"Conflicting write: {e.orig}") from e
        except (OperationalError, PoolTimeoutError, DBAPIError) as e:
            session.rollback()
            logger.error(f"Storage failure, transaction rolled back: {e}")
            raise StorageFailure(f"Transaction aborted by the database: {e}") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _apply_timeout(self, session: Session) -> None:
        """Bound lock waits for the transaction the session just opened."""
        if self.db_type == 'postgresql':
            ms = int(self.transaction_timeout * 1000)
            session.execute(text(f"SET LOCAL statement_timeout = {ms}"))
            session.execute(text(f"SET LOCAL lock_timeout = {ms}"))
        elif self.db_type == 'mysql':
            session.execute(
                text(f"SET SESSION innodb_lock_wait_timeout = {int(self.transaction_timeout)}")
            )
        # SQLite: the connection busy timeout set in connect_args applies

    def test_connection(self) -> bool:
        """
        Test database connectivity.

        Returns:
            True if connection successful, False otherwise
        """
        try:
            if not self._is_initialized:
                self.initialize()

            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Database connection test failed: {e}")
            return False

    def get_connection_info(self) -> Dict[str, Any]:
        """
        Get database connection information for monitoring.

        Returns:
            Dictionary with connection details
        """
        info = {
            'database_type': self.db_type,
            'database_url': self.database_url.split('@')[-1] if '@' in self.database_url else self.database_url,
            'is_initialized': self._is_initialized,
            'echo_enabled': self.echo,
            'transaction_timeout': self.transaction_timeout,
        }

        if self.engine and hasattr(self.engine.pool, 'size'):
            info.update({
                'pool_size': self.engine.pool.size(),
                'checked_in': self.engine.pool.checkedin(),
                'checked_out': self.engine.pool.checkedout(),
            })

        return info

    def close(self) -> None:
        """Close database connections and clean up resources."""
        if self.engine:
            self.engine.dispose()
            logger.info("Database connections closed")


# Global database configuration instance
_db_config: Optional[DatabaseConfig] = None


def get_database_config(
    database_url: Optional[str] = None,
    echo: bool = False,
    transaction_timeout: int = 30,
) -> DatabaseConfig:
    """
    Get or create the global database configuration instance.

    Args:
        database_url: Optional database URL override
        echo: Enable SQL query logging
        transaction_timeout: Seconds a transaction may wait on locks

    Returns:
        DatabaseConfig instance
    """
    global _db_config

    if _db_config is None:
        _db_config = DatabaseConfig(
            database_url=database_url,
            echo=echo,
            transaction_timeout=transaction_timeout,
        )

    return _db_config


def initialize_database(
    database_url: Optional[str] = None,
    echo: bool = False,
    create_tables: bool = True,
    transaction_timeout: int = 30,
) -> DatabaseConfig:
    """
    Initialize the database, creating the ledger tables.

    Args:
        database_url: Optional database URL override
        echo: Enable SQL query logging
        create_tables: Whether to create tables automatically
        transaction_timeout: Seconds a transaction may wait on locks

    Returns:
        Initialized DatabaseConfig instance
    """
    db_config = get_database_config(
        database_url=database_url,
        echo=echo,
        transaction_timeout=transaction_timeout,
    )
    db_config.initialize()

    if create_tables:
        db_config.create_tables()

    return db_config


def reset_database_config() -> None:
    """Dispose of and forget the global configuration."""
    global _db_config
    if _db_config is not None:
        _db_config.close()
    _db_config = None


__all__ = [
    'DatabaseConfig',
    'get_database_config',
    'initialize_database',
    'reset_database_config',
]
