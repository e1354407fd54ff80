"""
Database Connection Module
Handles the DuckDB analytical store through a SQLAlchemy engine (duckdb-engine dialect).
"""

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional, Union

from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from deploy_metrics.config_manager import ConfigManager
from deploy_metrics.utils.logger import get_logger

logger = get_logger(__name__)

STORE_KIND = 'duckdb'


class DatabaseConnection:
    """
    Owns the engine for one on-disk DuckDB file.

    A single instance is created by the process owner and handed to the
    scheduler jobs and the request handlers; it is closed with ``dispose()``.
    """

    def __init__(
        self,
        path: Union[str, Path],
        pool_size: int = 5,
        max_overflow: int = 10,
        threads: Optional[int] = None,
    ):
        self.path = Path(path)
        self._pool_size = pool_size
        self._max_overflow = max_overflow
        self._threads = threads
        self._engine: Optional[Engine] = None

    @classmethod
    def from_config(cls, config: ConfigManager) -> 'DatabaseConnection':
        """Build a connection from the ``database`` config section."""
        db_config = config.get_database_config()
        return cls(
            path=db_config.get('path', './metrics.db'),
            pool_size=int(db_config.get('pool_size', 5)),
            max_overflow=int(db_config.get('max_overflow', 10)),
            threads=db_config.get('threads'),
        )

    def _initialize_engine(self) -> Engine:
        """Create SQLAlchemy engine for the store file."""
        if str(self.path) != ':memory:':
            self.path.parent.mkdir(parents=True, exist_ok=True)

        logger.info(f"Opening {STORE_KIND} store at {self.path}")

        duckdb_config = {}
        if self._threads:
            duckdb_config['threads'] = int(self._threads)

        engine = create_engine(
            URL.create('duckdb', database=str(self.path)),
            pool_size=self._pool_size,
            max_overflow=self._max_overflow,
            pool_pre_ping=True,
            connect_args={'config': duckdb_config},
            echo=os.getenv('SQL_ECHO', 'false').lower() == 'true'
        )

        logger.info("Database engine initialized successfully")
        return engine

    @property
    def engine(self) -> Engine:
        """Get the SQLAlchemy engine, creating it on first use."""
        if self._engine is None:
            self._engine = self._initialize_engine()
        return self._engine

    @property
    def kind(self) -> str:
        return STORE_KIND

    @contextmanager
    def connect(self) -> Generator[Connection, None, None]:
        """Read-only scope: a pooled connection without an explicit transaction."""
        with self.engine.connect() as conn:
            yield conn

    @contextmanager
    def begin(self) -> Generator[Connection, None, None]:
        """
        Provide a transactional scope around a series of statements.

        Usage:
            with db.begin() as conn:
                conn.execute(...)
        """
        with self.engine.begin() as conn:
            yield conn

    def check_connection(self) -> bool:
        """
        Check if the store is reachable.

        Returns:
            bool: True if connection is healthy, False otherwise.
        """
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.debug("Database connection health check passed")
            return True
        except SQLAlchemyError as e:
            logger.error(f"Database connection health check failed: {e}")
            return False

    def dispose(self) -> None:
        """Close every pooled connection and release the store file."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            logger.info("Database connection pool disposed")
