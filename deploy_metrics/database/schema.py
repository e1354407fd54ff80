"""
Schema Manager
Creates the raw fact tables on startup. Safe to run on every process start.
"""

from typing import List

import duckdb
from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from deploy_metrics.database.connection import DatabaseConnection
from deploy_metrics.database.models import Base
from deploy_metrics.errors import SchemaError
from deploy_metrics.utils.logger import get_logger

logger = get_logger(__name__)


def initialize_schema(db: DatabaseConnection) -> None:
    """
    Ensure the deployments, incidents and pull_requests tables exist.

    Existing tables and their rows are left untouched.

    Raises:
        SchemaError: If the store cannot be opened or a table cannot be created
    """
    try:
        with db.begin() as conn:
            Base.metadata.create_all(conn, checkfirst=True)
    except (SQLAlchemyError, duckdb.Error, OSError) as e:
        logger.error(f"Failed to create schema: {e}")
        raise SchemaError(f"failed to create schema: {e}") from e

    logger.info("Schema initialized")


def list_tables(db: DatabaseConnection) -> List[str]:
    """Return the names of all tables present in the store."""
    with db.connect() as conn:
        return sorted(inspect(conn).get_table_names())
