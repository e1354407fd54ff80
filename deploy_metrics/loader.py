"""
Bulk Loader Module
Replaces the contents of the raw fact tables from CSV sources in one transaction.
"""

import csv
import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Type, Union

import duckdb
from sqlalchemy import DateTime, Float, Integer
from sqlalchemy.exc import SQLAlchemyError

from deploy_metrics.config_manager import ConfigManager
from deploy_metrics.database.connection import DatabaseConnection
from deploy_metrics.database.models import FACT_MODELS, Base
from deploy_metrics.errors import LoadError
from deploy_metrics.utils.helpers import chunk_list, parse_float, parse_int, parse_timestamp
from deploy_metrics.utils.logger import get_logger

logger = get_logger(__name__)

Row = Dict[str, Any]


@dataclass
class LoadRun:
    """Outcome of one bulk reload."""

    status: str  # 'completed' or 'failed'
    started_at: datetime
    completed_at: Optional[datetime] = None
    records_loaded: Dict[str, int] = field(default_factory=dict)
    error_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status,
            'started_at': self.started_at.isoformat(),
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'records_loaded': dict(self.records_loaded),
            'error': self.error_message,
        }


def _parser_for(column) -> Callable[[str], Any]:
    """Pick the value parser for a table column."""
    if isinstance(column.type, DateTime):
        return parse_timestamp
    if isinstance(column.type, Integer):
        return parse_int
    if isinstance(column.type, Float):
        return parse_float
    return lambda value: value if value != '' else None


def read_source(model: Type[Base], path: Path) -> List[Row]:
    """
    Read and type-check one CSV source for a fact table.

    The header must list the table's columns exactly, in table order.

    Args:
        model: ORM model of the target table
        path: CSV file

    Returns:
        Parsed rows ready for insertion

    Raises:
        LoadError: If the file is missing, unreadable or any row is malformed
    """
    table = model.__table__
    columns = list(table.columns)
    parsers = [_parser_for(c) for c in columns]

    if not path.exists():
        raise LoadError(f"{table.name}: source file {path} not found")

    try:
        return _read_rows(table, columns, parsers, path)
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        raise LoadError(f"{table.name}: cannot read {path}: {e}") from e


def _read_rows(table, columns, parsers, path: Path) -> List[Row]:
    expected = [c.name for c in columns]
    rows: List[Row] = []
    with open(path, 'r', encoding='utf-8', newline='') as f:
        reader = csv.reader(f)
        header = next(reader, None)
        if header is None:
            raise LoadError(f"{table.name}: {path} is empty")

        header = [h.strip() for h in header]
        if header != expected:
            raise LoadError(f"{table.name}: expected columns {expected}, got {header}")

        for line_no, record in enumerate(reader, start=2):
            if not record:
                continue
            if len(record) != len(columns):
                raise LoadError(
                    f"{table.name}: line {line_no} has {len(record)} fields, expected {len(columns)}"
                )

            row: Row = {}
            for column, parse, raw in zip(columns, parsers, record):
                try:
                    value = parse(raw)
                except ValueError as e:
                    raise LoadError(f"{table.name}: line {line_no}, column {column.name}: {e}") from e
                if value is None and not column.nullable:
                    raise LoadError(f"{table.name}: line {line_no}, column {column.name} is required")
                row[column.name] = value
            rows.append(row)

    return rows


class BulkLoader:
    """
    Loads deployments.csv, incidents.csv and pull_requests.csv from a directory.

    Every source is parsed before the store is touched. The replace itself is
    one transaction, so other connections keep reading the previous contents
    until it commits, and a failure leaves the old rows in place.
    """

    def __init__(
        self,
        db: DatabaseConnection,
        source_dir: Union[str, Path],
        batch_size: int = 500,
    ):
        self.db = db
        self.source_dir = Path(source_dir)
        self.batch_size = max(1, int(batch_size))
        self._lock = threading.Lock()
        self.last_run: Optional[LoadRun] = None

    @classmethod
    def from_config(cls, db: DatabaseConnection, config: ConfigManager) -> 'BulkLoader':
        loader_config = config.get_loader_config()
        return cls(
            db,
            source_dir=loader_config.get('source_dir', './example-data'),
            batch_size=loader_config.get('batch_size', 500),
        )

    def source_path(self, model: Type[Base]) -> Path:
        return self.source_dir / f"{model.__tablename__}.csv"

    def load(self) -> LoadRun:
        """
        Replace all raw fact tables with the contents of the source files.

        Returns:
            LoadRun with per-table row counts

        Raises:
            LoadError: If a source is malformed, another load is running, or
                the store rejects the data. Nothing is committed in that case.
        """
        if not self._lock.acquire(blocking=False):
            raise LoadError("a bulk load is already in progress")

        started_at = datetime.utcnow()
        logger.info(f"Loading raw facts from {self.source_dir}")

        try:
            try:
                sources: List[Tuple[Type[Base], List[Row]]] = [
                    (model, read_source(model, self.source_path(model)))
                    for model in FACT_MODELS
                ]
                self._replace(sources)
            except LoadError as e:
                self._record_failure(started_at, e)
                raise
            except (SQLAlchemyError, duckdb.Error) as e:
                self._record_failure(started_at, e)
                raise LoadError(f"bulk load failed: {e}") from e

            run = LoadRun(
                status='completed',
                started_at=started_at,
                completed_at=datetime.utcnow(),
                records_loaded={model.__tablename__: len(rows) for model, rows in sources},
            )
            self.last_run = run
            logger.info(f"Raw facts loaded successfully: {run.records_loaded}")
            return run
        finally:
            self._lock.release()

    def _replace(self, sources: List[Tuple[Type[Base], List[Row]]]) -> None:
        """Drop, recreate and refill every fact table in one transaction."""
        with self.db.begin() as conn:
            for model, rows in sources:
                table = model.__table__
                # Recreating the table avoids re-inserting keys that were deleted in the same transaction
                table.drop(conn, checkfirst=True)
                table.create(conn)
                for batch in chunk_list(rows, self.batch_size):
                    conn.execute(table.insert(), batch)
                logger.debug(f"Staged {len(rows)} rows into {table.name}")

    def _record_failure(self, started_at: datetime, error: Exception) -> None:
        self.last_run = LoadRun(
            status='failed',
            started_at=started_at,
            completed_at=datetime.utcnow(),
            error_message=str(error)[:1000],
        )
        logger.warning(f"Bulk load failed, previous data kept: {error}")
