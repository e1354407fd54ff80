"""
Aggregation Engine Module
Rebuilds the materialized rollup tables from the current raw deployment facts.
"""

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

import duckdb
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from deploy_metrics.database.connection import DatabaseConnection
from deploy_metrics.database.models import DAILY_TEAM_SUMMARY, SUCCESS_STATUS, TEAM_RANKINGS
from deploy_metrics.errors import AggregationError
from deploy_metrics.utils.logger import LoggerMixin


# Each statement replaces its table in one step; both run in one transaction.
AGGREGATION_QUERIES = (
    f"""
    CREATE OR REPLACE TABLE {DAILY_TEAM_SUMMARY} AS
    SELECT
        CAST(DATE_TRUNC('day', timestamp) AS DATE) AS date,
        team,
        COUNT(*) AS total_deployments,
        COUNT(*) FILTER (WHERE status = '{SUCCESS_STATUS}') AS successful_deployments,
        ROUND(AVG(duration_minutes), 2) AS avg_duration_minutes
    FROM deployments
    GROUP BY CAST(DATE_TRUNC('day', timestamp) AS DATE), team
    ORDER BY date, team
    """,
    f"""
    CREATE OR REPLACE TABLE {TEAM_RANKINGS} AS
    SELECT
        team,
        COUNT(*) AS total_deployments,
        COUNT(*) FILTER (WHERE status = '{SUCCESS_STATUS}') AS successful_deployments,
        ROUND(100.0 * CAST(COUNT(*) FILTER (WHERE status = '{SUCCESS_STATUS}') AS DOUBLE) / COUNT(*), 2) AS success_rate,
        DENSE_RANK() OVER (
            ORDER BY CAST(COUNT(*) FILTER (WHERE status = '{SUCCESS_STATUS}') AS DOUBLE) / COUNT(*) DESC
        ) AS success_rank,
        DENSE_RANK() OVER (ORDER BY COUNT(*) DESC) AS velocity_rank
    FROM deployments
    GROUP BY team
    ORDER BY success_rank, velocity_rank, team
    """,
)


@dataclass
class AggregationRun:
    """Outcome of one aggregation attempt."""

    status: str  # 'completed', 'failed' or 'skipped'
    started_at: datetime
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == 'completed'

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.completed_at is None:
            return None
        return round((self.completed_at - self.started_at).total_seconds(), 3)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status,
            'started_at': self.started_at.isoformat(),
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'duration_seconds': self.duration_seconds,
            'error': self.error_message,
        }


class AggregationEngine(LoggerMixin):
    """
    Recomputes daily_team_summary and team_rankings.

    Only one run may be active at a time. A call made while another run holds
    the lock returns immediately with a 'skipped' record instead of waiting.
    """

    def __init__(self, db: DatabaseConnection):
        self.db = db
        self._lock = threading.Lock()
        self.last_run: Optional[AggregationRun] = None

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def run(self) -> AggregationRun:
        """
        Run one aggregation pass. Never raises.

        Returns:
            AggregationRun describing the attempt
        """
        started_at = datetime.utcnow()

        if not self._lock.acquire(blocking=False):
            self.logger.warning("Aggregation already in progress, skipping this cycle")
            return AggregationRun(status='skipped', started_at=started_at, completed_at=started_at)

        try:
            self.logger.info("Running metrics aggregation...")
            try:
                self._refresh()
            except (SQLAlchemyError, duckdb.Error) as e:
                run = AggregationRun(
                    status='failed',
                    started_at=started_at,
                    completed_at=datetime.utcnow(),
                    error_message=str(e)[:1000],
                )
                self.logger.error(f"Aggregation failed, keeping previous snapshot: {e}")
            else:
                run = AggregationRun(status='completed', started_at=started_at, completed_at=datetime.utcnow())
                self.logger.info(f"Metrics aggregation completed in {run.duration_seconds}s")

            self.last_run = run
            return run
        finally:
            self._lock.release()

    def run_or_raise(self) -> AggregationRun:
        """Like run(), but raise AggregationError when the pass did not complete."""
        run = self.run()
        if run.status == 'failed':
            raise AggregationError(f"aggregation query failed: {run.error_message}")
        if run.status == 'skipped':
            raise AggregationError("aggregation already in progress")
        return run

    def _refresh(self) -> None:
        """Replace both derived tables inside a single transaction."""
        with self.db.begin() as conn:
            for query in AGGREGATION_QUERIES:
                conn.execute(text(query))
