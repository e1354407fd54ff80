"""
Database Query Helpers Module
Read-only analytical queries that turn raw deployment rows into team and day level metrics.
"""

from dataclasses import asdict, dataclass
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional

import duckdb
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from deploy_metrics.database.connection import DatabaseConnection
from deploy_metrics.database.models import DAILY_TEAM_SUMMARY, SUCCESS_STATUS, TEAM_RANKINGS
from deploy_metrics.errors import QueryError
from deploy_metrics.utils.logger import get_logger

logger = get_logger(__name__)

MAX_WINDOW_DAYS = 3650

# deployments_per_day divides by this constant, not by the number of days observed
FREQUENCY_WINDOW_DAYS = 7


TEAM_METRICS_SQL = f"""
    SELECT
        team,
        COUNT(*) AS total_deployments,
        COUNT(*) FILTER (WHERE status = '{SUCCESS_STATUS}') AS successful_deployments,
        ROUND(100.0 * CAST(COUNT(*) FILTER (WHERE status = '{SUCCESS_STATUS}') AS DOUBLE) / COUNT(*), 2) AS success_rate,
        ROUND(AVG(duration_minutes) FILTER (WHERE status = '{SUCCESS_STATUS}'), 2) AS avg_duration_minutes,
        ROUND(CAST(COUNT(*) AS DOUBLE) / {FREQUENCY_WINDOW_DAYS}, 2) AS deployments_per_day
    FROM deployments
    GROUP BY team
    ORDER BY success_rate DESC, team ASC
"""

DAILY_METRICS_SQL = f"""
    SELECT
        CAST(DATE_TRUNC('day', timestamp) AS DATE) AS date,
        team,
        COUNT(*) AS deployments,
        COUNT(*) FILTER (WHERE status = '{SUCCESS_STATUS}') AS successful,
        ROUND(AVG(duration_minutes), 2) AS avg_duration
    FROM deployments
    WHERE timestamp >= CURRENT_DATE - CAST(:days AS INTEGER)
    {{team_clause}}
    GROUP BY CAST(DATE_TRUNC('day', timestamp) AS DATE), team
    ORDER BY date DESC, team ASC
"""

DAILY_SUMMARY_SQL = f"""
    SELECT date, team, total_deployments, successful_deployments, avg_duration_minutes
    FROM {DAILY_TEAM_SUMMARY}
    WHERE date >= CURRENT_DATE - CAST(:days AS INTEGER)
    {{team_clause}}
    ORDER BY date DESC, team ASC
"""

TEAM_RANKINGS_SQL = f"""
    SELECT team, total_deployments, successful_deployments, success_rate, success_rank, velocity_rank
    FROM {TEAM_RANKINGS}
    ORDER BY success_rank ASC, velocity_rank ASC, team ASC
"""


# ============================================
# RESULT TYPES
# ============================================

@dataclass
class TeamMetrics:
    """Leaderboard row for one team."""

    team: str
    total_deployments: int
    successful_deployments: int
    success_rate: float
    # None when the team has no successful deployment
    avg_duration_minutes: Optional[float]
    deployments_per_day: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DailyMetrics:
    """Deployments of one team on one calendar day."""

    date: str
    team: str
    deployments: int
    successful: int
    avg_duration: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DailySummary:
    """Row of the materialized daily_team_summary table."""

    date: str
    team: str
    total_deployments: int
    successful_deployments: int
    avg_duration_minutes: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TeamRanking:
    """Row of the materialized team_rankings table."""

    team: str
    total_deployments: int
    successful_deployments: int
    success_rate: float
    success_rank: int
    velocity_rank: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def validate_days(days: Any) -> int:
    """
    Check a trailing window length before it reaches SQL.

    Args:
        days: Number of days, already parsed from request input

    Returns:
        The same value as an int

    Raises:
        ValueError: If days is not an integer in [0, MAX_WINDOW_DAYS]
    """
    if isinstance(days, bool) or not isinstance(days, int):
        raise ValueError(f"days must be an integer, got {days!r}")
    if days < 0 or days > MAX_WINDOW_DAYS:
        raise ValueError(f"days must be between 0 and {MAX_WINDOW_DAYS}, got {days}")
    return days


def _optional_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


def _format_day(value: Any) -> str:
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


class MetricsQueries:
    """Read-only metrics queries against the analytical store."""

    def __init__(self, db: DatabaseConnection):
        """Initialize with the shared store handle."""
        self.db = db

    def _fetch(self, sql: str, params: Optional[Mapping[str, Any]] = None) -> List[Mapping[str, Any]]:
        """Run one statement and read every row before returning."""
        try:
            with self.db.connect() as conn:
                return list(conn.execute(text(sql), dict(params or {})).mappings().all())
        except (SQLAlchemyError, duckdb.Error) as e:
            logger.error(f"Metrics query failed: {e}")
            raise QueryError(f"query failed: {e}") from e

    # ========================================
    # Live Metrics (raw facts)
    # ========================================

    def get_team_metrics(self) -> List[TeamMetrics]:
        """
        Get the team leaderboard computed from the deployments table.

        Returns:
            One TeamMetrics per team with at least one deployment,
            ordered by success rate descending
        """
        rows = self._fetch(TEAM_METRICS_SQL)

        return [
            TeamMetrics(
                team=row['team'],
                total_deployments=int(row['total_deployments']),
                successful_deployments=int(row['successful_deployments']),
                success_rate=float(row['success_rate']),
                avg_duration_minutes=_optional_float(row['avg_duration_minutes']),
                deployments_per_day=float(row['deployments_per_day']),
            )
            for row in rows
        ]

    def get_daily_metrics(self, team: Optional[str] = None, days: int = 30) -> List[DailyMetrics]:
        """
        Get per-day deployment counts within a trailing window.

        Args:
            team: Restrict to one team; None or "" means every team
            days: Window length counted back from the current date

        Returns:
            DailyMetrics ordered by date descending, then team ascending

        Raises:
            ValueError: If days is out of range
            QueryError: If the store cannot answer
        """
        days = validate_days(days)
        if days == 0:
            return []

        params: Dict[str, Any] = {'days': days}
        team_clause = ''
        if team:
            team_clause = 'AND team = :team'
            params['team'] = team

        rows = self._fetch(DAILY_METRICS_SQL.format(team_clause=team_clause), params)

        return [
            DailyMetrics(
                date=_format_day(row['date']),
                team=row['team'],
                deployments=int(row['deployments']),
                successful=int(row['successful']),
                avg_duration=_optional_float(row['avg_duration']),
            )
            for row in rows
        ]

    # ========================================
    # Materialized Snapshots
    # ========================================

    def get_daily_summary(self, team: Optional[str] = None, days: int = 30) -> List[DailySummary]:
        """Read the last aggregated daily_team_summary snapshot within a window."""
        days = validate_days(days)
        if days == 0:
            return []

        params: Dict[str, Any] = {'days': days}
        team_clause = ''
        if team:
            team_clause = 'AND team = :team'
            params['team'] = team

        rows = self._fetch(DAILY_SUMMARY_SQL.format(team_clause=team_clause), params)

        return [
            DailySummary(
                date=_format_day(row['date']),
                team=row['team'],
                total_deployments=int(row['total_deployments']),
                successful_deployments=int(row['successful_deployments']),
                avg_duration_minutes=_optional_float(row['avg_duration_minutes']),
            )
            for row in rows
        ]

    def get_team_rankings(self) -> List[TeamRanking]:
        """Read the last aggregated team_rankings snapshot."""
        rows = self._fetch(TEAM_RANKINGS_SQL)

        return [
            TeamRanking(
                team=row['team'],
                total_deployments=int(row['total_deployments']),
                successful_deployments=int(row['successful_deployments']),
                success_rate=float(row['success_rate']),
                success_rank=int(row['success_rank']),
                velocity_rank=int(row['velocity_rank']),
            )
            for row in rows
        ]
