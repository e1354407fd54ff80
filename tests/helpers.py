"""
Shared test fixtures: a throwaway DuckDB store and deployment row builders.
"""

import shutil
import tempfile
import unittest
from datetime import date, datetime, time, timedelta
from pathlib import Path

from sqlalchemy import text

from deploy_metrics.database.connection import DatabaseConnection
from deploy_metrics.database.models import Deployment
from deploy_metrics.database.schema import initialize_schema

EXAMPLE_DATA_DIR = Path(__file__).parent.parent / 'example-data'


def days_ago(days: int, hour: int = 12) -> datetime:
    """Local wall-clock timestamp on the calendar day ``days`` before today."""
    return datetime.combine(date.today() - timedelta(days=days), time(hour, 0))


def deployment(deployment_id, team, duration, status='success', timestamp=None, service='api'):
    return {
        'deployment_id': deployment_id,
        'team': team,
        'service': service,
        'timestamp': timestamp or days_ago(0),
        'duration_minutes': duration,
        'status': status,
        'environment': 'production',
        'commit_hash': f"sha-{deployment_id}",
    }


def insert_deployments(db: DatabaseConnection, rows) -> None:
    with db.begin() as conn:
        conn.execute(Deployment.__table__.insert(), list(rows))


def execute(db: DatabaseConnection, sql: str) -> None:
    with db.begin() as conn:
        conn.execute(text(sql))


def fetch_all(db: DatabaseConnection, sql: str, params=None) -> list:
    with db.connect() as conn:
        return conn.execute(text(sql), params or {}).fetchall()


class StoreTestCase(unittest.TestCase):
    """Test case with a fresh, schema-initialized store file per test."""

    def setUp(self):
        self.tmp_dir = Path(tempfile.mkdtemp(prefix='deploy_metrics_'))
        self.db = DatabaseConnection(self.tmp_dir / 'metrics.db', pool_size=2, max_overflow=2)
        initialize_schema(self.db)

    def tearDown(self):
        self.db.dispose()
        shutil.rmtree(self.tmp_dir, ignore_errors=True)
