"""
Unit Tests for the Aggregation Engine
Tests derived table rebuilds, ranking, idempotence and failure handling.
"""

import unittest

from deploy_metrics.aggregation import AggregationEngine
from deploy_metrics.database.queries import MetricsQueries
from deploy_metrics.errors import AggregationError
from tests.helpers import StoreTestCase, days_ago, deployment, execute, fetch_all, insert_deployments


def _snapshot(db):
    summary = fetch_all(db, "SELECT * FROM daily_team_summary ORDER BY date, team")
    rankings = fetch_all(db, "SELECT * FROM team_rankings ORDER BY team")
    return [tuple(r) for r in summary], [tuple(r) for r in rankings]


class TestAggregationEngine(StoreTestCase):
    """Test materialized rollups."""

    def setUp(self):
        super().setUp()
        self.engine = AggregationEngine(self.db)
        insert_deployments(self.db, [
            deployment('a1', 'alpha', 10, 'success', timestamp=days_ago(1, hour=9)),
            deployment('a2', 'alpha', 20, 'success', timestamp=days_ago(1, hour=15)),
            deployment('b1', 'beta', 5, 'success', timestamp=days_ago(2)),
            deployment('c1', 'gamma', 8, 'success', timestamp=days_ago(2)),
            deployment('c2', 'gamma', 13, 'failed', timestamp=days_ago(3)),
        ])

    def test_builds_daily_team_summary(self):
        run = self.engine.run()

        self.assertEqual(run.status, 'completed')
        self.assertTrue(run.succeeded)

        summary = MetricsQueries(self.db).get_daily_summary(days=30)
        alpha = [s for s in summary if s.team == 'alpha']
        self.assertEqual(len(alpha), 1)
        self.assertEqual(alpha[0].date, days_ago(1).date().isoformat())
        self.assertEqual(alpha[0].total_deployments, 2)
        self.assertEqual(alpha[0].successful_deployments, 2)
        self.assertAlmostEqual(alpha[0].avg_duration_minutes, 15.0)
        self.assertEqual(len(summary), 4)

    def test_rankings_are_dense(self):
        self.engine.run()

        rankings = {r.team: r for r in MetricsQueries(self.db).get_team_rankings()}

        # alpha and beta tie on 100%, gamma follows with the next rank
        self.assertEqual(rankings['alpha'].success_rank, 1)
        self.assertEqual(rankings['beta'].success_rank, 1)
        self.assertEqual(rankings['gamma'].success_rank, 2)
        self.assertAlmostEqual(rankings['gamma'].success_rate, 50.0)

        # alpha and gamma tie on two deployments
        self.assertEqual(rankings['alpha'].velocity_rank, 1)
        self.assertEqual(rankings['gamma'].velocity_rank, 1)
        self.assertEqual(rankings['beta'].velocity_rank, 2)

    def test_repeated_runs_are_identical(self):
        self.engine.run()
        first = _snapshot(self.db)

        self.engine.run()
        second = _snapshot(self.db)

        self.assertEqual(first, second)

    def test_run_reflects_new_raw_data(self):
        self.engine.run()
        insert_deployments(self.db, [deployment('d1', 'delta', 4, timestamp=days_ago(1))])

        self.engine.run()

        teams = {r.team for r in MetricsQueries(self.db).get_team_rankings()}
        self.assertIn('delta', teams)

    def test_failure_keeps_previous_snapshot(self):
        self.engine.run()
        before = _snapshot(self.db)

        execute(self.db, "DROP TABLE deployments")
        run = self.engine.run()

        self.assertEqual(run.status, 'failed')
        self.assertIsNotNone(run.error_message)
        self.assertIs(self.engine.last_run, run)
        self.assertEqual(_snapshot(self.db), before)

    def test_bad_typed_row_fails_and_keeps_previous_snapshot(self):
        self.engine.run()
        before = _snapshot(self.db)

        execute(self.db, "ALTER TABLE deployments ALTER duration_minutes TYPE VARCHAR")
        execute(
            self.db,
            "INSERT INTO deployments VALUES "
            "('x1', 'alpha', 'api', CURRENT_TIMESTAMP, 'slow', 'success', 'production', 'sha-x1')"
        )
        run = self.engine.run()

        self.assertEqual(run.status, 'failed')
        self.assertEqual(_snapshot(self.db), before)

    def test_run_or_raise(self):
        self.assertEqual(self.engine.run_or_raise().status, 'completed')

        execute(self.db, "DROP TABLE deployments")
        with self.assertRaises(AggregationError):
            self.engine.run_or_raise()

    def test_busy_engine_skips(self):
        self.engine._lock.acquire()
        try:
            self.assertTrue(self.engine.is_running)
            run = self.engine.run()
        finally:
            self.engine._lock.release()

        self.assertEqual(run.status, 'skipped')
        self.assertIsNone(self.engine.last_run)
        self.assertFalse(self.engine.is_running)

    def test_run_record_serializes(self):
        data = self.engine.run().to_dict()

        self.assertEqual(data['status'], 'completed')
        self.assertIsNone(data['error'])
        self.assertIsNotNone(data['completed_at'])


class TestAggregationOnEmptyStore(StoreTestCase):

    def test_empty_deployments_build_empty_tables(self):
        run = AggregationEngine(self.db).run()

        self.assertEqual(run.status, 'completed')
        self.assertEqual(MetricsQueries(self.db).get_team_rankings(), [])


if __name__ == '__main__':
    unittest.main()
