"""
Unit Tests for the Metrics Query Service
Tests the live team leaderboard and daily time series against a temporary store.
"""

import unittest

from deploy_metrics.database.queries import MAX_WINDOW_DAYS, MetricsQueries, validate_days
from deploy_metrics.errors import QueryError
from tests.helpers import StoreTestCase, days_ago, deployment, execute, insert_deployments


class TestTeamMetrics(StoreTestCase):
    """Test the team leaderboard."""

    def setUp(self):
        super().setUp()
        self.queries = MetricsQueries(self.db)

    def _load_alpha_beta(self):
        insert_deployments(self.db, [
            deployment('a1', 'alpha', 10, 'success'),
            deployment('a2', 'alpha', 20, 'success'),
            deployment('a3', 'alpha', 30, 'failed'),
            deployment('b1', 'beta', 5, 'success'),
        ])

    def test_alpha_beta_scenario(self):
        self._load_alpha_beta()

        metrics = self.queries.get_team_metrics()

        self.assertEqual([m.team for m in metrics], ['beta', 'alpha'])
        beta, alpha = metrics

        self.assertEqual(alpha.total_deployments, 3)
        self.assertEqual(alpha.successful_deployments, 2)
        self.assertAlmostEqual(alpha.success_rate, 66.67)
        self.assertAlmostEqual(alpha.avg_duration_minutes, 15.0)

        self.assertEqual(beta.total_deployments, 1)
        self.assertEqual(beta.successful_deployments, 1)
        self.assertAlmostEqual(beta.success_rate, 100.0)
        self.assertAlmostEqual(beta.avg_duration_minutes, 5.0)

    def test_deployments_per_day_uses_fixed_week(self):
        self._load_alpha_beta()

        alpha = [m for m in self.queries.get_team_metrics() if m.team == 'alpha'][0]

        self.assertAlmostEqual(alpha.deployments_per_day, 0.43)

    def test_totals_and_rates_are_consistent(self):
        rows = [
            deployment('x1', 'xray', 12, 'success'),
            deployment('x2', 'xray', 14, 'rolled_back'),
            deployment('y1', 'yankee', 7, 'failed'),
            deployment('z1', 'zulu', 3, 'success'),
            deployment('z2', 'zulu', 9, 'success'),
            deployment('z3', 'zulu', 4, 'failed'),
        ]
        insert_deployments(self.db, rows)

        metrics = self.queries.get_team_metrics()

        self.assertEqual(sum(m.total_deployments for m in metrics), len(rows))
        for m in metrics:
            self.assertGreaterEqual(m.success_rate, 0)
            self.assertLessEqual(m.success_rate, 100)
            self.assertAlmostEqual(
                m.success_rate,
                round(100 * m.successful_deployments / m.total_deployments, 2)
            )

        rates = [m.success_rate for m in metrics]
        self.assertEqual(rates, sorted(rates, reverse=True))

    def test_team_without_success_has_no_average(self):
        insert_deployments(self.db, [deployment('f1', 'fragile', 40, 'failed')])

        metrics = self.queries.get_team_metrics()

        self.assertEqual(len(metrics), 1)
        self.assertIsNone(metrics[0].avg_duration_minutes)
        self.assertEqual(metrics[0].success_rate, 0.0)

    def test_empty_store_returns_empty_list(self):
        self.assertEqual(self.queries.get_team_metrics(), [])

    def test_store_failure_is_query_error(self):
        execute(self.db, "DROP TABLE deployments")

        with self.assertRaises(QueryError):
            self.queries.get_team_metrics()


class TestDailyMetrics(StoreTestCase):
    """Test the daily time series."""

    def setUp(self):
        super().setUp()
        self.queries = MetricsQueries(self.db)

    def test_same_day_deployments_collapse_to_one_row(self):
        insert_deployments(self.db, [
            deployment('a1', 'alpha', 10, 'success', timestamp=days_ago(1, hour=9)),
            deployment('a2', 'alpha', 30, 'failed', timestamp=days_ago(1, hour=17)),
        ])

        metrics = self.queries.get_daily_metrics(days=30)

        self.assertEqual(len(metrics), 1)
        self.assertEqual(metrics[0].date, days_ago(1).date().isoformat())
        self.assertEqual(metrics[0].deployments, 2)
        self.assertEqual(metrics[0].successful, 1)
        # Failed deployments count towards the daily average
        self.assertAlmostEqual(metrics[0].avg_duration, 20.0)

    def test_ordering_date_desc_then_team(self):
        insert_deployments(self.db, [
            deployment('b1', 'beta', 5, timestamp=days_ago(2)),
            deployment('a1', 'alpha', 5, timestamp=days_ago(2)),
            deployment('a2', 'alpha', 5, timestamp=days_ago(1)),
        ])

        metrics = self.queries.get_daily_metrics(days=30)

        self.assertEqual(
            [(m.date, m.team) for m in metrics],
            [
                (days_ago(1).date().isoformat(), 'alpha'),
                (days_ago(2).date().isoformat(), 'alpha'),
                (days_ago(2).date().isoformat(), 'beta'),
            ]
        )

    def test_team_filter(self):
        insert_deployments(self.db, [
            deployment('a1', 'alpha', 5, timestamp=days_ago(1)),
            deployment('b1', 'beta', 5, timestamp=days_ago(1)),
        ])

        only_alpha = self.queries.get_daily_metrics(team='alpha', days=30)
        everyone = self.queries.get_daily_metrics(team='', days=30)

        self.assertEqual({m.team for m in only_alpha}, {'alpha'})
        self.assertEqual({m.team for m in everyone}, {'alpha', 'beta'})

    def test_filter_value_is_bound_not_interpolated(self):
        insert_deployments(self.db, [deployment('a1', 'alpha', 5, timestamp=days_ago(1))])

        metrics = self.queries.get_daily_metrics(team="alpha' OR '1'='1", days=30)

        self.assertEqual(metrics, [])

    def test_window_excludes_older_days(self):
        insert_deployments(self.db, [
            deployment('old', 'alpha', 5, timestamp=days_ago(400)),
            deployment('new', 'alpha', 5, timestamp=days_ago(2)),
        ])

        metrics = self.queries.get_daily_metrics(days=7)

        self.assertEqual(len(metrics), 1)
        self.assertEqual(metrics[0].date, days_ago(2).date().isoformat())

    def test_window_before_any_data_is_empty(self):
        insert_deployments(self.db, [deployment('old', 'alpha', 5, timestamp=days_ago(400))])

        self.assertEqual(self.queries.get_daily_metrics(days=30), [])

    def test_zero_days_is_empty(self):
        insert_deployments(self.db, [deployment('a1', 'alpha', 5)])

        self.assertEqual(self.queries.get_daily_metrics(days=0), [])

    def test_out_of_range_days_rejected(self):
        with self.assertRaises(ValueError):
            self.queries.get_daily_metrics(days=-1)
        with self.assertRaises(ValueError):
            self.queries.get_daily_metrics(days=MAX_WINDOW_DAYS + 1)


class TestValidateDays(unittest.TestCase):
    """Test day window validation."""

    def test_accepts_bounds(self):
        self.assertEqual(validate_days(0), 0)
        self.assertEqual(validate_days(MAX_WINDOW_DAYS), MAX_WINDOW_DAYS)

    def test_rejects_non_integers(self):
        for value in ('30', 3.5, None, True):
            with self.assertRaises(ValueError):
                validate_days(value)


if __name__ == '__main__':
    unittest.main()
