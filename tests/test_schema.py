"""
Unit Tests for the Schema Manager
"""

import unittest

from deploy_metrics.database.connection import DatabaseConnection
from deploy_metrics.database.schema import initialize_schema, list_tables
from deploy_metrics.errors import SchemaError
from tests.helpers import StoreTestCase, deployment, fetch_all, insert_deployments


class TestInitializeSchema(StoreTestCase):
    """Test raw table creation."""

    def test_creates_raw_fact_tables(self):
        tables = list_tables(self.db)
        self.assertIn('deployments', tables)
        self.assertIn('incidents', tables)
        self.assertIn('pull_requests', tables)

    def test_repeated_initialization_keeps_data(self):
        """Running schema creation again must not fail or touch rows."""
        insert_deployments(self.db, [deployment('d1', 'alpha', 10)])

        initialize_schema(self.db)
        initialize_schema(self.db)

        rows = fetch_all(self.db, "SELECT COUNT(*) FROM deployments")
        self.assertEqual(rows[0][0], 1)

    def test_primary_key_rejects_duplicates(self):
        insert_deployments(self.db, [deployment('d1', 'alpha', 10)])
        with self.assertRaises(Exception):
            insert_deployments(self.db, [deployment('d1', 'beta', 5)])

    def test_unopenable_store_is_schema_error(self):
        # A directory cannot be opened as a store file
        db = DatabaseConnection(self.tmp_dir)
        try:
            with self.assertRaises(SchemaError):
                initialize_schema(db)
        finally:
            db.dispose()

    def test_health_check(self):
        self.assertTrue(self.db.check_connection())
        self.assertEqual(self.db.kind, 'duckdb')


if __name__ == '__main__':
    unittest.main()
