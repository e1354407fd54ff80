#!/usr/bin/env python
"""
Load Data Script
Replaces the raw fact tables from CSV sources and refreshes the rollups.
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from deploy_metrics.aggregation import AggregationEngine
from deploy_metrics.config_manager import ConfigManager
from deploy_metrics.database.connection import DatabaseConnection
from deploy_metrics.database.schema import initialize_schema
from deploy_metrics.errors import MetricsError
from deploy_metrics.loader import BulkLoader
from deploy_metrics.utils.logger import setup_logging, get_logger


def main():
    """Main entry point for the bulk load script."""
    parser = argparse.ArgumentParser(description='Load raw facts into the metrics store')
    parser.add_argument(
        '--source-dir',
        help='Directory with deployments.csv, incidents.csv and pull_requests.csv'
    )
    parser.add_argument(
        '--skip-aggregation',
        action='store_true',
        help='Do not rebuild the derived tables after loading'
    )

    args = parser.parse_args()

    config = ConfigManager()
    setup_logging(config)
    logger = get_logger(__name__)

    db = DatabaseConnection.from_config(config)
    loader = BulkLoader.from_config(db, config)
    if args.source_dir:
        loader.source_dir = Path(args.source_dir)

    try:
        initialize_schema(db)
        run = loader.load()

        print(f"\n{'='*50}")
        print("Load Complete")
        print(f"{'='*50}")
        for table, count in run.records_loaded.items():
            print(f"{table}: {count} rows")

        if not args.skip_aggregation:
            aggregation = AggregationEngine(db).run_or_raise()
            print(f"Aggregation: {aggregation.status} ({aggregation.duration_seconds}s)")

    except MetricsError as e:
        logger.error(f"Load failed: {e}")
        print(f"\nError: {e}")
        sys.exit(1)
    finally:
        db.dispose()


if __name__ == '__main__':
    main()
