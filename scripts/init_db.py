#!/usr/bin/env python
"""
Initialize Database Script
Creates the raw fact tables in the metrics store.
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from deploy_metrics.config_manager import ConfigManager
from deploy_metrics.database.connection import DatabaseConnection
from deploy_metrics.database.schema import initialize_schema, list_tables
from deploy_metrics.errors import SchemaError
from deploy_metrics.utils.logger import setup_logging, get_logger


def main():
    """Main entry point for database initialization."""
    parser = argparse.ArgumentParser(description='Initialize metrics store schema')
    parser.add_argument(
        '--db-path',
        help='Store file to initialize (defaults to database.path from config)'
    )

    args = parser.parse_args()

    config = ConfigManager()
    setup_logging(config)
    logger = get_logger(__name__)

    if args.db_path:
        db = DatabaseConnection(args.db_path)
    else:
        db = DatabaseConnection.from_config(config)

    try:
        logger.info(f"Initializing store at {db.path}")
        initialize_schema(db)

        tables = list_tables(db)
        print(f"\n{'='*50}")
        print("Database Initialized Successfully")
        print(f"{'='*50}")
        print(f"\nTables present: {len(tables)}")
        for table in tables:
            print(f"  - {table}")

    except SchemaError as e:
        logger.error(f"Database initialization failed: {e}")
        print(f"\nError: {e}")
        sys.exit(1)
    finally:
        db.dispose()


if __name__ == '__main__':
    main()
