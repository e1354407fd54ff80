#!/usr/bin/env python
"""
Run Aggregation Script
Rebuilds daily_team_summary and team_rankings once and exits.
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from deploy_metrics.aggregation import AggregationEngine
from deploy_metrics.config_manager import ConfigManager
from deploy_metrics.database.connection import DatabaseConnection
from deploy_metrics.errors import AggregationError
from deploy_metrics.utils.logger import setup_logging, get_logger


def main():
    """Main entry point for a one-off aggregation."""
    config = ConfigManager()
    setup_logging(config)
    logger = get_logger(__name__)

    db = DatabaseConnection.from_config(config)
    try:
        run = AggregationEngine(db).run_or_raise()
        print(f"Aggregation {run.status} in {run.duration_seconds}s")
    except AggregationError as e:
        logger.error(f"Aggregation failed: {e}")
        print(f"\nError: {e}")
        sys.exit(1)
    finally:
        db.dispose()


if __name__ == '__main__':
    main()
