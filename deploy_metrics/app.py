"""
Flask Application Factory
Main entry point for the deployment metrics service.
"""

import sys
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from flask import Flask, jsonify
from flask_cors import CORS

from deploy_metrics.aggregation import AggregationEngine
from deploy_metrics.config_manager import ConfigManager
from deploy_metrics.database.connection import DatabaseConnection
from deploy_metrics.database.schema import initialize_schema
from deploy_metrics.errors import LoadError, SchemaError
from deploy_metrics.loader import BulkLoader
from deploy_metrics.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


def create_app(
    db: DatabaseConnection,
    aggregation_engine: Optional[AggregationEngine] = None,
    bulk_loader: Optional[BulkLoader] = None,
) -> Flask:
    """
    Application factory for Flask app.

    Args:
        db: Open store handle shared with the background jobs
        aggregation_engine: Engine used by the admin endpoints
        bulk_loader: Loader used by the admin endpoints

    Returns:
        Configured Flask application
    """
    app = Flask(__name__)
    app.json.sort_keys = False

    app.extensions['metrics_db'] = db
    app.extensions['aggregation_engine'] = aggregation_engine or AggregationEngine(db)
    app.extensions['bulk_loader'] = bulk_loader or BulkLoader(db, './example-data')

    CORS(app)

    from deploy_metrics.api.admin_routes import admin_bp
    from deploy_metrics.api.metrics_routes import metrics_bp

    app.register_blueprint(metrics_bp)
    app.register_blueprint(admin_bp)

    @app.route('/health', methods=['GET'])
    def health_check():
        """Health check endpoint."""
        return jsonify({
            'status': 'healthy',
            'database': db.kind
        })

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': 'Method not allowed'}), 405

    @app.errorhandler(500)
    def internal_error(error):
        return jsonify({'error': 'Internal server error'}), 500

    logger.info("Flask application created")

    return app


def create_scheduler(
    aggregation_engine: AggregationEngine,
    bulk_loader: BulkLoader,
    config: ConfigManager,
) -> BackgroundScheduler:
    """
    Create and configure the background scheduler.

    Args:
        aggregation_engine: Engine run on the aggregation interval
        bulk_loader: Loader run on the optional reload schedule
        config: Application configuration

    Returns:
        Configured (not yet started) scheduler
    """
    scheduler_config = config.get_scheduler_config()
    loader_config = config.get_loader_config()

    scheduler = BackgroundScheduler(timezone='UTC')

    if not scheduler_config.get('enabled', True):
        logger.info("Scheduler is disabled")
        return scheduler

    interval = int(scheduler_config.get('aggregation_interval_minutes', 60))

    @scheduler.scheduled_job(
        IntervalTrigger(minutes=interval),
        id='aggregate_metrics',
        max_instances=1,
        coalesce=True
    )
    def scheduled_aggregation():
        """Scheduled aggregation job."""
        aggregation_engine.run()

    reload_schedule = loader_config.get('reload_schedule')
    if reload_schedule:
        @scheduler.scheduled_job(
            CronTrigger.from_crontab(reload_schedule),
            id='reload_raw_facts',
            max_instances=1,
            coalesce=True
        )
        def scheduled_reload():
            """Scheduled bulk reload, followed by a fresh aggregation."""
            logger.info("Running scheduled bulk reload")
            try:
                bulk_loader.load()
            except LoadError as e:
                logger.warning(f"Scheduled reload failed: {e}")
                return
            aggregation_engine.run()

    logger.info(f"Aggregation scheduled every {interval} minutes")
    return scheduler


class MetricsServer:
    """
    Owns the store handle, the background jobs and the Flask app.

    Usage:
        with MetricsServer(config) as server:
            server.app.run(...)
    """

    def __init__(self, config: ConfigManager, db: Optional[DatabaseConnection] = None):
        self.config = config
        self.db = db or DatabaseConnection.from_config(config)
        self.aggregation_engine = AggregationEngine(self.db)
        self.bulk_loader = BulkLoader.from_config(self.db, config)
        self.scheduler = create_scheduler(self.aggregation_engine, self.bulk_loader, config)
        self.app = create_app(self.db, self.aggregation_engine, self.bulk_loader)

    def start(self) -> None:
        """
        Prepare the store and start background jobs.

        Raises:
            SchemaError: If the schema cannot be created
        """
        initialize_schema(self.db)

        if self.config.get_loader_config().get('load_on_startup', True):
            try:
                self.bulk_loader.load()
            except LoadError as e:
                logger.warning(f"Failed to load raw facts, serving existing data: {e}")

        if self.config.get_scheduler_config().get('run_on_startup', True):
            self.aggregation_engine.run()

        if self.scheduler.get_jobs():
            self.scheduler.start()

    def stop(self) -> None:
        """Stop background jobs and close the store."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=True)
        self.db.dispose()

    def __enter__(self) -> 'MetricsServer':
        self.start()
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.stop()


def main() -> int:
    """Run the service until interrupted."""
    config = ConfigManager()
    setup_logging(config)

    server = MetricsServer(config)
    try:
        server.start()
    except SchemaError as e:
        logger.critical(f"Failed to initialize service: {e}")
        server.stop()
        return 1

    api_config = config.get_api_config()
    host = api_config.get('host', '0.0.0.0')
    port = int(api_config.get('port', 8080))

    logger.info(f"Starting server on {host}:{port}")
    try:
        server.app.run(
            host=host,
            port=port,
            debug=bool(api_config.get('debug', False)),
            use_reloader=False,
            threaded=True
        )
    except (KeyboardInterrupt, SystemExit):
        pass
    finally:
        server.stop()

    return 0


if __name__ == '__main__':
    sys.exit(main())
