"""
Admin API Blueprint
Provides endpoints for triggering and monitoring data reloads and aggregation runs.
"""

from flask import Blueprint, current_app, jsonify

from deploy_metrics.errors import LoadError
from deploy_metrics.utils.logger import get_logger

logger = get_logger(__name__)

admin_bp = Blueprint('admin', __name__, url_prefix='/api/v1/admin')


@admin_bp.route('/aggregate', methods=['POST'])
def trigger_aggregation():
    """
    Run one aggregation pass now.

    Returns:
        JSON run record; 409 if another pass is running, 500 if it failed
    """
    engine = current_app.extensions['aggregation_engine']

    logger.info("Aggregation triggered via API")
    run = engine.run()

    if run.status == 'skipped':
        return jsonify({'error': 'aggregation already in progress', 'run': run.to_dict()}), 409
    if run.status == 'failed':
        return jsonify({'error': run.error_message, 'run': run.to_dict()}), 500

    return jsonify(run.to_dict())


@admin_bp.route('/reload', methods=['POST'])
def trigger_reload():
    """
    Reload the raw fact tables from the configured sources, then aggregate.

    Returns:
        JSON with the load and aggregation run records
    """
    loader = current_app.extensions['bulk_loader']
    engine = current_app.extensions['aggregation_engine']

    logger.info("Bulk reload triggered via API")
    try:
        load_run = loader.load()
    except LoadError as e:
        return jsonify({'error': str(e)}), 500

    aggregation_run = engine.run()

    return jsonify({
        'load': load_run.to_dict(),
        'aggregation': aggregation_run.to_dict()
    })


@admin_bp.route('/status', methods=['GET'])
def get_status():
    """Get the most recent load and aggregation runs."""
    loader = current_app.extensions['bulk_loader']
    engine = current_app.extensions['aggregation_engine']

    return jsonify({
        'aggregation': engine.last_run.to_dict() if engine.last_run else None,
        'aggregation_running': engine.is_running,
        'load': loader.last_run.to_dict() if loader.last_run else None
    })
