"""
Metrics API Blueprint
Provides read-only REST endpoints for team and daily deployment metrics.
"""

from flask import Blueprint, current_app, jsonify, request

from deploy_metrics.database.queries import MetricsQueries
from deploy_metrics.errors import QueryError
from deploy_metrics.utils.helpers import parse_days
from deploy_metrics.utils.logger import get_logger

logger = get_logger(__name__)

metrics_bp = Blueprint('metrics', __name__, url_prefix='/api/v1/metrics')


def _queries() -> MetricsQueries:
    return MetricsQueries(current_app.extensions['metrics_db'])


@metrics_bp.route('/teams', methods=['GET'])
def get_team_metrics():
    """
    Get the team leaderboard.

    Returns:
        JSON array of team metrics ordered by success rate
    """
    try:
        metrics = _queries().get_team_metrics()
    except QueryError as e:
        return jsonify({'error': str(e)}), 500

    return jsonify([m.to_dict() for m in metrics])


@metrics_bp.route('/daily', methods=['GET'])
def get_daily_metrics():
    """
    Get per-day deployment metrics.

    Query params:
        team: Optional team filter
        days: Trailing window in days (default 30, non-numeric falls back to 30)

    Returns:
        JSON array of daily metrics, newest day first
    """
    team = request.args.get('team', '')
    days = parse_days(request.args.get('days'))

    try:
        metrics = _queries().get_daily_metrics(team=team, days=days)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except QueryError as e:
        logger.error(f"Failed to get daily metrics for team={team!r} days={days}: {e}")
        return jsonify({'error': str(e)}), 500

    return jsonify([m.to_dict() for m in metrics])


@metrics_bp.route('/summary', methods=['GET'])
def get_daily_summary():
    """Get the last aggregated daily summary snapshot."""
    team = request.args.get('team', '')
    days = parse_days(request.args.get('days'))

    try:
        summary = _queries().get_daily_summary(team=team, days=days)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except QueryError as e:
        return jsonify({'error': str(e)}), 500

    return jsonify([s.to_dict() for s in summary])


@metrics_bp.route('/rankings', methods=['GET'])
def get_team_rankings():
    """Get the last aggregated team rankings snapshot."""
    try:
        rankings = _queries().get_team_rankings()
    except QueryError as e:
        return jsonify({'error': str(e)}), 500

    return jsonify([r.to_dict() for r in rankings])
