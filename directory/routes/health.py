"""
Health check route.
"""
from flask import Blueprint, current_app, jsonify

bp = Blueprint('health', __name__)


@bp.route('/health')
def health_check():
    """Liveness probe. Reports whether the ingestion store can reach its database."""
    store = current_app.extensions.get('ingestion_store')
    try:
        store.list_runs(limit=1)
        database = 'ok'
    except Exception as e:
        current_app.logger.warning("Health check database probe failed: %s", e)
        database = 'unavailable'
    status = 'healthy' if database == 'ok' else 'degraded'
    return jsonify({'status': status, 'database': database}), 200 if database == 'ok' else 503
