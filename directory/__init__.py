"""
Flask application factory for the directory ingestion admin API.
"""
import hmac

from flask import Flask, jsonify, request


def create_app(store=None, queue=None):
    """
    Create and configure the Flask application.

    store: IngestionStore to serve from; built from DATABASE_URL when omitted.
    queue: RQ queue for launched runs; the manager's lazy queue when omitted.
    """
    from directory.config import ADMIN_API_TOKEN
    from directory.logging_config import configure_logging

    app = Flask(__name__)

    configure_logging(app)

    app.config['ADMIN_API_TOKEN'] = ADMIN_API_TOKEN

    if store is None:
        from directory.services.store import build_store
        store = build_store()
    app.extensions['ingestion_store'] = store
    app.extensions['ingestion_queue'] = queue

    # ── Shared-secret gate on the admin API ──────────────────────────────
    @app.before_request
    def require_token():
        token = app.config.get('ADMIN_API_TOKEN')
        if not token:
            return  # No token set — open access (local dev)
        if not request.path.startswith('/api/'):
            return
        supplied = request.headers.get('Authorization', '')
        if supplied.startswith('Bearer ') and hmac.compare_digest(supplied[7:], token):
            return
        return jsonify({'error': 'Unauthorized'}), 401

    # Register blueprints
    from directory.routes.health import bp as health_bp
    from directory.routes.ingestion import bp as ingestion_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(ingestion_bp)

    return app
