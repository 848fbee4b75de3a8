"""
Flask Application Factory
Serves the sync status endpoints and a health check.
"""

import os

from flask import Flask, jsonify
from flask_cors import CORS

from ternity_sync.database.connection import DatabaseConnection, get_db
from ternity_sync.utils.helpers import utc_now
from ternity_sync.utils.logger import setup_logging, get_logger


def create_app(db: DatabaseConnection = None, configure_logging: bool = True) -> Flask:
    """
    Application factory for Flask app.

    Args:
        db: Database connection to serve from (default: the process-wide one)
        configure_logging: Set up logging handlers (disable in tests)

    Returns:
        Configured Flask application
    """
    if configure_logging:
        setup_logging()
    logger = get_logger(__name__)

    app = Flask(__name__)

    app.config['SECRET_KEY'] = os.getenv('FLASK_SECRET_KEY', 'dev-secret-key-change-in-production')
    app.config['JSON_SORT_KEYS'] = False
    app.config['SYNC_DB'] = db

    # Enable CORS
    CORS(app)

    from ternity_sync.api.sync_routes import sync_bp
    app.register_blueprint(sync_bp)

    @app.route('/health', methods=['GET'])
    def health_check():
        """Health check endpoint."""
        db_healthy = (app.config['SYNC_DB'] or get_db()).check_connection()

        return jsonify({
            'status': 'healthy' if db_healthy else 'degraded',
            'timestamp': utc_now().isoformat(),
            'database': 'connected' if db_healthy else 'disconnected'
        })

    @app.route('/', methods=['GET'])
    def root():
        """Root endpoint with API info."""
        return jsonify({
            'name': 'Ternity Sync API',
            'version': '1.0.0',
            'endpoints': {
                '/health': 'Health check',
                '/api/sync/status': 'Scheduler status (GET)',
                '/api/sync/runs': 'Sync run history (GET)'
            }
        })

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({
            'success': False,
            'error': 'Not found'
        }), 404

    @app.errorhandler(500)
    def internal_error(error):
        return jsonify({
            'success': False,
            'error': 'Internal server error'
        }), 500

    logger.info("Flask application created")

    return app


if __name__ == '__main__':
    app = create_app()
    app.run(
        host='0.0.0.0',
        port=int(os.getenv('FLASK_PORT', 6922)),
        debug=os.getenv('FLASK_DEBUG', 'false').lower() == 'true'
    )
