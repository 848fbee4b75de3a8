"""
Sync Status API Blueprint
Read-only endpoints reporting scheduler liveness and sync run history.
"""

from flask import Blueprint, current_app, jsonify, request

from ternity_sync.config_manager import ConfigManager
from ternity_sync.database.connection import DatabaseConnection, get_db
from ternity_sync.status import get_scheduler_status, list_runs
from ternity_sync.utils.logger import get_logger

logger = get_logger(__name__)

sync_bp = Blueprint('sync', __name__, url_prefix='/api/sync')


def _db() -> DatabaseConnection:
    return current_app.config.get('SYNC_DB') or get_db()


@sync_bp.route('/status', methods=['GET'])
def get_sync_status():
    """
    Get scheduler status.

    Returns:
        JSON with liveness, next/last run times per cadence and the latest
        finished run per source and entity
    """
    try:
        stale_seconds = int(ConfigManager().get_scheduler_config().get('heartbeat_stale_seconds', 300))

        with _db().session_scope() as session:
            status = get_scheduler_status(session, stale_seconds=stale_seconds)

        return jsonify({
            'success': True,
            **status
        })

    except Exception as e:
        logger.error(f"Failed to get sync status: {e}")
        return jsonify({
            'success': False,
            'error': str(e)
        }), 500


@sync_bp.route('/runs', methods=['GET'])
def get_sync_runs():
    """
    Get sync run history.

    Query params:
        source: Optional source filter ('toggl', 'timetastic', 'pipeline')
        status: Optional status filter ('running', 'completed', 'failed')
        limit: Page size (default 50, max 200)
        offset: Rows to skip (default 0)

    Returns:
        JSON with runs (newest first) and the total matching count
    """
    try:
        limit = request.args.get('limit', 50, type=int)
        offset = request.args.get('offset', 0, type=int)

        with _db().session_scope() as session:
            page = list_runs(
                session,
                source=request.args.get('source'),
                status=request.args.get('status'),
                limit=limit,
                offset=offset
            )

        return jsonify({
            'success': True,
            **page
        })

    except Exception as e:
        logger.error(f"Failed to list sync runs: {e}")
        return jsonify({
            'success': False,
            'error': str(e)
        }), 500
