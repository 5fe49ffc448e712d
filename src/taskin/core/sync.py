"""HTTP endpoints for delta and full-snapshot sync.

The caller's identity is taken from the X-User-ID header, which the
authenticating proxy in front of this server sets. Requests without it are
refused with 401.

Endpoints:
    POST /sync/delta            Apply a change batch and pull missing changes
    GET  /sync/delta/changes    Changes visible to the user since a timestamp
    POST /sync/upload           Replace the user's stored task database
    GET  /sync/download         Fetch the user's stored task database
    GET  /sync/status           Snapshot sync status of the user
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Tuple

from flask import Blueprint, jsonify, request

from .delta_sync import DeltaSyncRequest, DeltaSyncService
from .snapshot_sync import SnapshotSyncService
from .validation import ValidationError, validate_timestamp, validate_user_id

logger = logging.getLogger(__name__)

USER_HEADER = "X-User-ID"


def _current_user() -> Optional[str]:
    """User ID from the request header, or None if absent or invalid."""
    raw = request.headers.get(USER_HEADER)
    if raw is None:
        return None
    try:
        return validate_user_id(raw)
    except ValidationError:
        return None


def _unauthorized() -> Tuple[Any, int]:
    return jsonify({"error": f"Missing or invalid {USER_HEADER} header"}), 401


def create_sync_blueprint(
    delta_service: DeltaSyncService,
    snapshot_service: SnapshotSyncService,
) -> Blueprint:
    """Create Flask blueprint for sync endpoints.

    Args:
        delta_service: Service handling delta sync
        snapshot_service: Service handling full-snapshot sync

    Returns:
        Flask Blueprint with sync routes
    """
    sync_bp = Blueprint("sync", __name__, url_prefix="/sync")

    @sync_bp.route("/delta", methods=["POST"])
    def delta_sync() -> Tuple[Any, int]:
        """Apply a batch of client changes and return what the client is missing.

        Request body:
            {
                "changes": [{"entityType", "entityId", "action", "data",
                             "timestamp", "version"}, ...],
                "lastSyncAt": "..."
            }

        Response:
            {
                "changes": [...],
                "conflicts": [...],
                "lastSyncAt": "...",
                "success": true,
                "message": "..."
            }
        """
        user_id = _current_user()
        if user_id is None:
            return _unauthorized()

        data = request.get_json(silent=True)
        if data is None:
            error_msg = "Missing JSON request body in delta sync"
            logger.warning(f"Delta sync rejected for {user_id}: {error_msg}")
            return jsonify({"error": error_msg}), 400

        try:
            sync_request = DeltaSyncRequest.from_dict(data)
        except ValidationError as e:
            logger.warning(f"Delta sync rejected for {user_id}: {e}")
            return jsonify({"error": f"Invalid {e.field}: {e.message}"}), 400

        try:
            response = delta_service.process_delta_sync(sync_request, user_id)
        except Exception as e:
            error_msg = f"Internal server error during delta sync: {e}"
            logger.error(error_msg)
            return jsonify({
                "changes": [],
                "conflicts": [],
                "lastSyncAt": None,
                "success": False,
                "message": error_msg,
            }), 500

        return jsonify(response.to_dict()), 200 if response.success else 500

    @sync_bp.route("/delta/changes", methods=["GET"])
    def changes_since() -> Tuple[Any, int]:
        """Changes visible to the user since a timestamp, including their own.

        Query params:
            since: ISO timestamp (optional, default: the last 7 days)
        """
        user_id = _current_user()
        if user_id is None:
            return _unauthorized()

        try:
            since = validate_timestamp(request.args.get("since"), "since")
        except ValidationError as e:
            return jsonify({"error": f"Invalid {e.field}: {e.message}"}), 400

        try:
            changes = delta_service.get_changes_since(user_id, since)
            logger.debug(f"Returning {len(changes)} changes to {user_id}")
            return jsonify([c.to_dict() for c in changes]), 200
        except Exception as e:
            error_msg = f"Internal server error getting changes: {e}"
            logger.error(error_msg)
            return jsonify({"error": error_msg}), 500

    @sync_bp.route("/upload", methods=["POST"])
    def upload() -> Tuple[Any, int]:
        """Replace the user's stored task database.

        Request body:
            {"taskDatabase": "<JSON text>", "lastSyncAt": "..."}
        """
        user_id = _current_user()
        if user_id is None:
            return _unauthorized()

        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"error": "Missing JSON request body in upload"}), 400

        try:
            response = snapshot_service.upload_database(user_id, data.get("taskDatabase"))
        except Exception as e:
            error_msg = f"Internal server error during upload: {e}"
            logger.error(error_msg)
            return jsonify({"error": error_msg}), 500

        return jsonify(response.to_dict()), 200 if response.success else 400

    @sync_bp.route("/download", methods=["GET"])
    def download() -> Tuple[Any, int]:
        """Fetch the user's stored task database (empty if none)."""
        user_id = _current_user()
        if user_id is None:
            return _unauthorized()

        try:
            response = snapshot_service.download_database(user_id)
        except Exception as e:
            error_msg = f"Internal server error during download: {e}"
            logger.error(error_msg)
            return jsonify({"error": error_msg}), 500

        return jsonify(response.to_dict()), 200 if response.success else 400

    @sync_bp.route("/status", methods=["GET"])
    def status() -> Tuple[Any, int]:
        user_id = _current_user()
        if user_id is None:
            return _unauthorized()

        try:
            return jsonify(snapshot_service.get_status(user_id)), 200
        except Exception as e:
            error_msg = f"Error getting sync status: {e}"
            logger.error(error_msg)
            return jsonify({"error": error_msg}), 500

    return sync_bp
