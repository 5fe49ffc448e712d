#!/usr/bin/env python3
"""Web API for Taskin.

This module serves the sync endpoints over HTTP. It uses only core/ modules.

Endpoints:
    GET  /api/health            Liveness check
    POST /sync/delta            Delta sync (apply changes, pull missing ones)
    GET  /sync/delta/changes    Changes visible to the user since a timestamp
    POST /sync/upload           Full-snapshot upload
    GET  /sync/download         Full-snapshot download
    GET  /sync/status           Full-snapshot sync status

All endpoints return JSON responses. Every /sync endpoint requires the
X-User-ID header.
"""

from __future__ import annotations

import argparse
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional

from flask import Flask, jsonify, Response
from flask_cors import CORS

from taskin.core.config import Config
from taskin.core.database import Database
from taskin.core.delta_sync import DeltaSyncService
from taskin.core.snapshot_sync import SnapshotSyncService
from taskin.core.sync import create_sync_blueprint
from taskin.core.timestamp_utils import utc_now
from taskin.core.validation import ValidationError

logger = logging.getLogger(__name__)

# Global database instance
db: Optional[Database] = None


def create_app(
    config_dir: Optional[Path] = None,
    clock: Callable[[], datetime] = utc_now,
) -> Flask:
    """Create and configure Flask application.

    Opens the database named by the configuration and keeps it in the
    module-level db.

    Args:
        config_dir: Custom configuration directory (default: None)
        clock: Source of server timestamps

    Returns:
        Configured Flask application
    """
    config = Config(config_dir=config_dir)
    db_path = config.get_database_file()
    db_path.parent.mkdir(parents=True, exist_ok=True)

    global db
    db = Database(db_path)

    logger.info(f"Web API initialized with database: {db_path}")

    return build_app(db, config, clock=clock)


def build_app(
    database: Database,
    config: Config,
    clock: Callable[[], datetime] = utc_now,
) -> Flask:
    """Build the Flask application around an open database.

    Args:
        database: Database the sync services read and write
        config: Config instance
        clock: Source of server timestamps

    Returns:
        Flask application with the sync blueprint, /api/health, CORS and
        JSON error handlers
    """
    app = Flask(__name__)
    CORS(app)
    app.json.sort_keys = False

    delta_service = DeltaSyncService(
        database,
        clock=clock,
        lookback_days=config.get_default_lookback_days(),
        far_past_years=config.get_far_past_years(),
    )
    snapshot_service = SnapshotSyncService(database, clock=clock)
    app.register_blueprint(create_sync_blueprint(delta_service, snapshot_service))

    # Error handlers
    @app.errorhandler(404)
    def not_found(error: Any) -> tuple[Response, int]:
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(error: Any) -> tuple[Response, int]:
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(500)
    def internal_error(error: Any) -> tuple[Response, int]:
        logger.error(f"Internal error: {error}")
        return jsonify({"error": "Internal server error"}), 500

    @app.errorhandler(ValidationError)
    def validation_error(error: ValidationError) -> tuple[Response, int]:
        logger.warning(f"Validation error: {error.field} - {error.message}")
        return jsonify({"error": f"Invalid {error.field}: {error.message}"}), 400

    @app.route("/api/health", methods=["GET"])
    def health() -> Response:
        """Health check endpoint."""
        return jsonify({"status": "ok"})

    return app


def add_web_subparser(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    """Add web subparser and its arguments.

    Args:
        subparsers: Parent subparsers object to add web parser to
    """
    web_parser = subparsers.add_parser(
        "web",
        help="Start the sync server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    web_parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host to bind to (default: server.host from config)"
    )

    web_parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to bind to (default: server.port from config)"
    )

    web_parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode"
    )


def run(config_dir: Optional[Path], args: argparse.Namespace) -> int:
    """Run web server with given arguments.

    Args:
        config_dir: Custom configuration directory or None for default
        args: Parsed command-line arguments (should have host, port, debug attributes)

    Returns:
        Exit code (0 for success)
    """
    logger.info("Starting Taskin sync server")
    if config_dir:
        logger.info(f"Using custom config directory: {config_dir}")

    config = Config(config_dir=config_dir)
    app = create_app(config_dir=config_dir)

    try:
        app.run(
            host=args.host or config.get_server_host(),
            port=args.port or config.get_server_port(),
            debug=args.debug,
        )
    finally:
        if db is not None:
            db.close()

    return 0
