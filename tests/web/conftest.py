"""Pytest fixtures for web API tests.

Provides Flask test client and test database for web API testing.
"""

from __future__ import annotations

import socket
import threading
from pathlib import Path
from typing import Generator

import pytest
from flask import Flask
from flask.testing import FlaskClient
from werkzeug.serving import make_server

from taskin import web
from taskin.web import create_app

from helpers import FakeClock


def find_free_port() -> int:
    """Find a free port to use for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def web_app(test_config_dir: Path, clock: FakeClock) -> Generator[Flask, None, None]:
    """Create Flask app for testing.

    Yields:
        Flask application instance
    """
    app = create_app(config_dir=test_config_dir, clock=clock)
    app.config["TESTING"] = True
    yield app
    web.db.close()


@pytest.fixture
def client(web_app: Flask) -> FlaskClient:
    """Create Flask test client."""
    return web_app.test_client()


@pytest.fixture
def live_server(web_app: Flask) -> Generator[str, None, None]:
    """Serve the app on a free local port in a background thread.

    Yields:
        Base URL of the running server
    """
    port = find_free_port()
    server = make_server("127.0.0.1", port, web_app, threaded=True)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{port}"
    server.shutdown()
    thread.join(timeout=5)
