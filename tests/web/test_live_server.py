"""Smoke test against a real HTTP server.

Runs the app on a local port and talks to it with requests, the way a
mobile client would.
"""

from __future__ import annotations

import pytest
import requests

pytestmark = pytest.mark.web


def test_two_clients_sync_through_server(live_server: str) -> None:
    from taskin import web
    from taskin.core.teams import TeamVisibilityResolver

    teams = TeamVisibilityResolver(web.db)
    teams.add_member("G", "alice")
    teams.add_member("G", "bob")

    health = requests.get(f"{live_server}/api/health", timeout=5)
    assert health.json() == {"status": "ok"}

    pushed = requests.post(
        f"{live_server}/sync/delta",
        json={"changes": [{
            "entityType": "task",
            "entityId": "t1",
            "action": "create",
            "data": '{"version": 1, "teamId": "G"}',
            "version": 1,
        }]},
        headers={"X-User-ID": "alice"},
        timeout=5,
    )
    assert pushed.status_code == 200

    pulled = requests.post(
        f"{live_server}/sync/delta",
        json={"changes": []},
        headers={"X-User-ID": "bob"},
        timeout=5,
    )
    assert pulled.status_code == 200
    assert [c["entityId"] for c in pulled.json()["changes"]] == ["t1"]

    unauthenticated = requests.get(f"{live_server}/sync/status", timeout=5)
    assert unauthenticated.status_code == 401
