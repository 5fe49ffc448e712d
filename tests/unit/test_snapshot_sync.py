"""Unit tests for full-snapshot sync."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

import pytest

from taskin.core.database import Database
from taskin.core.snapshot_sync import SnapshotSyncResponse, SnapshotSyncService

from helpers import FakeClock

VALID_DB = json.dumps({"tasks": [{"id": "t1"}], "categories": []})


class TestUpload:
    """Test uploading a task database."""

    def test_stores_document(self, snapshot_service: SnapshotSyncService, clock: FakeClock) -> None:
        now = clock.peek()
        response = snapshot_service.upload_database("alice", VALID_DB)

        assert response.success is True
        assert response.task_database == VALID_DB
        assert response.last_sync_at == now
        assert snapshot_service.get_status("alice")["hasData"] is True

    def test_replaces_previous_document(self, snapshot_service: SnapshotSyncService) -> None:
        snapshot_service.upload_database("alice", VALID_DB)
        newer = json.dumps({"tasks": [], "categories": [{"id": "c1"}]})

        snapshot_service.upload_database("alice", newer)

        assert snapshot_service.download_database("alice").task_database == newer

    @pytest.mark.parametrize("payload", [None, "", "   "])
    def test_requires_payload(self, snapshot_service: SnapshotSyncService, payload: Any) -> None:
        response = snapshot_service.upload_database("alice", payload)
        assert response.success is False
        assert response.task_database is None
        assert response.last_sync_at is None

    @pytest.mark.parametrize("payload", [
        "{broken",
        "[]",
        json.dumps({"tasks": []}),
        json.dumps({"categories": []}),
        json.dumps({"tasks": {}, "categories": []}),
        json.dumps({"tasks": [], "categories": "none"}),
    ])
    def test_rejects_invalid_document(self, snapshot_service: SnapshotSyncService, payload: str) -> None:
        response = snapshot_service.upload_database("alice", payload)
        assert response.success is False
        assert response.message.startswith("Invalid task database")
        assert snapshot_service.get_status("alice")["hasData"] is False

    def test_storage_failure_reported(
        self, snapshot_service: SnapshotSyncService, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def boom(*args: Any) -> None:
            raise RuntimeError("disk full")

        monkeypatch.setattr(snapshot_service.db, "save_user_task_database", boom)

        response = snapshot_service.upload_database("alice", VALID_DB)
        assert response.success is False
        assert "disk full" in response.message


class TestDownload:
    """Test downloading a task database."""

    def test_empty_database_for_new_user(self, snapshot_service: SnapshotSyncService, clock: FakeClock) -> None:
        now = clock.peek()
        response = snapshot_service.download_database("bob")

        assert response.success is True
        assert json.loads(response.task_database) == {
            "tasks": [],
            "categories": [],
            "lastModified": "2024-01-01T00:00:00.000000",
        }
        assert response.last_sync_at == now

    def test_returns_stored_document_verbatim(self, snapshot_service: SnapshotSyncService) -> None:
        raw = '{"tasks":[],  "categories":[], "extra": true}'
        snapshot_service.upload_database("alice", raw)
        assert snapshot_service.download_database("alice").task_database == raw

    def test_advances_last_sync(self, snapshot_service: SnapshotSyncService, clock: FakeClock) -> None:
        snapshot_service.upload_database("alice", VALID_DB)
        before = snapshot_service.get_status("alice")["lastSyncAt"]

        snapshot_service.download_database("alice")

        after = snapshot_service.get_status("alice")["lastSyncAt"]
        assert after > before

    def test_download_does_not_store_empty_document(self, snapshot_service: SnapshotSyncService) -> None:
        snapshot_service.download_database("bob")
        status = snapshot_service.get_status("bob")
        assert status["hasData"] is False
        assert status["lastSyncAt"] is not None


class TestStatus:
    def test_unknown_user(self, snapshot_service: SnapshotSyncService) -> None:
        assert snapshot_service.get_status("nobody") == {
            "userId": "nobody",
            "lastSyncAt": None,
            "hasData": False,
        }


class TestMerge:
    def test_last_write_wins(self, snapshot_service: SnapshotSyncService) -> None:
        assert snapshot_service.merge_task_databases('{"tasks": [1]}', '{"tasks": [2]}') == '{"tasks": [2]}'
        assert snapshot_service.merge_task_databases(None, '{"tasks": []}') == '{"tasks": []}'


class TestResponse:
    def test_wire_form(self) -> None:
        response = SnapshotSyncResponse.ok("{}", datetime(2024, 1, 1), "done")
        assert response.to_dict() == {
            "taskDatabase": "{}",
            "lastSyncAt": "2024-01-01T00:00:00.000000",
            "message": "done",
            "success": True,
        }

    def test_error_form(self) -> None:
        assert SnapshotSyncResponse.error("nope").to_dict() == {
            "taskDatabase": None,
            "lastSyncAt": None,
            "message": "nope",
            "success": False,
        }


def test_independent_of_change_log(empty_db: Database, snapshot_service: SnapshotSyncService) -> None:
    snapshot_service.upload_database("alice", VALID_DB)
    assert empty_db.count_sync_logs() == 0
