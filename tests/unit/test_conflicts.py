"""Unit tests for version conflict detection."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from taskin.core.conflicts import detect_conflict, latest_record, server_version
from taskin.core.models import ChangeRecord

from helpers import change, snapshot


def make_records(*snapshots: Optional[str]) -> List[ChangeRecord]:
    """Records for entity task/t1, newest first in argument order."""
    return [
        ChangeRecord(
            id=f"r{i}",
            user_id="alice",
            entity_type="task",
            entity_id="t1",
            action="update",
            team_id=None,
            timestamp=datetime(2024, 1, 1, 0, 0, len(snapshots) - i),
            data_snapshot=data,
        )
        for i, data in enumerate(snapshots)
    ]


class TestServerVersion:
    def test_max_over_records(self) -> None:
        records = make_records(snapshot(version=2), snapshot(version=5), snapshot(version=1))
        assert server_version(records) == 5

    def test_no_records(self) -> None:
        assert server_version([]) == 0

    def test_unreadable_snapshots_count_as_zero(self) -> None:
        assert server_version(make_records(None, "garbage")) == 0


class TestLatestRecord:
    def test_picks_max_version_not_first(self) -> None:
        records = make_records(snapshot(version=2, title="newest"), snapshot(version=5, title="max"))
        assert latest_record(records).id == "r1"

    def test_ties_go_to_newest(self) -> None:
        records = make_records(snapshot(version=3), snapshot(version=3))
        assert latest_record(records).id == "r0"

    def test_empty(self) -> None:
        assert latest_record([]) is None


class TestDetectConflict:
    def test_older_client_version_conflicts(self) -> None:
        records = make_records(snapshot(version=4, title="server"))
        incoming = change("t1", version=2)

        conflict = detect_conflict(records, incoming)

        assert conflict is not None
        assert conflict.entity_type == "task"
        assert conflict.entity_id == "t1"
        assert conflict.local_version == 2
        assert conflict.server_version == 4
        assert conflict.server_data == records[0].data_snapshot
        assert conflict.local_data == incoming.data

    def test_equal_version_is_not_conflict(self) -> None:
        records = make_records(snapshot(version=4))
        assert detect_conflict(records, change("t1", version=4)) is None

    def test_newer_client_version_is_not_conflict(self) -> None:
        records = make_records(snapshot(version=4))
        assert detect_conflict(records, change("t1", version=9)) is None

    def test_no_history_is_not_conflict(self) -> None:
        assert detect_conflict([], change("t1", version=0)) is None

    def test_server_data_from_max_version_record(self) -> None:
        max_data = snapshot(version=6, title="max")
        records = make_records(snapshot(version=1, title="newest"), max_data)
        conflict = detect_conflict(records, change("t1", version=2))
        assert conflict.server_data == max_data
