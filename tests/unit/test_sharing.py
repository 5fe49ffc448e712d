"""Unit tests for shared-task link mirroring."""

from __future__ import annotations

import pytest

from taskin.core.database import Database
from taskin.core.sharing import SHARED, UNSHARED, SharedTaskRegistry

from helpers import FakeClock


@pytest.fixture
def registry(empty_db: Database, clock: FakeClock) -> SharedTaskRegistry:
    return SharedTaskRegistry(empty_db, clock)


class TestMirror:
    def test_create_shares(self, registry: SharedTaskRegistry) -> None:
        assert registry.mirror("task", "t1", "create", "G", "alice") == SHARED
        [link] = registry.get_links_for_task("t1")
        assert link.team_id == "G"
        assert link.created_by == "alice"

    def test_update_shares_when_missing(self, registry: SharedTaskRegistry) -> None:
        assert registry.mirror("task", "t1", "update", "G", "bob") == SHARED
        assert registry.is_shared("t1", "G")

    def test_repeat_create_does_not_duplicate(self, registry: SharedTaskRegistry) -> None:
        registry.mirror("task", "t1", "create", "G", "alice")
        assert registry.mirror("task", "t1", "create", "G", "bob") is None
        [link] = registry.get_links_for_task("t1")
        assert link.created_by == "alice"

    def test_delete_unshares(self, registry: SharedTaskRegistry) -> None:
        registry.mirror("task", "t1", "create", "G", "alice")
        assert registry.mirror("task", "t1", "delete", "G", "alice") == UNSHARED
        assert not registry.is_shared("t1", "G")

    def test_delete_without_link(self, registry: SharedTaskRegistry) -> None:
        assert registry.mirror("task", "t1", "delete", "G", "alice") is None

    @pytest.mark.parametrize("entity_type,team_id", [
        ("project", "G"),
        ("category", "G"),
        ("task", None),
        ("task", ""),
    ])
    def test_no_side_effect(self, registry: SharedTaskRegistry, entity_type: str, team_id: object) -> None:
        assert registry.mirror(entity_type, "t1", "create", team_id, "alice") is None
        assert registry.get_links_for_task("t1") == []

    def test_unknown_action(self, registry: SharedTaskRegistry) -> None:
        assert registry.mirror("task", "t1", "archive", "G", "alice") is None
        assert not registry.is_shared("t1", "G")

    def test_one_task_many_teams(self, registry: SharedTaskRegistry) -> None:
        registry.mirror("task", "t1", "create", "G", "alice")
        registry.mirror("task", "t1", "create", "H", "alice")
        registry.mirror("task", "t2", "create", "H", "alice")
        assert [l.team_id for l in registry.get_links_for_task("t1")] == ["G", "H"]
        assert registry.get_task_ids_for_teams(["H"]) == ["t1", "t2"]
        assert registry.get_task_ids_for_teams([]) == []
