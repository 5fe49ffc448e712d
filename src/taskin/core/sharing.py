"""Shared-task links.

When a task change carries a teamId, the task is shared with that team. The
link table is what the rest of the backend consults to decide team
visibility of tasks; delta sync keeps it in step with the change stream.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from uuid6 import uuid7

from .database import Database
from .models import ACTION_CREATE, ACTION_DELETE, ACTION_UPDATE, ENTITY_TASK, SharedTaskLink
from .timestamp_utils import format_timestamp, parse_timestamp, utc_now

logger = logging.getLogger(__name__)

__all__ = ["SharedTaskRegistry", "SHARED", "UNSHARED"]

SHARED = "shared"
UNSHARED = "unshared"


class SharedTaskRegistry:
    """Maintains (task, team) links from the change stream."""

    def __init__(self, db: Database, clock: Callable[[], datetime] = utc_now) -> None:
        self.db = db
        self.clock = clock

    def mirror(
        self,
        entity_type: str,
        entity_id: str,
        action: str,
        team_id: Optional[str],
        user_id: str,
    ) -> Optional[str]:
        """Apply the sharing side effect of an accepted change.

        Only task changes with a non-empty team ID have one. create and
        update share the task with the team if it isn't already; delete
        removes the link.

        Returns:
            "shared" or "unshared" if the link table changed, otherwise None
        """
        if entity_type != ENTITY_TASK or not team_id:
            return None

        if action in (ACTION_CREATE, ACTION_UPDATE):
            if self.db.shared_task_exists(entity_id, team_id):
                return None
            created = self.db.insert_shared_task(
                uuid7().hex, entity_id, team_id, user_id, format_timestamp(self.clock())
            )
            if not created:
                return None
            logger.info(f"Task {entity_id} shared with team {team_id} by {user_id}")
            return SHARED

        if action == ACTION_DELETE:
            if self.db.delete_shared_task(entity_id, team_id):
                logger.info(f"Task {entity_id} unshared from team {team_id}")
                return UNSHARED
            return None

        return None

    def is_shared(self, task_id: str, team_id: str) -> bool:
        return self.db.shared_task_exists(task_id, team_id)

    def get_links_for_task(self, task_id: str) -> List[SharedTaskLink]:
        return [
            SharedTaskLink(
                id=row["id"],
                task_id=row["task_id"],
                team_id=row["team_id"],
                created_by=row["created_by"],
                shared_at=parse_timestamp(row["shared_at"]),
            )
            for row in self.db.get_shared_tasks_for_task(task_id)
        ]

    def get_task_ids_for_teams(self, team_ids: Sequence[str]) -> List[str]:
        """IDs of tasks shared with any of the given teams."""
        return self.db.get_shared_task_ids_for_teams(list(team_ids))
