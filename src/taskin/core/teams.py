"""Team membership lookups.

Teams themselves are managed by a separate service; the sync server only
needs to know which teams a user is in, to widen the set of change records
that user can pull. The add/remove helpers exist so that membership can be
seeded from the CLI and from tests.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List

from .database import Database
from .models import TeamMembership
from .timestamp_utils import format_timestamp, parse_timestamp, utc_now
from .validation import validate_role

logger = logging.getLogger(__name__)

__all__ = ["TeamVisibilityResolver"]


class TeamVisibilityResolver:
    """Resolves which teams a user belongs to."""

    def __init__(self, db: Database, clock: Callable[[], datetime] = utc_now) -> None:
        self.db = db
        self.clock = clock

    def get_user_team_ids(self, user_id: str) -> List[str]:
        """IDs of all teams the user is a member of (may be empty)."""
        return self.db.get_team_ids_for_user(user_id)

    def add_member(self, team_id: str, user_id: str, role: str = "member") -> bool:
        """Add a user to a team.

        Returns:
            True if added, False if the user was already a member
        """
        role = validate_role(role)
        added = self.db.insert_team_member(team_id, user_id, role, format_timestamp(self.clock()))
        if added:
            logger.info(f"Added {user_id} to team {team_id} as {role}")
        return added

    def remove_member(self, team_id: str, user_id: str) -> bool:
        removed = self.db.delete_team_member(team_id, user_id)
        if removed:
            logger.info(f"Removed {user_id} from team {team_id}")
        return removed

    def get_team_members(self, team_id: str) -> List[TeamMembership]:
        return [
            TeamMembership(
                team_id=row["team_id"],
                user_id=row["user_id"],
                role=row["role"],
                joined_at=parse_timestamp(row["joined_at"]),
            )
            for row in self.db.get_team_members(team_id)
        ]
