"""Append-only change log.

Every accepted change becomes one ChangeRecord. Records are only ever
inserted; nothing in the sync core updates or deletes them. The pull phase
of delta sync and the changes-since query both read from here.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from uuid6 import uuid7

from .database import Database
from .models import ChangeRecord
from .timestamp_utils import format_timestamp, parse_timestamp, utc_now

logger = logging.getLogger(__name__)

__all__ = ["ChangeLogStore"]


def _record_from_row(row: Dict[str, Any]) -> ChangeRecord:
    return ChangeRecord(
        id=row["id"],
        user_id=row["user_id"],
        entity_type=row["entity_type"],
        entity_id=row["entity_id"],
        action=row["action"],
        team_id=row["team_id"],
        timestamp=parse_timestamp(row["timestamp"]),
        data_snapshot=row["data_snapshot"],
    )


class ChangeLogStore:
    """Persistent, append-only log of accepted changes."""

    def __init__(self, db: Database, clock: Callable[[], datetime] = utc_now) -> None:
        self.db = db
        self.clock = clock

    def append(
        self,
        user_id: str,
        entity_type: str,
        entity_id: str,
        action: str,
        team_id: Optional[str],
        data_snapshot: Optional[str],
    ) -> ChangeRecord:
        """Record a change.

        The record ID and timestamp are assigned here, at write time; any
        timestamp the client sent is not used.

        Returns:
            The stored ChangeRecord
        """
        record = ChangeRecord(
            id=uuid7().hex,
            user_id=user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            team_id=team_id,
            timestamp=self.clock(),
            data_snapshot=data_snapshot,
        )
        self.db.insert_sync_log({
            "id": record.id,
            "user_id": record.user_id,
            "entity_type": record.entity_type,
            "entity_id": record.entity_id,
            "action": record.action,
            "team_id": record.team_id,
            "timestamp": format_timestamp(record.timestamp),
            "data_snapshot": record.data_snapshot,
        })
        logger.debug(
            f"Logged {action} of {entity_type} {entity_id} by {user_id}"
            + (f" (team {team_id})" if team_id else "")
        )
        return record

    def find_by_entity(self, entity_type: str, entity_id: str) -> List[ChangeRecord]:
        """All records for one entity, newest first."""
        rows = self.db.get_sync_logs_for_entity(entity_type, entity_id)
        return [_record_from_row(row) for row in rows]

    def find_visible_since(
        self, user_id: str, team_ids: Sequence[str], since: datetime
    ) -> List[ChangeRecord]:
        """Records the user may see that were written after since.

        A record is visible if the user wrote it or it is tagged with one of
        the user's teams. Results are oldest first.
        """
        rows = self.db.get_sync_logs_since(user_id, list(team_ids), format_timestamp(since))
        return [_record_from_row(row) for row in rows]

    def count(self) -> int:
        return self.db.count_sync_logs()
