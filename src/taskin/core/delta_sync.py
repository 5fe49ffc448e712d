"""Delta synchronization between mobile clients and the server.

A client sends the changes it made since its last sync together with the
server timestamp it got back last time (lastSyncAt). The server:

1. Applies each change in order, unless the log already holds a newer
   version of the entity, in which case a conflict is reported instead.
2. Returns every change made since lastSyncAt by *other* users that the
   client may see: its own user's changes from other devices are excluded
   too, since they are indistinguishable from its own (echo suppression).
3. Hands back a new lastSyncAt, captured before any change was applied.

Conflicts are reported, never resolved. A failing change is skipped and
logged; it does not fail the batch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from .changelog import ChangeLogStore
from .conflicts import detect_conflict
from .database import Database
from .metadata import extract_team_id, extract_version
from .models import ChangeRecord
from .serialization import JsonCodec
from .sharing import SharedTaskRegistry
from .teams import TeamVisibilityResolver
from .timestamp_utils import far_past, format_timestamp, utc_now
from .validation import ValidationError, validate_change_dict, validate_timestamp

logger = logging.getLogger(__name__)

__all__ = [
    "SyncChange",
    "DeltaSyncRequest",
    "ServerChange",
    "SyncConflict",
    "ChangeOutcome",
    "DeltaSyncResponse",
    "DeltaSyncService",
    "APPLIED",
    "CONFLICT",
    "SKIPPED",
]

APPLIED = "applied"
CONFLICT = "conflict"
SKIPPED = "skipped"


@dataclass
class SyncChange:
    """A change submitted by a client."""

    entity_type: str  # "task", "project", "category", ...
    entity_id: str
    action: str  # "create", "update", "delete"
    data: Optional[str] = None  # JSON snapshot of the entity, not validated
    timestamp: Optional[datetime] = None  # client clock, informational only
    version: int = 0  # version the client believes it is editing
    problem: Optional[str] = None  # set when the wire form was unusable

    @classmethod
    def from_dict(cls, data: Dict[str, Any], index: int = 0) -> "SyncChange":
        """Build a change from its wire form.

        Raises:
            ValidationError: If required fields are missing or mistyped
        """
        clean = validate_change_dict(data, index)
        return cls(
            entity_type=clean["entityType"],
            entity_id=clean["entityId"],
            action=clean["action"],
            data=clean["data"],
            timestamp=clean["timestamp"],
            version=clean["version"],
        )

    @classmethod
    def rejected(cls, data: Any, problem: str) -> "SyncChange":
        """Stand-in for an item that failed validation, kept so it can be reported."""
        raw = data if isinstance(data, dict) else {}

        def text(key: str) -> str:
            value = raw.get(key)
            return value if isinstance(value, str) else ""

        return cls(
            entity_type=text("entityType"),
            entity_id=text("entityId"),
            action=text("action"),
            problem=problem,
        )


@dataclass
class DeltaSyncRequest:
    """A batch of client changes plus the client's sync checkpoint."""

    changes: List[SyncChange] = field(default_factory=list)
    last_sync_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Any) -> "DeltaSyncRequest":
        """Parse a request body.

        Only the envelope is strict. An item that fails validation is kept
        as a rejected change so the rest of the batch still goes through.

        Raises:
            ValidationError: If the body is not an object, changes is not a
                list, or lastSyncAt is not a timestamp
        """
        if not isinstance(data, dict):
            raise ValidationError("body", "must be a JSON object")
        raw_changes = data.get("changes")
        if raw_changes is None:
            raw_changes = []
        if not isinstance(raw_changes, list):
            raise ValidationError("changes", "must be a list")
        last_sync_at = validate_timestamp(data.get("lastSyncAt"), "lastSyncAt")
        changes: List[SyncChange] = []
        for i, raw in enumerate(raw_changes):
            try:
                changes.append(SyncChange.from_dict(raw, i))
            except ValidationError as e:
                changes.append(SyncChange.rejected(raw, e.message))
        return cls(changes=changes, last_sync_at=last_sync_at)


@dataclass
class ServerChange:
    """A logged change sent back to a client."""

    entity_type: str
    entity_id: str
    action: str
    data: Optional[str]
    timestamp: datetime
    version: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entityType": self.entity_type,
            "entityId": self.entity_id,
            "action": self.action,
            "data": self.data,
            "timestamp": format_timestamp(self.timestamp),
            "version": self.version,
        }


@dataclass
class SyncConflict:
    """A change rejected because the server holds a newer version."""

    entity_type: str
    entity_id: str
    local_version: int
    server_version: int
    server_data: Optional[str]
    local_data: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entityType": self.entity_type,
            "entityId": self.entity_id,
            "localVersion": self.local_version,
            "serverVersion": self.server_version,
            "serverData": self.server_data,
            "localData": self.local_data,
        }


@dataclass
class ChangeOutcome:
    """What happened to one submitted change.

    Attributes:
        status: "applied", "conflict" or "skipped"
        change: The submitted change
        record: Log record written (applied only)
        conflict: Conflict descriptor (conflict only)
        reason: Why the change was skipped (skipped only)
    """

    status: str
    change: SyncChange
    record: Optional[ChangeRecord] = None
    conflict: Optional[SyncConflict] = None
    reason: Optional[str] = None


@dataclass
class DeltaSyncResponse:
    """Result of a delta sync."""

    changes: List[ServerChange] = field(default_factory=list)
    conflicts: List[SyncConflict] = field(default_factory=list)
    last_sync_at: Optional[datetime] = None
    success: bool = True
    message: str = ""
    outcomes: List[ChangeOutcome] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "changes": [c.to_dict() for c in self.changes],
            "conflicts": [c.to_dict() for c in self.conflicts],
            "lastSyncAt": format_timestamp(self.last_sync_at),
            "success": self.success,
            "message": self.message,
        }


class DeltaSyncService:
    """Applies client change batches and computes what each client must pull."""

    def __init__(
        self,
        db: Database,
        codec: Optional[JsonCodec] = None,
        clock: Callable[[], datetime] = utc_now,
        lookback_days: int = 7,
        far_past_years: int = 10,
    ) -> None:
        self.db = db
        self.codec = codec or JsonCodec()
        self.clock = clock
        self.lookback_days = lookback_days
        self.far_past_years = far_past_years
        self.change_log = ChangeLogStore(db, clock)
        self.teams = TeamVisibilityResolver(db, clock)
        self.shared_tasks = SharedTaskRegistry(db, clock)

    def process_delta_sync(self, request: DeltaSyncRequest, user_id: str) -> DeltaSyncResponse:
        """Apply a batch of changes and return what the client is missing.

        Never raises. Failures outside the per-change loop (team lookup,
        pull query) produce a response with success=False, in which case the
        client should retry later with the same lastSyncAt.
        """
        sync_timestamp = self.clock()
        logger.info(
            f"Delta sync for {user_id}: {len(request.changes)} changes, "
            f"lastSyncAt={format_timestamp(request.last_sync_at)}"
        )

        try:
            team_ids = self.teams.get_user_team_ids(user_id)
        except Exception as e:
            logger.error(f"Delta sync for {user_id} failed resolving teams: {e}")
            return DeltaSyncResponse(
                last_sync_at=sync_timestamp,
                success=False,
                message=f"Delta sync failed: {e}",
            )

        outcomes = [self.apply_change(change, user_id) for change in request.changes]
        conflicts = [o.conflict for o in outcomes if o.status == CONFLICT and o.conflict]

        try:
            changes = self._pull(user_id, team_ids, request.last_sync_at, sync_timestamp)
        except Exception as e:
            logger.error(f"Delta sync for {user_id} failed pulling changes: {e}")
            return DeltaSyncResponse(
                conflicts=conflicts,
                last_sync_at=sync_timestamp,
                success=False,
                message=f"Delta sync failed: {e}",
                outcomes=outcomes,
            )

        counts = {status: 0 for status in (APPLIED, CONFLICT, SKIPPED)}
        for outcome in outcomes:
            counts[outcome.status] += 1
        message = (
            f"Delta sync completed: {counts[APPLIED]} applied, {counts[CONFLICT]} conflicts, "
            f"{counts[SKIPPED]} skipped, {len(changes)} changes returned"
        )
        logger.info(f"{message} for {user_id}")

        return DeltaSyncResponse(
            changes=changes,
            conflicts=conflicts,
            last_sync_at=sync_timestamp,
            success=True,
            message=message,
            outcomes=outcomes,
        )

    def apply_change(self, change: SyncChange, user_id: str) -> ChangeOutcome:
        """Check one change for a conflict and, if there is none, apply it.

        The history read, the version check and the writes happen in one
        immediate transaction, so two requests cannot both pass the check
        for the same entity. Any error rolls the change back and yields a
        skipped outcome, as does a change that failed validation.
        """
        if change.problem is not None:
            logger.warning(f"Skipping invalid change from {user_id}: {change.problem}")
            return ChangeOutcome(status=SKIPPED, change=change, reason=change.problem)
        try:
            with self.db.transaction():
                records = self.change_log.find_by_entity(change.entity_type, change.entity_id)
                conflict = detect_conflict(records, change, self.codec)
                if conflict is not None:
                    return ChangeOutcome(status=CONFLICT, change=change, conflict=conflict)

                team_id = extract_team_id(change.data, self.codec)
                record = self.change_log.append(
                    user_id, change.entity_type, change.entity_id, change.action,
                    team_id, change.data,
                )
                self.shared_tasks.mirror(
                    change.entity_type, change.entity_id, change.action, team_id, user_id
                )
                return ChangeOutcome(status=APPLIED, change=change, record=record)
        except Exception as e:
            logger.error(
                f"Error processing {change.action} of {change.entity_type} "
                f"{change.entity_id} for {user_id}: {e}"
            )
            return ChangeOutcome(status=SKIPPED, change=change, reason=str(e))

    def log_change(
        self,
        user_id: str,
        entity_type: str,
        entity_id: str,
        action: str,
        team_id: Optional[str] = None,
        data_snapshot: Optional[str] = None,
    ) -> ChangeRecord:
        """Record a change made on the server side.

        No conflict check and no sharing side effect; other clients pick the
        change up on their next pull.
        """
        return self.change_log.append(user_id, entity_type, entity_id, action, team_id, data_snapshot)

    def get_changes_since(self, user_id: str, since: Optional[datetime] = None) -> List[ServerChange]:
        """Changes visible to a user after a timestamp, oldest first.

        Unlike a delta sync pull, the user's own changes are included.
        Without since, the last lookback_days days are returned.
        """
        if since is None:
            since = self.clock() - timedelta(days=self.lookback_days)
        team_ids = self.teams.get_user_team_ids(user_id)
        records = self.change_log.find_visible_since(user_id, team_ids, since)
        return [self._to_server_change(r) for r in records]

    def _pull(
        self,
        user_id: str,
        team_ids: List[str],
        last_sync_at: Optional[datetime],
        now: datetime,
    ) -> List[ServerChange]:
        since = last_sync_at if last_sync_at is not None else far_past(now, self.far_past_years)
        records = self.change_log.find_visible_since(user_id, team_ids, since)
        return [self._to_server_change(r) for r in records if r.user_id != user_id]

    def _to_server_change(self, record: ChangeRecord) -> ServerChange:
        return ServerChange(
            entity_type=record.entity_type,
            entity_id=record.entity_id,
            action=record.action,
            data=record.data_snapshot,
            timestamp=record.timestamp,
            version=extract_version(record.data_snapshot, self.codec),
        )
