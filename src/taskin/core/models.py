"""Data models for the Taskin sync server.

This module defines immutable dataclasses for the persisted records of the
sync subsystem: the change log, shared-task links and team memberships.

Record IDs are UUID7 hex strings (32 characters, no hyphens). Entity IDs are
opaque strings chosen by the mobile client.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

ENTITY_TASK = "task"
ENTITY_PROJECT = "project"
ENTITY_CATEGORY = "category"

# Open set: unknown entity types are logged and synced like any other
ENTITY_TYPES = frozenset([ENTITY_TASK, ENTITY_PROJECT, ENTITY_CATEGORY])

ACTION_CREATE = "create"
ACTION_UPDATE = "update"
ACTION_DELETE = "delete"

ACTIONS = frozenset([ACTION_CREATE, ACTION_UPDATE, ACTION_DELETE])


@dataclass(frozen=True)
class ChangeRecord:
    """One accepted mutation in the append-only change log.

    Attributes:
        id: Record ID (UUID7 hex), generated on write
        user_id: Author of the change
        entity_type: "task", "project", "category", ...
        entity_id: ID of the affected entity
        action: "create", "update" or "delete"
        team_id: Team the entity is shared with, if any
        timestamp: Server-assigned creation time (naive UTC), immutable
        data_snapshot: Full serialized entity state (opaque JSON text)
    """

    id: str
    user_id: str
    entity_type: str
    entity_id: str
    action: str
    team_id: Optional[str]
    timestamp: datetime
    data_snapshot: Optional[str] = None


@dataclass(frozen=True)
class SharedTaskLink:
    """Marks a task as visible to a team.

    Unique on (task_id, team_id).
    """

    id: str
    task_id: str
    team_id: str
    created_by: str
    shared_at: datetime


@dataclass(frozen=True)
class TeamMembership:
    """A user's membership in a team."""

    team_id: str
    user_id: str
    role: str
    joined_at: datetime


@dataclass(frozen=True)
class SnapshotMetadata:
    """Sync metadata read out of a change's data snapshot.

    Attributes:
        version: Client-assigned entity version (0 when unknown)
        team_id: Team the entity belongs to, if any
    """

    version: int = 0
    team_id: Optional[str] = None
