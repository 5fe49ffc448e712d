"""Input validation for Taskin.

This module provides validation functions for everything that crosses the
HTTP and CLI boundaries. All validators raise ValidationError with
descriptive messages.

Change payloads (the opaque "data" JSON of a change) are deliberately NOT
validated here; see core.metadata for the best-effort reading of them.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Dict, Optional

from .timestamp_utils import parse_timestamp

__all__ = [
    "ValidationError",
    "validate_user_id",
    "validate_team_id",
    "validate_entity_type",
    "validate_entity_id",
    "validate_action",
    "validate_version",
    "validate_timestamp",
    "validate_change_dict",
    "validate_role",
]

MAX_ID_LENGTH = 255
MAX_ENTITY_TYPE_LENGTH = 50
MAX_ACTION_LENGTH = 20
TEAM_ROLES = frozenset(["owner", "member"])
INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+")


class ValidationError(ValueError):
    """Validation error with field and message attributes."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"

    def __repr__(self) -> str:
        return f"ValidationError(field='{self.field}', message='{self.message}')"


def _validate_identifier(value: Any, field_name: str, max_length: int = MAX_ID_LENGTH) -> str:
    if not isinstance(value, str):
        raise ValidationError(
            field_name, f"must be a string, got {type(value).__name__}"
        )
    stripped = value.strip()
    if not stripped:
        raise ValidationError(field_name, "cannot be empty or whitespace only")
    if len(stripped) > max_length:
        raise ValidationError(
            field_name, f"cannot exceed {max_length} characters (got {len(stripped)})"
        )
    return stripped


def validate_user_id(user_id: Any) -> str:
    """Validate a user ID and return it stripped."""
    return _validate_identifier(user_id, "user_id")


def validate_team_id(team_id: Any) -> str:
    """Validate a team ID and return it stripped."""
    return _validate_identifier(team_id, "team_id")


def validate_entity_type(entity_type: Any) -> str:
    """Validate an entity type.

    Entity types are an open set ("task", "project", "category", ...), so only
    the shape is checked.
    """
    return _validate_identifier(entity_type, "entityType", MAX_ENTITY_TYPE_LENGTH)


def validate_entity_id(entity_id: Any) -> str:
    """Validate an entity ID (opaque string)."""
    return _validate_identifier(entity_id, "entityId")


def validate_action(action: Any) -> str:
    """Validate a change action.

    Unknown actions are logged like any other; they just never trigger
    team-sharing side effects.
    """
    return _validate_identifier(action, "action", MAX_ACTION_LENGTH)


def validate_version(version: Any) -> int:
    """Validate a client-claimed version number.

    Integer strings such as "3" are accepted and converted.
    """
    if version is None:
        return 0
    if isinstance(version, str) and INTEGER_PATTERN.fullmatch(version.strip()):
        return int(version)
    if isinstance(version, bool) or not isinstance(version, int):
        raise ValidationError(
            "version", f"must be an integer, got {type(version).__name__}"
        )
    return version


def validate_timestamp(value: Any, field_name: str = "timestamp") -> Optional[datetime]:
    """Validate an optional ISO-8601 timestamp and parse it.

    Returns:
        Naive UTC datetime, or None if value is None or empty
    """
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError(
            field_name, f"must be an ISO-8601 string, got {type(value).__name__}"
        )
    try:
        return parse_timestamp(value)
    except ValueError:
        raise ValidationError(field_name, f"invalid ISO-8601 timestamp: '{value}'") from None


def validate_change_dict(change: Any, index: int) -> Dict[str, Any]:
    """Validate one change of a delta sync request body."""
    if not isinstance(change, dict):
        raise ValidationError(
            "changes", f"item {index} must be an object, got {type(change).__name__}"
        )
    for required in ("entityType", "entityId", "action"):
        if required not in change:
            raise ValidationError("changes", f"item {index}: missing required field '{required}'")
    data = change.get("data")
    if data is not None and not isinstance(data, str):
        raise ValidationError("changes", f"item {index}: data must be a JSON string")
    try:
        return {
            "entityType": validate_entity_type(change["entityType"]),
            "entityId": validate_entity_id(change["entityId"]),
            "action": validate_action(change["action"]),
            "data": data,
            "timestamp": validate_timestamp(change.get("timestamp")),
            "version": validate_version(change.get("version")),
        }
    except ValidationError as e:
        raise ValidationError("changes", f"item {index}: {e.field} {e.message}") from None


def validate_role(role: Any) -> str:
    """Validate a team membership role."""
    if role not in TEAM_ROLES:
        raise ValidationError("role", f"must be one of {sorted(TEAM_ROLES)}, got '{role}'")
    return role
