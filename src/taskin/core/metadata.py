"""Version and team extraction from change snapshots.

A change's data snapshot is client-controlled JSON that is not schema
validated. By convention it carries a "version" integer and an optional
"teamId". Reading them is best-effort: every failure degrades to
version 0 / no team and nothing here ever raises.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

from .models import SnapshotMetadata
from .serialization import JsonCodec

logger = logging.getLogger(__name__)

_INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+")


def parse_metadata(raw: Optional[str], codec: Optional[JsonCodec] = None) -> SnapshotMetadata:
    """Extract version and team ID from a data snapshot.

    Args:
        raw: Snapshot JSON text (may be None, empty or malformed)
        codec: JSON codec to parse with

    Returns:
        SnapshotMetadata; defaults (0, None) for anything unreadable
    """
    if raw is None or not isinstance(raw, str) or not raw.strip():
        return SnapshotMetadata()

    try:
        data = (codec or JsonCodec()).parse(raw)
    except (ValueError, TypeError, RecursionError):
        logger.debug("Unparsable snapshot, using default metadata")
        return SnapshotMetadata()

    if not isinstance(data, dict):
        return SnapshotMetadata()

    return SnapshotMetadata(
        version=_coerce_version(data.get("version")),
        team_id=_coerce_team_id(data.get("teamId")),
    )


def extract_version(raw: Optional[str], codec: Optional[JsonCodec] = None) -> int:
    """Get the version embedded in a snapshot (0 if absent or invalid)."""
    return parse_metadata(raw, codec).version


def extract_team_id(raw: Optional[str], codec: Optional[JsonCodec] = None) -> Optional[str]:
    """Get the team ID embedded in a snapshot (None if absent or invalid)."""
    return parse_metadata(raw, codec).team_id


def _coerce_version(value: Any) -> int:
    # bool is an int subclass but "version": true is not a version
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, str) and _INTEGER_PATTERN.fullmatch(value):
        return int(value)
    return 0


def _coerce_team_id(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    # Objects and arrays are not team IDs
    return None
