"""Version conflict detection for delta sync.

A change conflicts when the log already holds a newer version of the same
entity than the one the client claims to be editing. Nothing is resolved
here; the conflict is handed back to the client with both versions.

Version equality is not a conflict, so a client may resend the version it
already has (last write wins between equal versions).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional, Sequence

from .metadata import extract_version
from .models import ChangeRecord
from .serialization import JsonCodec

if TYPE_CHECKING:
    from .delta_sync import SyncChange, SyncConflict

logger = logging.getLogger(__name__)

__all__ = ["server_version", "latest_record", "detect_conflict"]


def server_version(records: Sequence[ChangeRecord], codec: Optional[JsonCodec] = None) -> int:
    """Highest version found in the snapshots of records (0 if none)."""
    return max((extract_version(r.data_snapshot, codec) for r in records), default=0)


def latest_record(
    records: Sequence[ChangeRecord], codec: Optional[JsonCodec] = None
) -> Optional[ChangeRecord]:
    """The record holding the highest version.

    Records are expected newest first; among equal versions the newest one
    wins.
    """
    best: Optional[ChangeRecord] = None
    best_version = 0
    for record in records:
        version = extract_version(record.data_snapshot, codec)
        if best is None or version > best_version:
            best = record
            best_version = version
    return best


def detect_conflict(
    records: Sequence[ChangeRecord],
    change: "SyncChange",
    codec: Optional[JsonCodec] = None,
) -> Optional["SyncConflict"]:
    """Check an incoming change against the entity's history.

    Args:
        records: Existing records for the entity, newest first
        change: Incoming change
        codec: JSON codec used to read the snapshots

    Returns:
        SyncConflict if the server holds a strictly newer version, else None
    """
    from .delta_sync import SyncConflict

    current = server_version(records, codec)
    if current <= change.version:
        return None

    source = latest_record(records, codec)
    logger.info(
        f"Conflict on {change.entity_type} {change.entity_id}: "
        f"server v{current} > client v{change.version}"
    )
    return SyncConflict(
        entity_type=change.entity_type,
        entity_id=change.entity_id,
        local_version=change.version,
        server_version=current,
        server_data=source.data_snapshot if source else None,
        local_data=change.data,
    )
