"""Full-snapshot sync.

The older, coarser sync path: a client uploads its whole task database as
one JSON document and downloads it again on another device. One document
is kept per user; an upload replaces it entirely (last write wins).

This storage is independent of the delta sync change log and the two are
not reconciled.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from .database import Database
from .serialization import JsonCodec
from .timestamp_utils import format_timestamp, parse_timestamp, utc_now

logger = logging.getLogger(__name__)

__all__ = ["SnapshotSyncResponse", "SnapshotSyncService"]

REQUIRED_COLLECTIONS = ("tasks", "categories")


@dataclass
class SnapshotSyncResponse:
    """Result of an upload or download."""

    task_database: Optional[str] = None
    last_sync_at: Optional[datetime] = None
    message: str = ""
    success: bool = True

    @classmethod
    def ok(cls, task_database: str, last_sync_at: datetime, message: str) -> "SnapshotSyncResponse":
        return cls(task_database=task_database, last_sync_at=last_sync_at, message=message, success=True)

    @classmethod
    def error(cls, message: str) -> "SnapshotSyncResponse":
        return cls(message=message, success=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "taskDatabase": self.task_database,
            "lastSyncAt": format_timestamp(self.last_sync_at),
            "message": self.message,
            "success": self.success,
        }


class SnapshotSyncService:
    """Stores and serves one whole-database JSON blob per user."""

    def __init__(
        self,
        db: Database,
        codec: Optional[JsonCodec] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.db = db
        self.codec = codec or JsonCodec()
        self.clock = clock

    def upload_database(self, user_id: str, task_database: Optional[str]) -> SnapshotSyncResponse:
        """Store a user's task database, replacing any previous one.

        Args:
            user_id: Owner of the database
            task_database: JSON document with "tasks" and "categories" arrays

        Returns:
            SnapshotSyncResponse with the stored document, or success=False
            with the reason if the document was rejected or could not be stored
        """
        if not isinstance(task_database, str) or not task_database.strip():
            return SnapshotSyncResponse.error("Task database data is required")

        problem = self._validate_document(task_database)
        if problem:
            logger.warning(f"Rejected snapshot upload from {user_id}: {problem}")
            return SnapshotSyncResponse.error(f"Invalid task database: {problem}")

        try:
            existing = self.db.get_user_task_database(user_id)
            merged = self.merge_task_databases(
                existing["task_database"] if existing else None, task_database
            )
            now = self.clock()
            self.db.save_user_task_database(user_id, merged, format_timestamp(now))
        except Exception as e:
            logger.error(f"Error storing task database for {user_id}: {e}")
            return SnapshotSyncResponse.error(f"Error uploading task database: {e}")

        logger.info(f"Stored task database for {user_id} ({len(merged)} bytes)")
        return SnapshotSyncResponse.ok(merged, now, "Task database uploaded")

    def download_database(self, user_id: str) -> SnapshotSyncResponse:
        """Fetch a user's task database.

        A user who never uploaded gets an empty database. Either way the
        user's last sync time moves to now.
        """
        try:
            now = self.clock()
            existing = self.db.get_user_task_database(user_id)
            task_database = existing["task_database"] if existing else None
            if not task_database:
                task_database = self._empty_database(now)
            self.db.update_user_last_sync_at(user_id, format_timestamp(now))
        except Exception as e:
            logger.error(f"Error loading task database for {user_id}: {e}")
            return SnapshotSyncResponse.error(f"Error downloading task database: {e}")

        return SnapshotSyncResponse.ok(task_database, now, "Task database downloaded")

    def get_status(self, user_id: str) -> Dict[str, Any]:
        """Snapshot sync status of a user: last sync time and whether data is stored."""
        row = self.db.get_user_task_database(user_id)
        last_sync_at = parse_timestamp(row["last_sync_at"]) if row and row["last_sync_at"] else None
        return {
            "userId": user_id,
            "lastSyncAt": format_timestamp(last_sync_at),
            "hasData": bool(row and row["task_database"] is not None),
        }

    def merge_task_databases(self, existing: Optional[str], new: str) -> str:
        """Combine a stored database with an uploaded one.

        Whole-document last write wins: the upload replaces what was
        stored, whatever existing holds. Field-level merging is not done.
        """
        return new

    def _validate_document(self, raw: str) -> Optional[str]:
        try:
            document = self.codec.parse(raw)
        except (ValueError, TypeError, RecursionError) as e:
            return f"malformed JSON ({e})"
        if not isinstance(document, dict):
            return "must be a JSON object"
        for key in REQUIRED_COLLECTIONS:
            if key not in document:
                return "must contain 'tasks' and 'categories'"
            if not isinstance(document[key], list):
                return f"'{key}' must be an array"
        return None

    def _empty_database(self, now: datetime) -> str:
        return self.codec.stringify({
            "tasks": [],
            "categories": [],
            "lastModified": format_timestamp(now),
        })
