"""Database operations for Taskin.

This module provides all data access functionality using SQLite.
All query methods return JSON-serializable types (dicts, lists, primitives);
the store classes in changelog, sharing and teams turn them into models.

Timestamps are stored as canonical text (see timestamp_utils) so that
string comparison matches chronological order.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union

logger = logging.getLogger(__name__)

__all__ = ["Database"]

SCHEMA = """
CREATE TABLE IF NOT EXISTS sync_logs (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    entity_type TEXT NOT NULL,
    entity_id TEXT NOT NULL,
    action TEXT NOT NULL,
    team_id TEXT,
    timestamp TEXT NOT NULL,
    data_snapshot TEXT
);
CREATE INDEX IF NOT EXISTS idx_sync_user_timestamp ON sync_logs (user_id, timestamp);
CREATE INDEX IF NOT EXISTS idx_sync_team_timestamp ON sync_logs (team_id, timestamp);
CREATE INDEX IF NOT EXISTS idx_sync_entity ON sync_logs (entity_type, entity_id);

CREATE TABLE IF NOT EXISTS shared_tasks (
    id TEXT PRIMARY KEY,
    task_id TEXT NOT NULL,
    team_id TEXT NOT NULL,
    created_by TEXT NOT NULL,
    shared_at TEXT NOT NULL,
    UNIQUE (task_id, team_id)
);

CREATE TABLE IF NOT EXISTS team_members (
    team_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    role TEXT NOT NULL DEFAULT 'member',
    joined_at TEXT NOT NULL,
    PRIMARY KEY (team_id, user_id)
);
CREATE INDEX IF NOT EXISTS idx_team_members_user ON team_members (user_id);

CREATE TABLE IF NOT EXISTS user_task_databases (
    user_id TEXT PRIMARY KEY,
    task_database TEXT,
    last_sync_at TEXT
);
"""


class Database:
    """SQLite access for the sync subsystem.

    One connection is shared by all threads of the server; a re-entrant lock
    serializes access to it. Writes outside an explicit transaction() are
    committed immediately.
    """

    def __init__(self, db_path: Union[Path, str]) -> None:
        """Initialize database connection and create the schema.

        Args:
            db_path: Path to the SQLite database file, or ':memory:' for in-memory
        """
        self.db_path = str(db_path)
        self._lock = threading.RLock()
        self._depth = 0
        self.conn = sqlite3.connect(
            self.db_path, check_same_thread=False, isolation_level=None
        )
        self.conn.row_factory = sqlite3.Row
        with self._lock:
            self.conn.executescript(SCHEMA)
        logger.info(f"Opened database at {self.db_path}")

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self.conn.close()
        logger.info("Closed database connection")

    @contextmanager
    def transaction(self) -> Iterator["Database"]:
        """Run a block of reads and writes as one immediate transaction.

        BEGIN IMMEDIATE takes SQLite's write lock up front, so a
        read-check-write sequence inside the block cannot interleave with
        another writer. Nested calls join the outer transaction. On error
        the whole transaction is rolled back and the exception re-raised.
        """
        with self._lock:
            if self._depth > 0:
                self._depth += 1
                try:
                    yield self
                finally:
                    self._depth -= 1
                return

            self.conn.execute("BEGIN IMMEDIATE")
            self._depth = 1
            try:
                yield self
            except BaseException:
                self._depth = 0
                self.conn.execute("ROLLBACK")
                raise
            self._depth = 0
            self.conn.execute("COMMIT")

    def _execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        with self._lock:
            return self.conn.execute(sql, params)

    def _fetch_all(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        with self._lock:
            rows = self.conn.execute(sql, params).fetchall()
        return [dict(row) for row in rows]

    def _fetch_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self.conn.execute(sql, params).fetchone()
        return dict(row) if row is not None else None

    # ============================================================================
    # Change log
    # ============================================================================

    def insert_sync_log(self, record: Dict[str, Any]) -> None:
        """Append a change record.

        Args:
            record: Dict with id, user_id, entity_type, entity_id, action,
                team_id, timestamp and data_snapshot
        """
        self._execute(
            """
            INSERT INTO sync_logs
                (id, user_id, entity_type, entity_id, action, team_id, timestamp, data_snapshot)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record["id"],
                record["user_id"],
                record["entity_type"],
                record["entity_id"],
                record["action"],
                record.get("team_id"),
                record["timestamp"],
                record.get("data_snapshot"),
            ),
        )

    def get_sync_logs_for_entity(self, entity_type: str, entity_id: str) -> List[Dict[str, Any]]:
        """Get all change records for one entity, newest first."""
        return self._fetch_all(
            """
            SELECT * FROM sync_logs
            WHERE entity_type = ? AND entity_id = ?
            ORDER BY timestamp DESC, rowid DESC
            """,
            (entity_type, entity_id),
        )

    def get_sync_logs_since(
        self, user_id: str, team_ids: Sequence[str], since: str
    ) -> List[Dict[str, Any]]:
        """Get change records visible to a user after a timestamp.

        A record is visible when the user authored it or it belongs to one of
        the given teams.

        Args:
            user_id: Requesting user
            team_ids: Teams the user belongs to
            since: Canonical timestamp; only records strictly after it match

        Returns:
            Records in ascending timestamp order
        """
        params: List[Any] = [user_id]
        scope = "user_id = ?"
        if team_ids:
            placeholders = ",".join("?" for _ in team_ids)
            scope += f" OR team_id IN ({placeholders})"
            params.extend(team_ids)
        params.append(since)
        return self._fetch_all(
            f"""
            SELECT * FROM sync_logs
            WHERE ({scope}) AND timestamp > ?
            ORDER BY timestamp ASC, rowid ASC
            """,
            params,
        )

    def count_sync_logs(self) -> int:
        """Count all change records."""
        row = self._fetch_one("SELECT COUNT(*) AS n FROM sync_logs")
        return row["n"] if row else 0

    # ============================================================================
    # Shared tasks
    # ============================================================================

    def shared_task_exists(self, task_id: str, team_id: str) -> bool:
        """Check whether a task is shared with a team."""
        row = self._fetch_one(
            "SELECT 1 AS found FROM shared_tasks WHERE task_id = ? AND team_id = ?",
            (task_id, team_id),
        )
        return row is not None

    def insert_shared_task(
        self, link_id: str, task_id: str, team_id: str, created_by: str, shared_at: str
    ) -> bool:
        """Share a task with a team.

        Returns:
            True if a link was created, False if it already existed
        """
        cursor = self._execute(
            """
            INSERT OR IGNORE INTO shared_tasks (id, task_id, team_id, created_by, shared_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (link_id, task_id, team_id, created_by, shared_at),
        )
        return cursor.rowcount > 0

    def delete_shared_task(self, task_id: str, team_id: str) -> bool:
        """Stop sharing a task with a team.

        Returns:
            True if a link was removed
        """
        cursor = self._execute(
            "DELETE FROM shared_tasks WHERE task_id = ? AND team_id = ?",
            (task_id, team_id),
        )
        return cursor.rowcount > 0

    def get_shared_tasks_for_task(self, task_id: str) -> List[Dict[str, Any]]:
        """Get all team links of a task."""
        return self._fetch_all(
            "SELECT * FROM shared_tasks WHERE task_id = ? ORDER BY shared_at, rowid",
            (task_id,),
        )

    def get_shared_task_ids_for_teams(self, team_ids: Sequence[str]) -> List[str]:
        """Get IDs of tasks shared with any of the given teams."""
        if not team_ids:
            return []
        placeholders = ",".join("?" for _ in team_ids)
        rows = self._fetch_all(
            f"""
            SELECT DISTINCT task_id FROM shared_tasks
            WHERE team_id IN ({placeholders})
            ORDER BY task_id
            """,
            list(team_ids),
        )
        return [row["task_id"] for row in rows]

    # ============================================================================
    # Team membership
    # ============================================================================

    def insert_team_member(self, team_id: str, user_id: str, role: str, joined_at: str) -> bool:
        """Add a user to a team.

        Returns:
            True if the membership was created, False if it already existed
        """
        cursor = self._execute(
            """
            INSERT OR IGNORE INTO team_members (team_id, user_id, role, joined_at)
            VALUES (?, ?, ?, ?)
            """,
            (team_id, user_id, role, joined_at),
        )
        return cursor.rowcount > 0

    def delete_team_member(self, team_id: str, user_id: str) -> bool:
        """Remove a user from a team."""
        cursor = self._execute(
            "DELETE FROM team_members WHERE team_id = ? AND user_id = ?",
            (team_id, user_id),
        )
        return cursor.rowcount > 0

    def get_team_ids_for_user(self, user_id: str) -> List[str]:
        """Get IDs of all teams a user belongs to."""
        rows = self._fetch_all(
            "SELECT team_id FROM team_members WHERE user_id = ? ORDER BY joined_at, team_id",
            (user_id,),
        )
        return [row["team_id"] for row in rows]

    def get_team_members(self, team_id: str) -> List[Dict[str, Any]]:
        """Get all memberships of a team."""
        return self._fetch_all(
            "SELECT * FROM team_members WHERE team_id = ? ORDER BY joined_at, user_id",
            (team_id,),
        )

    # ============================================================================
    # Full-snapshot task databases
    # ============================================================================

    def get_user_task_database(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Get a user's stored task database blob and last sync time."""
        return self._fetch_one(
            "SELECT * FROM user_task_databases WHERE user_id = ?",
            (user_id,),
        )

    def save_user_task_database(self, user_id: str, task_database: str, last_sync_at: str) -> None:
        """Store (replace) a user's task database blob."""
        self._execute(
            """
            INSERT INTO user_task_databases (user_id, task_database, last_sync_at)
            VALUES (?, ?, ?)
            ON CONFLICT (user_id) DO UPDATE SET
                task_database = excluded.task_database,
                last_sync_at = excluded.last_sync_at
            """,
            (user_id, task_database, last_sync_at),
        )

    def update_user_last_sync_at(self, user_id: str, last_sync_at: str) -> None:
        """Record a full-snapshot sync time for a user."""
        self._execute(
            """
            INSERT INTO user_task_databases (user_id, task_database, last_sync_at)
            VALUES (?, NULL, ?)
            ON CONFLICT (user_id) DO UPDATE SET last_sync_at = excluded.last_sync_at
            """,
            (user_id, last_sync_at),
        )
