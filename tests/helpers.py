"""Shared helpers for Taskin tests."""

from __future__ import annotations

import json
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from taskin.core.delta_sync import DeltaSyncRequest, SyncChange


class FakeClock:
    """Deterministic clock for services that take a clock callable.

    Every reading returns the current time and then advances it by step,
    so consecutive server timestamps are strictly increasing.
    """

    def __init__(self, start: datetime, step: timedelta = timedelta(seconds=1)) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = current + self.step
        return current

    def advance(self, delta: timedelta) -> None:
        self.now += delta

    def peek(self) -> datetime:
        """Time the next reading will return."""
        return self.now


def snapshot(version: Optional[Any] = None, team_id: Optional[Any] = None, **fields: Any) -> str:
    """Build an entity snapshot as a client would send it."""
    data: dict = dict(fields)
    if version is not None:
        data["version"] = version
    if team_id is not None:
        data["teamId"] = team_id
    return json.dumps(data)


def change(
    entity_id: str,
    version: int = 0,
    action: str = "update",
    entity_type: str = "task",
    data: Optional[str] = None,
    team_id: Optional[str] = None,
) -> SyncChange:
    """Build a SyncChange whose snapshot embeds version and team."""
    if data is None:
        data = snapshot(version=version, team_id=team_id, title=f"Task {entity_id}")
    return SyncChange(
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        data=data,
        version=version,
    )


def request_with(*changes: SyncChange, last_sync_at: Optional[datetime] = None) -> DeltaSyncRequest:
    return DeltaSyncRequest(changes=list(changes), last_sync_at=last_sync_at)


def user(user_id: str) -> Dict[str, str]:
    """Request headers identifying a user."""
    return {"X-User-ID": user_id}
