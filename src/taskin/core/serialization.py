"""JSON serialization for Taskin services.

Services take a JsonCodec in their constructor instead of reaching for a
shared module-level encoder, so tests can substitute their own.
"""

from __future__ import annotations

import json
from typing import Any


class JsonCodec:
    """Parses and produces JSON text."""

    def __init__(self, sort_keys: bool = False) -> None:
        self.sort_keys = sort_keys

    def parse(self, raw: str) -> Any:
        """Parse JSON text.

        Raises:
            ValueError: If raw is not valid JSON
        """
        return json.loads(raw)

    def stringify(self, value: Any) -> str:
        """Serialize a value to compact JSON text."""
        return json.dumps(value, ensure_ascii=False, sort_keys=self.sort_keys, separators=(",", ":"))
