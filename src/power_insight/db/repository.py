"""Data access layer for the durable key/value state store."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

import aiosqlite

logger = logging.getLogger(__name__)

PREFERENCES_KEY = "preferences"
PREDICTION_CACHE_KEY = "prediction_cache"
HISTORY_KEY = "power_history"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Repository:
    """JSON values keyed by name, written through on every change."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self.db = db

    # ── Generic key/value ──────────────────────────────────

    async def get_json(self, key: str) -> Any | None:
        """Return the decoded value for key, or None if absent or undecodable."""
        async with self.db.execute(
            "SELECT value_json FROM kv_store WHERE key = ?", (key,)
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        try:
            return json.loads(row[0])
        except json.JSONDecodeError:
            logger.warning("Stored value for '%s' is not valid JSON; ignoring it", key)
            return None

    async def set_json(self, key: str, value: Any) -> None:
        await self.db.execute(
            """INSERT INTO kv_store (key, value_json, updated_at) VALUES (?, ?, ?)
               ON CONFLICT(key) DO UPDATE SET
                   value_json = excluded.value_json,
                   updated_at = excluded.updated_at""",
            (key, json.dumps(value, sort_keys=True), _now()),
        )
        await self.db.commit()

    async def delete(self, key: str) -> None:
        await self.db.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        await self.db.commit()

    # ── Typed records ──────────────────────────────────────

    async def load_preferences(self) -> dict[str, Any] | None:
        data = await self.get_json(PREFERENCES_KEY)
        return data if isinstance(data, dict) else None

    async def save_preferences(self, record: dict[str, Any]) -> None:
        await self.set_json(PREFERENCES_KEY, record)

    async def load_prediction_cache(self) -> dict[str, Any]:
        data = await self.get_json(PREDICTION_CACHE_KEY)
        return data if isinstance(data, dict) else {}

    async def save_prediction_cache(self, entries: dict[str, Any]) -> None:
        await self.set_json(PREDICTION_CACHE_KEY, entries)

    async def load_history(self) -> list[dict[str, Any]]:
        data = await self.get_json(HISTORY_KEY)
        return data if isinstance(data, list) else []

    async def save_history(self, points: list[dict[str, Any]]) -> None:
        await self.set_json(HISTORY_KEY, points)
