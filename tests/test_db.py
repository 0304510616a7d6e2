"""Tests for the database engine and key/value repository."""

from __future__ import annotations

from pathlib import Path

import aiosqlite

from power_insight.db.engine import close_db, init_db
from power_insight.db.migrations import run_migrations
from power_insight.db.models import SCHEMA_VERSION
from power_insight.db.repository import HISTORY_KEY, PREFERENCES_KEY, Repository


class TestRepository:
    async def test_set_and_get_json(self, repo: Repository) -> None:
        await repo.set_json("thing", {"b": [1, 2], "a": "x"})
        assert await repo.get_json("thing") == {"a": "x", "b": [1, 2]}

    async def test_upsert_replaces(self, repo: Repository) -> None:
        await repo.set_json("k", 1)
        await repo.set_json("k", 2)
        assert await repo.get_json("k") == 2

    async def test_missing_key(self, repo: Repository) -> None:
        assert await repo.get_json("nope") is None

    async def test_delete(self, repo: Repository) -> None:
        await repo.set_json("k", [1])
        await repo.delete("k")
        assert await repo.get_json("k") is None

    async def test_invalid_json_treated_as_absent(self, repo: Repository) -> None:
        await repo.db.execute(
            "INSERT INTO kv_store (key, value_json, updated_at) VALUES (?, ?, ?)",
            (PREFERENCES_KEY, "{broken", "2026-01-01T00:00:00+00:00"),
        )
        await repo.db.commit()
        assert await repo.load_preferences() is None

    async def test_typed_helpers_reject_wrong_shapes(self, repo: Repository) -> None:
        await repo.set_json(HISTORY_KEY, {"not": "a list"})
        assert await repo.load_history() == []
        await repo.save_prediction_cache({"sig": {"predicted_class": 0}})
        assert await repo.load_prediction_cache() == {"sig": {"predicted_class": 0}}


class TestEngine:
    async def test_schema_version_recorded(self, db: aiosqlite.Connection) -> None:
        async with db.execute("SELECT version FROM schema_version WHERE id = 1") as cur:
            row = await cur.fetchone()
        assert row[0] == SCHEMA_VERSION

    async def test_migrations_rerun_is_noop(self, db: aiosqlite.Connection) -> None:
        await Repository(db).set_json("kept", {"a": 1})
        await run_migrations(db)
        async with db.execute("SELECT COUNT(*) FROM schema_version") as cur:
            assert (await cur.fetchone())[0] == 1
        assert await Repository(db).get_json("kept") == {"a": 1}

    async def test_reopen_keeps_state(self, tmp_path: Path) -> None:
        path = tmp_path / "state.db"
        repo = Repository(await init_db(path))
        await repo.save_preferences({"dismissed": ["weather-storm"]})
        await close_db()

        repo = Repository(await init_db(path))
        assert await repo.load_preferences() == {"dismissed": ["weather-storm"]}
        await close_db()

    async def test_corrupt_file_is_replaced(self, tmp_path: Path) -> None:
        path = tmp_path / "state.db"
        path.write_bytes(b"this is not sqlite" * 100)
        db = await init_db(path)
        assert await Repository(db).get_json("anything") is None
        assert list(tmp_path.glob("state.corrupt-*.db"))
        await close_db()
