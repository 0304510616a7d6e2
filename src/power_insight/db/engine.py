"""SQLite database engine with WAL mode for the durable state store."""

from __future__ import annotations

import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from power_insight.db.migrations import run_migrations

logger = logging.getLogger(__name__)

_db: aiosqlite.Connection | None = None


async def _check_integrity(db: aiosqlite.Connection) -> bool:
    """Run PRAGMA integrity_check and return True if the database is healthy."""
    try:
        async with db.execute("PRAGMA integrity_check") as cursor:
            rows = await cursor.fetchall()
        if len(rows) == 1 and str(rows[0][0]).lower() == "ok":
            return True
        problems = [str(r[0]) for r in rows[:10]]
        logger.error("Database integrity check failed: %s", "; ".join(problems))
        return False
    except Exception:
        logger.error("Database integrity check raised an exception", exc_info=True)
        return False


async def _recover_kv_rows(corrupt_path: Path, new_path: Path) -> int:
    """Copy readable key/value rows from a corrupt database into a fresh one."""
    new_db = await aiosqlite.connect(str(new_path))
    await new_db.execute("PRAGMA journal_mode=WAL")
    await run_migrations(new_db)

    recovered = 0
    try:
        corrupt_db = await aiosqlite.connect(f"file:{corrupt_path}?mode=ro", uri=True)
    except Exception:
        logger.error("Cannot open corrupt database for recovery", exc_info=True)
        await new_db.close()
        return recovered

    try:
        async with corrupt_db.execute("SELECT key, value_json, updated_at FROM kv_store") as cur:
            rows = await cur.fetchall()
        await new_db.executemany(
            "INSERT OR IGNORE INTO kv_store (key, value_json, updated_at) VALUES (?, ?, ?)",
            rows,
        )
        await new_db.commit()
        recovered = len(rows)
    except Exception:
        logger.warning("Could not recover kv_store rows (corrupt pages)")
    finally:
        await corrupt_db.close()
        await new_db.close()
    return recovered


async def init_db(db_path: str | Path) -> aiosqlite.Connection:
    """Initialise the database connection with WAL mode and run migrations.

    A corrupt database is moved aside as a timestamped backup and replaced
    by a fresh one holding whatever key/value rows were still readable.
    """
    global _db
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    if db_path.exists():
        try:
            test_db = await aiosqlite.connect(str(db_path))
            healthy = await _check_integrity(test_db)
            await test_db.close()
        except Exception:
            healthy = False

        if not healthy:
            stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
            backup = db_path.with_suffix(f".corrupt-{stamp}.db")
            logger.warning("Database corruption detected, attempting recovery")

            recovered_path = db_path.with_suffix(".recovered.db")
            recovered = await _recover_kv_rows(db_path, recovered_path)
            logger.info("Recovered %d state rows", recovered)

            for suffix in ("", "-wal", "-shm"):
                src = db_path.parent / (db_path.name + suffix)
                if src.exists():
                    shutil.move(str(src), str(db_path.parent / (backup.name + suffix)))
            if recovered_path.exists():
                shutil.move(str(recovered_path), str(db_path))

    db = await aiosqlite.connect(str(db_path))
    await db.execute("PRAGMA journal_mode=WAL")
    await db.execute("PRAGMA synchronous=FULL")
    await db.execute("PRAGMA busy_timeout=5000")
    db.row_factory = aiosqlite.Row

    await run_migrations(db)
    _db = db
    logger.info("State store initialised at %s", db_path)
    return db


async def close_db() -> None:
    """Close the database connection."""
    global _db
    if _db is not None:
        try:
            await _db.execute("PRAGMA wal_checkpoint(TRUNCATE)")
        except aiosqlite.Error:
            logger.warning("WAL checkpoint on close failed", exc_info=True)
        await _db.close()
        _db = None
        logger.info("Database connection closed")
