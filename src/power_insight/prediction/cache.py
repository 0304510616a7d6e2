"""Prediction cache keyed by feature signature, persisted on every update."""

from __future__ import annotations

import logging

from power_insight.db.repository import Repository
from power_insight.prediction.base import PredictionResult

logger = logging.getLogger(__name__)


class PredictionCache:
    """Exact-match signature → PredictionResult.

    Entries never expire; a fresh computation for the same signature
    replaces the old one. Without a repository the cache is memory-only.
    """

    def __init__(self, repo: Repository | None = None) -> None:
        self._repo = repo
        self._entries: dict[str, PredictionResult] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, signature: str) -> bool:
        return signature in self._entries

    def get(self, signature: str) -> PredictionResult | None:
        return self._entries.get(signature)

    def to_dict(self) -> dict[str, dict]:
        return {sig: result.to_dict() for sig, result in self._entries.items()}

    async def load(self) -> int:
        """Load persisted entries, skipping any that no longer decode."""
        if self._repo is None:
            return 0
        raw = await self._repo.load_prediction_cache()
        entries: dict[str, PredictionResult] = {}
        for sig, data in raw.items():
            try:
                entries[sig] = PredictionResult.from_dict(data)
            except (KeyError, TypeError, ValueError):
                logger.warning("Dropping undecodable prediction cache entry %s", sig)
        self._entries = entries
        logger.info("Prediction cache loaded: %d entries", len(entries))
        return len(entries)

    async def put(self, signature: str, result: PredictionResult) -> None:
        self._entries[signature] = result
        await self._persist()

    async def discard(self, signature: str) -> bool:
        if self._entries.pop(signature, None) is None:
            return False
        await self._persist()
        return True

    async def _persist(self) -> None:
        if self._repo is not None:
            await self._repo.save_prediction_cache(self.to_dict())
