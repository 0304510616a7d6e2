"""Durable state store for Power Insight."""

from power_insight.db.engine import close_db, init_db
from power_insight.db.repository import Repository

__all__ = ["close_db", "init_db", "Repository"]
