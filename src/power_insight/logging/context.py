"""Log context enrichment for pipeline cycles."""

from __future__ import annotations

import structlog


def bind_cycle(job: str, cycle: int) -> None:
    """Tag every record emitted by the current task with its job and cycle number."""
    structlog.contextvars.bind_contextvars(job=job, cycle=cycle)


def clear_context() -> None:
    """Clear the current logging context."""
    structlog.contextvars.clear_contextvars()
