"""Fire-and-forget execution of event chains.

Detached tasks are kept referenced until they finish so the event loop does
not garbage-collect them mid-flight. Failures are logged and reported to
Sentry, never raised to the scheduler.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

import structlog

from intake.core.sentry import capture_background_exception

logger = structlog.get_logger()

CoroFactory = Callable[[], Awaitable[Any]]

_tasks: set[asyncio.Task[Any]] = set()


async def _guarded(factory: CoroFactory, name: str | None) -> None:
    try:
        await factory()
    except Exception as exc:
        logger.error("background_task_failed", task=name, error=str(exc), exc_info=True)
        capture_background_exception(exc)


def run_in_background(factory: CoroFactory, name: str | None = None) -> asyncio.Task[None]:
    """Start ``factory()`` detached from the caller. Must be called inside a running loop."""
    task = asyncio.create_task(_guarded(factory, name), name=name)
    _tasks.add(task)
    task.add_done_callback(_tasks.discard)
    return task


def run_all_in_background(
    factories: Iterable[CoroFactory], name: str | None = None
) -> list[asyncio.Task[None]]:
    """Start each factory detached; one failure does not affect the others."""
    return [run_in_background(factory, name) for factory in factories]


def pending_tasks() -> set[asyncio.Task[Any]]:
    """Detached tasks still running."""
    return set(_tasks)


async def drain(timeout: float | None = None) -> None:
    """Wait for detached tasks to finish. Used at shutdown and in tests."""
    while _tasks:
        done, _ = await asyncio.wait(set(_tasks), timeout=timeout)
        if not done:
            logger.warning("background_drain_timeout", remaining=len(_tasks))
            return


__all__ = [
    "drain",
    "pending_tasks",
    "run_all_in_background",
    "run_in_background",
]
