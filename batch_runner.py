"""Bounded worker pool for independent async units of work."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, TypeVar

T = TypeVar("T")

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TaskFailure:
    """Placeholder stored in the result slot of a work item that raised."""

    error: BaseException


async def run_concurrent(
    tasks: Sequence[Callable[[], Awaitable[T]]],
    limit: int,
    on_complete: Callable[[int, T | TaskFailure], None] | None = None,
) -> list[T | TaskFailure]:
    """Run ``tasks`` with at most ``limit`` in flight.

    Workers pull the next unstarted index from a shared cursor and send
    ``(index, outcome)`` to a single collector, which fills the result list
    (aligned with ``tasks``) and invokes ``on_complete`` in completion order.
    A task that raises yields a TaskFailure; its siblings keep running.
    """
    if limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")
    if not tasks:
        return []

    results: list[Any] = [None] * len(tasks)
    cursor = iter(range(len(tasks)))
    outbox: asyncio.Queue[tuple[int, Any]] = asyncio.Queue()

    async def worker() -> None:
        for index in cursor:
            try:
                outcome: Any = await tasks[index]()
            except Exception as exc:
                LOGGER.warning("Work item %s failed: %s", index, exc)
                outcome = TaskFailure(exc)
            await outbox.put((index, outcome))

    async def collector() -> None:
        for _ in range(len(tasks)):
            index, outcome = await outbox.get()
            results[index] = outcome
            if on_complete is not None:
                try:
                    on_complete(index, outcome)
                except Exception as exc:
                    LOGGER.exception("Completion handler failed for item %s", index)
                    results[index] = TaskFailure(exc)

    workers = [asyncio.create_task(worker()) for _ in range(min(limit, len(tasks)))]
    await asyncio.gather(collector(), *workers)
    return results
