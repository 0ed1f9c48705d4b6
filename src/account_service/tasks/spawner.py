from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Coroutine, Set


logger = logging.getLogger(__name__)


class TaskSpawner(ABC):
    """
    Runs fire-and-forget work detached from the request that scheduled it.
    The caller never awaits the outcome.
    """

    @abstractmethod
    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str) -> None:
        ...

    async def drain(self) -> None:
        """Wait for outstanding work; used on shutdown and in tests."""


class AsyncioTaskSpawner(TaskSpawner):
    """
    Spawns work as independent asyncio tasks.

    Tasks are kept referenced until they finish (the event loop only holds
    weak references) and their failures are logged, never re-raised.
    """

    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str) -> None:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.info("Background task %s was cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background task %s failed: %s", task.get_name(), exc)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
