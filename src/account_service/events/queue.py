from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List


logger = logging.getLogger(__name__)


class AsyncEventQueue(ABC):
    """
    Abstract async queue for account lifecycle events consumed by other
    subsystems. Concrete implementations could use Redis, RabbitMQ, Kafka, etc.
    """

    @abstractmethod
    async def enqueue(self, payload: Dict[str, Any]) -> None:
        ...


class InMemoryEventQueue(AsyncEventQueue):
    """
    In-memory queue used for tests and as a reference implementation.
    """

    def __init__(self) -> None:
        self.messages: List[Dict[str, Any]] = []

    async def enqueue(self, payload: Dict[str, Any]) -> None:
        self.messages.append(payload)


class LoggingEventQueue(AsyncEventQueue):
    """Default queue when no broker is wired: events only go to the log."""

    async def enqueue(self, payload: Dict[str, Any]) -> None:
        logger.info("Account event %s for user %s", payload.get("type"), payload.get("user_id"))
