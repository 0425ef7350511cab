"""Synchronous in-process event bus for scheduling side effects."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable

logger = logging.getLogger(__name__)


class EventBus:
    """Publish/subscribe bus for domain events.

    Handlers are called synchronously in registration order. Subscribers are
    side-effect sinks (notifications, mail): a failing handler is logged and
    the remaining handlers still run, so the publishing operation never fails
    because of one.
    """

    def __init__(self) -> None:
        self._subscribers: dict[type, list[Callable]] = defaultdict(list)

    def subscribe(self, event_type: type, handler: Callable) -> None:
        self._subscribers[event_type].append(handler)

    def publish(self, event: Any) -> int:
        """Deliver *event* and return the number of handlers that failed."""
        failures = 0
        for handler in self._subscribers.get(type(event), []):
            try:
                handler(event)
            except Exception:
                failures += 1
                logger.exception(
                    "Handler %s failed for %s",
                    getattr(handler, "__qualname__", handler),
                    type(event).__name__,
                )
        return failures
