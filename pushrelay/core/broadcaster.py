"""
Local fan-out of notification events.

Every registered listener receives its own copy of the payload. A listener
that raises is logged and skipped; delivery continues with the next one.
"""
from __future__ import annotations

import inspect
import logging
from typing import Any, Mapping

from .commands import NotificationEvent, thaw
from .registry import ListenerRegistry

logger = logging.getLogger(__name__)


class EventBroadcaster:
    def __init__(self, registry: ListenerRegistry) -> None:
        self.registry = registry

    async def deliver(self, kind: NotificationEvent, payload: Mapping[str, Any]) -> int:
        """
        Invoke every listener for ``kind`` in registration order.

        Args:
            kind: Event kind to deliver
            payload: Event payload; each listener gets its own deep copy

        Returns:
            Number of listeners that completed without raising
        """
        kind = NotificationEvent(kind)
        delivered = 0
        for registration in self.registry.snapshot(kind):
            try:
                result = registration.handler(thaw(payload))
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            except Exception:
                logger.exception(f"Listener failure on {kind.value}")
        logger.debug(f"Delivered {kind.value} to {delivered} listener(s)")
        return delivered
