"""
Listener presence resolution.

A page that hosts the relay directly counts its own listeners. A page running
as the embedded proxy frame is not the authority on listeners: the
controlling frame is, so the count is fetched over the proxy channel.
"""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Optional

from .commands import NotificationEvent
from .errors import ProxyQueryAbandoned
from .proxy import ProxyReplyChannel
from .registry import ListenerRegistry

logger = logging.getLogger(__name__)


class ContextRole(str, Enum):
    """Role of the execution context the relay runs in."""
    HOST = "host"
    SUBSCRIPTION_POPUP = "subscription_popup"
    SUBSCRIPTION_MODAL = "subscription_modal"
    PROXY_FRAME = "proxy_frame"
    CUSTOM_IFRAME = "custom_iframe"
    UNKNOWN = "unknown"


class PresenceResolver:
    def __init__(
        self,
        registry: ListenerRegistry,
        role: ContextRole = ContextRole.HOST,
        proxy: Optional[ProxyReplyChannel] = None,
    ) -> None:
        self.registry = registry
        self.role = ContextRole(role)
        self.proxy = proxy

    @property
    def delegated(self) -> bool:
        return self.role is ContextRole.PROXY_FRAME and self.proxy is not None and self.proxy.available

    async def count(self, kind: NotificationEvent) -> int:
        """
        Number of consumers currently interested in ``kind``.

        In delegated mode this suspends until the controlling frame replies.
        With no timeout configured on the proxy channel that wait is unbounded.
        If a timeout is configured and expires, or the query is abandoned, the
        count is taken as 0 so the caller stores the event instead of dropping it.
        """
        kind = NotificationEvent(kind)
        if not self.delegated:
            if self.role is ContextRole.PROXY_FRAME:
                logger.debug("Proxy frame without a controlling frame; counting local listeners")
            return self.registry.count(kind)

        try:
            count = await self.proxy.query(kind)
        except asyncio.TimeoutError:
            logger.warning(f"Controlling frame did not answer listener count for {kind.value}; assuming none")
            return 0
        except ProxyQueryAbandoned:
            logger.warning(f"Listener count query for {kind.value} was abandoned; assuming none")
            return 0
        logger.debug(f"Controlling frame reports {count} listener(s) for {kind.value}")
        return count
