"""
Runtime wiring for the push relay.

Builds a fully connected Router (inbox, proxy channel, presence resolver)
from configuration and sets up logging.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from .configs import ConfigManager, get_global_config
from .core.inbox import DurableInbox
from .core.presence import ContextRole
from .core.proxy import ProxyReplyChannel
from .core.router import Router
from .core.transport import QueueTransport, Transport

logger = logging.getLogger(__name__)


def configure_logging(config: Optional[ConfigManager] = None) -> None:
    config = config or get_global_config()
    logging.basicConfig(
        level=config.get("logging.level", "INFO").upper(),
        format=config.get("logging.format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
    )


def build_router(
    command_transport: Optional[Transport],
    proxy_transport: Optional[Transport] = None,
    location: Optional[Callable[[], str]] = None,
    config: Optional[ConfigManager] = None,
    bind: bool = True,
    frame_transport: Optional[Transport] = None,
) -> Router:
    """
    Construct a Router for one execution context.

    Args:
        command_transport: Pipe to the background worker, or None if this context has none
        proxy_transport: Pipe to the controlling frame, or None
        location: Returns the URL of the page this context shows; defaults to relay.document_url
        config: Configuration to read; defaults to the global config
        bind: Bind the router before returning it
        frame_transport: Pipe to an embedded proxy frame this page controls, or None

    Returns:
        The router
    """
    config = config or get_global_config()
    role = ContextRole(config.get("relay.role", ContextRole.HOST.value))

    if location is None:
        document_url = config.get("relay.document_url", "about:blank")

        def location() -> str:
            return document_url

    inbox = DurableInbox(
        db_path=config.get("inbox.db_path", "./data/inbox.db"),
        table=config.get("inbox.table", "notification_opened"),
    )
    proxy = ProxyReplyChannel(proxy_transport, timeout=config.get("proxy.query_timeout"))
    router = Router(command_transport, inbox=inbox, location=location, proxy=proxy, role=role)

    if role is ContextRole.PROXY_FRAME and proxy_transport is None:
        logger.warning("Running as proxy frame without a controlling frame; listener counts will be local")
    if bind:
        router.bind()
    if frame_transport is not None:
        router.serve_frame(frame_transport)
    return router


def build_transport(name: str, config: Optional[ConfigManager] = None) -> QueueTransport:
    """In-process queue transport sized from ``transport.queue_maxsize``."""
    config = config or get_global_config()
    return QueueTransport(name=name, maxsize=config.get("transport.queue_maxsize", 1000))
