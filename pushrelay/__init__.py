"""pushrelay: event delivery layer between a push service worker and page code."""
from __future__ import annotations

from .core import (
    CommandKind,
    ContextRole,
    DurableInbox,
    InboxEntry,
    NotificationEvent,
    ProxyReplyChannel,
    QueueTransport,
    Router,
)
from .runtime import build_router, build_transport, configure_logging

__all__ = [
    "CommandKind",
    "ContextRole",
    "DurableInbox",
    "InboxEntry",
    "NotificationEvent",
    "ProxyReplyChannel",
    "QueueTransport",
    "Router",
    "build_router",
    "build_transport",
    "configure_logging",
]

__version__ = "0.1.0"
