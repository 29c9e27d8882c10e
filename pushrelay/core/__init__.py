"""
Core of the push notification relay.

Commands arrive from the background worker over the command channel, the
router resolves whether anyone is listening (locally or by asking the
controlling frame), then either broadcasts them or parks clicks in the
durable inbox.
"""
from __future__ import annotations

from .broadcaster import EventBroadcaster
from .command_channel import CommandChannel
from .commands import (
    Clicked,
    Command,
    CommandKind,
    Dismissed,
    Displayed,
    NotificationEvent,
    ProxyMessage,
    RedirectRequested,
    parse_command,
    thaw,
)
from .errors import DurableWriteFailure, InvalidCommand, ProxyQueryAbandoned, RelayError, TransportUnavailable
from .inbox import DurableInbox, InboxEntry
from .presence import ContextRole, PresenceResolver
from .proxy import ProxyReplyChannel
from .registry import ListenerRegistration, ListenerRegistry
from .router import Router, RouterState
from .transport import QueueTransport, Transport

__all__ = [
    "Clicked",
    "Command",
    "CommandChannel",
    "CommandKind",
    "ContextRole",
    "Dismissed",
    "Displayed",
    "DurableInbox",
    "DurableWriteFailure",
    "EventBroadcaster",
    "InboxEntry",
    "InvalidCommand",
    "ListenerRegistration",
    "ListenerRegistry",
    "NotificationEvent",
    "PresenceResolver",
    "ProxyMessage",
    "ProxyQueryAbandoned",
    "ProxyReplyChannel",
    "QueueTransport",
    "RedirectRequested",
    "RelayError",
    "Router",
    "RouterState",
    "Transport",
    "TransportUnavailable",
    "parse_command",
    "thaw",
]
