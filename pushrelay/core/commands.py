"""
Command model for messages sent by the background worker.

Inbound messages have the wire shape ``{"command": <kind>, "payload": ...}``.
The envelope is validated with pydantic, then turned into one of four frozen
command variants. ``Clicked`` carries its URL as an explicit optional field so
callers never have to probe the payload for it.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel

from .errors import InvalidCommand


class CommandKind(str, Enum):
    """Commands understood on the worker channel."""
    NOTIFICATION_DISPLAYED = "notification.displayed"
    NOTIFICATION_CLICKED = "notification.clicked"
    NOTIFICATION_DISMISSED = "notification.dismissed"
    REDIRECT = "command.redirect"


class NotificationEvent(str, Enum):
    """Events application code can listen for."""
    DISPLAYED = "notificationDisplay"
    CLICKED = "notificationClick"
    DISMISSED = "notificationDismiss"


class ProxyMessage(str, Enum):
    """Message types exchanged with the controlling frame."""
    GET_EVENT_LISTENER_COUNT = "postmam.getEventListenerCount"
    REDIRECT = "postmam.command.redirect"
    TRIGGER_EVENT = "postmam.triggerEvent"


class CommandMessage(BaseModel):
    command: CommandKind
    payload: Any = None


def _freeze(value: Any) -> Any:
    # Nested objects become read-only mappings and arrays become tuples.
    if isinstance(value, Mapping):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(item) for item in value)
    return value


def thaw(value: Any) -> Any:
    """Return a fresh, mutable, JSON-shaped copy of a frozen payload."""
    if isinstance(value, Mapping):
        return {key: thaw(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [thaw(item) for item in value]
    return value


@dataclass(frozen=True)
class Displayed:
    payload: Mapping[str, Any]

    @property
    def kind(self) -> CommandKind:
        return CommandKind.NOTIFICATION_DISPLAYED


@dataclass(frozen=True)
class Clicked:
    url: Optional[str]
    payload: Mapping[str, Any]

    @property
    def kind(self) -> CommandKind:
        return CommandKind.NOTIFICATION_CLICKED


@dataclass(frozen=True)
class Dismissed:
    payload: Mapping[str, Any]

    @property
    def kind(self) -> CommandKind:
        return CommandKind.NOTIFICATION_DISMISSED


@dataclass(frozen=True)
class RedirectRequested:
    target: str

    @property
    def kind(self) -> CommandKind:
        return CommandKind.REDIRECT


Command = Union[Displayed, Clicked, Dismissed, RedirectRequested]


def _metadata(kind: CommandKind, payload: Any) -> Dict[str, Any]:
    if payload is None:
        return {}
    if not isinstance(payload, Mapping):
        raise InvalidCommand(f"{kind.value} payload must be an object, got {type(payload).__name__}")
    return dict(payload)


def parse_command(message: Mapping[str, Any]) -> Command:
    """
    Validate a raw worker message and build the matching command.

    Args:
        message: Wire message with ``command`` and ``payload`` keys

    Returns:
        A frozen command variant

    Raises:
        pydantic.ValidationError: If the envelope is malformed or the kind is unknown
        InvalidCommand: If the payload does not fit the command kind
    """
    envelope = CommandMessage.model_validate(message)
    kind = envelope.command

    if kind is CommandKind.REDIRECT:
        if not isinstance(envelope.payload, str) or not envelope.payload:
            raise InvalidCommand("command.redirect payload must be a non-empty URL string")
        return RedirectRequested(target=envelope.payload)

    data = _metadata(kind, envelope.payload)
    if kind is CommandKind.NOTIFICATION_CLICKED:
        # An empty string means "no URL", same as a missing key.
        url = data.get("url")
        return Clicked(url=url if isinstance(url, str) and url else None, payload=_freeze(data))
    if kind is CommandKind.NOTIFICATION_DISPLAYED:
        return Displayed(payload=_freeze(data))
    return Dismissed(payload=_freeze(data))
