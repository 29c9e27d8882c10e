"""Typed binding over the worker transport: one handler per command kind."""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from pydantic import ValidationError

from .commands import Command, CommandKind, parse_command
from .errors import InvalidCommand
from .transport import Transport

logger = logging.getLogger(__name__)

CommandHandler = Callable[[Command], Awaitable[None]]


class CommandChannel:
    """
    Receives commands from the background worker and hands each one to the
    handler registered for its kind.

    Handlers are not additive here: registering a second handler for a kind
    replaces the first. Fan-out to several consumers happens one layer up.
    """

    def __init__(self, transport: Optional[Transport]) -> None:
        self.transport = transport
        self._handlers: Dict[CommandKind, CommandHandler] = {}
        self._bound = False

    @property
    def bound(self) -> bool:
        return self._bound

    def bind(self) -> None:
        """Attach to the transport with an empty handler set. Safe to call repeatedly."""
        self._handlers.clear()
        if self.transport is None:
            logger.warning("No worker transport in this context; command channel stays inert")
            self._bound = False
            return
        self.transport.attach(self.receive)
        self._bound = True

    def unbind(self) -> None:
        self._handlers.clear()
        if self.transport is not None and self._bound:
            self.transport.detach()
        self._bound = False

    def register(self, kind: CommandKind, handler: CommandHandler) -> None:
        kind = CommandKind(kind)
        if kind in self._handlers:
            logger.debug(f"Replacing handler for {kind.value}")
        self._handlers[kind] = handler

    def handler_for(self, kind: CommandKind) -> Optional[CommandHandler]:
        return self._handlers.get(CommandKind(kind))

    async def receive(self, message: Mapping[str, Any]) -> None:
        """
        Parse one inbound message and await its handler.

        Malformed messages and messages nobody handles are dropped with a log
        line. Errors raised by the handler itself propagate to the caller.
        """
        if not self._bound:
            logger.debug("Command channel unbound; dropping message")
            return
        try:
            command = parse_command(message)
        except (ValidationError, InvalidCommand) as exc:
            logger.warning(f"Dropping malformed worker message: {exc}")
            return
        handler = self._handlers.get(command.kind)
        if handler is None:
            logger.debug(f"No handler for {command.kind.value}; dropping")
            return
        await handler(command)
