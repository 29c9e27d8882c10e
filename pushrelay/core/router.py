"""
Router: binds the worker channel and decides where each command goes.

- ``notification.displayed`` / ``notification.dismissed``: broadcast to local listeners.
- ``notification.clicked``: broadcast if anyone is listening, otherwise store in the inbox.
  In an embedded proxy frame the listeners live on the controlling page, so
  the click is handed back to it instead of broadcast locally.
- ``command.redirect``: relayed to the controlling frame, never handled locally.

A click is never both delivered and stored, and never neither.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional

from pydantic import ValidationError

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
from .inbox import DurableInbox, InboxEntry, now_ms
from .presence import ContextRole, PresenceResolver
from .proxy import FrameMessage, ProxyReplyChannel, TriggeredEvent
from .registry import Listener, ListenerRegistration, ListenerRegistry
from .transport import Transport

logger = logging.getLogger(__name__)

LocationProvider = Callable[[], str]


class RouterState(str, Enum):
    UNBOUND = "unbound"
    BOUND = "bound"


class Router:
    """Owns the listener registry and routes worker commands for one execution context."""

    def __init__(
        self,
        command_transport: Optional[Transport],
        inbox: DurableInbox,
        location: LocationProvider,
        proxy: Optional[ProxyReplyChannel] = None,
        role: ContextRole = ContextRole.HOST,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.registry = ListenerRegistry()
        self.broadcaster = EventBroadcaster(self.registry)
        self.channel = CommandChannel(command_transport)
        self.proxy = proxy or ProxyReplyChannel(None)
        self.presence = PresenceResolver(self.registry, role=role, proxy=self.proxy)
        self.inbox = inbox
        self.location = location
        self.clock = clock
        self.state = RouterState.UNBOUND
        # Bumped on every bind/unbind so suspended dispatches can tell they are stale.
        self._generation = 0
        self._frame: Optional[Transport] = None

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    def bind(self) -> None:
        """Bind (or rebind) the worker channel. Clears command handlers and listeners."""
        self._generation += 1
        self.registry.clear()
        self.channel.bind()
        self.channel.register(CommandKind.NOTIFICATION_DISPLAYED, self._on_displayed)
        self.channel.register(CommandKind.NOTIFICATION_CLICKED, self._on_clicked)
        self.channel.register(CommandKind.REDIRECT, self._on_redirect)
        self.channel.register(CommandKind.NOTIFICATION_DISMISSED, self._on_dismissed)
        self.proxy.bind()
        if self._frame is not None:
            self._frame.attach(self._on_frame_message)
        self.state = RouterState.BOUND
        logger.info(f"Router bound as {self.presence.role.value} (generation {self._generation})")

    def unbind(self) -> None:
        self._generation += 1
        self.channel.unbind()
        self.proxy.unbind()
        if self._frame is not None:
            self._frame.detach()
        self.state = RouterState.UNBOUND
        logger.info("Router unbound")

    @property
    def generation(self) -> int:
        return self._generation

    # ------------------------------------------------------------------
    # listener API
    # ------------------------------------------------------------------
    def register_listener(self, kind: NotificationEvent, handler: Listener) -> ListenerRegistration:
        return self.registry.register(kind, handler)

    def unregister_listener(self, kind: NotificationEvent, handler: Listener) -> bool:
        return self.registry.unregister(kind, handler)

    def unregister_all(self, kind: Optional[NotificationEvent] = None) -> None:
        self.registry.unregister_all(kind)

    # ------------------------------------------------------------------
    # dispatch
    # ------------------------------------------------------------------
    async def dispatch(self, command: Command) -> None:
        """Route one already-parsed command. Inbox write failures propagate."""
        handler = self.channel.handler_for(command.kind)
        if handler is None:
            logger.debug(f"Router not bound for {command.kind.value}; dropping")
            return
        await handler(command)

    async def _on_displayed(self, command: Displayed) -> None:
        logger.debug("Received notification display event from service worker")
        await self.broadcaster.deliver(NotificationEvent.DISPLAYED, command.payload)

    async def _on_dismissed(self, command: Dismissed) -> None:
        await self.broadcaster.deliver(NotificationEvent.DISMISSED, command.payload)

    async def _on_clicked(self, command: Clicked) -> None:
        generation = self._generation
        delegated = self.presence.delegated
        count = await self.presence.count(NotificationEvent.CLICKED)

        if generation != self._generation:
            # The router was rebound or unbound while we waited: the registry
            # the count refers to is gone, so keep the click instead.
            logger.warning("Click dispatch outlived its binding; storing it in the inbox")
            await self._store_click(command)
            return

        if count == 0:
            logger.debug("Notification click received with no listeners; storing it in the inbox")
            await self._store_click(command)
            return

        if delegated:
            await self._forward_click(command)
            return

        await self.broadcaster.deliver(NotificationEvent.CLICKED, command.payload)

    async def _forward_click(self, command: Clicked) -> None:
        triggered = {"event": NotificationEvent.CLICKED.value, "data": thaw(command.payload)}
        if self.proxy.send(ProxyMessage.TRIGGER_EVENT, triggered):
            logger.debug("Handed notification click to the controlling frame")
            return
        logger.warning("Controlling frame is gone; storing notification click in the inbox")
        await self._store_click(command)

    async def _store_click(self, command: Clicked) -> int:
        # Clicks without a URL fall back to the page this context is showing.
        url = command.url or self.location()
        entry = InboxEntry(url=url, data=thaw(command.payload), timestamp=self.clock())
        return await self.inbox.append(entry)

    async def _on_redirect(self, command: RedirectRequested) -> None:
        logger.debug(f"{self.presence.role.value} picked up redirect to {command.target}; forwarding to host page")
        self.proxy.send(ProxyMessage.REDIRECT, command.target)

    # ------------------------------------------------------------------
    # controlling page side
    # ------------------------------------------------------------------
    def serve_frame(self, transport: Transport) -> None:
        """
        Serve an embedded proxy frame from this page.

        Listener count queries from the frame are answered from this router's
        registry. Events the frame hands back are fired here as if they had
        arrived from the worker.
        """
        self._frame = transport
        if self.state is RouterState.BOUND:
            transport.attach(self._on_frame_message)

    async def _on_frame_message(self, message: Mapping[str, Any]) -> None:
        try:
            frame_message = FrameMessage.model_validate(message)
        except ValidationError as exc:
            logger.warning(f"Dropping malformed proxy frame message: {exc}")
            return

        if frame_message.type is ProxyMessage.GET_EVENT_LISTENER_COUNT:
            self._answer_count(frame_message)
        elif frame_message.type is ProxyMessage.TRIGGER_EVENT:
            await self._fire_triggered(frame_message.payload)
        else:
            logger.debug(f"Ignoring {frame_message.type.value} from proxy frame")

    def _answer_count(self, message: FrameMessage) -> None:
        if self._frame is None or not message.reply_token:
            logger.warning("Listener count query without a reply token; ignoring")
            return
        try:
            kind = NotificationEvent(message.payload)
        except ValueError:
            logger.warning(f"Listener count query for unknown event {message.payload!r}; ignoring")
            return
        self._frame.post({"replyToken": message.reply_token, "data": self.registry.count(kind)})

    async def _fire_triggered(self, payload: Any) -> None:
        try:
            triggered = TriggeredEvent.model_validate(payload)
        except ValidationError as exc:
            logger.warning(f"Dropping malformed event from proxy frame: {exc}")
            return
        if triggered.event is NotificationEvent.CLICKED:
            # Listeners may have gone since the frame asked; the click path stores it then.
            command = parse_command({"command": CommandKind.NOTIFICATION_CLICKED.value, "payload": triggered.data})
            await self._on_clicked(command)
            return
        await self.broadcaster.deliver(triggered.event, triggered.data)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "role": self.presence.role.value,
            "delegated": self.presence.delegated,
            "generation": self._generation,
            "listener_counts": self.registry.counts,
            "pending_proxy_queries": self.proxy.pending,
            "serving_frame": self._frame is not None,
        }
