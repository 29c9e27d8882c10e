"""
Request/reply channel to the controlling frame.

Queries carry a generated ``replyToken``; the frame answers with
``{"replyToken": ..., "data": ...}``. Each pending query resolves exactly
once: the first reply for a token wins, later ones are ignored. Relay
messages (``send``) expect no reply at all.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .commands import NotificationEvent, ProxyMessage
from .errors import ProxyQueryAbandoned, TransportUnavailable
from .transport import Transport

logger = logging.getLogger(__name__)

ReplyCallback = Callable[[int], None]


class ProxyReply(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    reply_token: str = Field(alias="replyToken")
    data: Any = None


class FrameMessage(BaseModel):
    """Message posted by an embedded proxy frame to the page that controls it."""
    model_config = ConfigDict(populate_by_name=True)

    type: ProxyMessage
    payload: Any = None
    reply_token: Optional[str] = Field(default=None, alias="replyToken")


class TriggeredEvent(BaseModel):
    event: NotificationEvent
    data: Dict[str, Any] = Field(default_factory=dict)


@dataclass
class ProxyQuery:
    token: str
    kind: NotificationEvent
    future: asyncio.Future
    on_reply: Optional[ReplyCallback] = None


def _as_count(data: Any) -> int:
    if isinstance(data, bool) or not isinstance(data, int) or data < 0:
        logger.warning(f"Controlling frame replied with a non-count value {data!r}; treating as 0")
        return 0
    return data


class ProxyReplyChannel:
    def __init__(self, transport: Optional[Transport], timeout: Optional[float] = None) -> None:
        self.transport = transport
        self.timeout = timeout
        self._pending: Dict[str, ProxyQuery] = {}

    @property
    def available(self) -> bool:
        return self.transport is not None

    @property
    def pending(self) -> int:
        return len(self._pending)

    def bind(self) -> None:
        if self.transport is not None:
            self.transport.attach(self.receive)

    def unbind(self) -> None:
        if self.transport is not None:
            self.transport.detach()

    async def query(
        self,
        kind: NotificationEvent,
        on_reply: Optional[ReplyCallback] = None,
        timeout: Optional[float] = None,
    ) -> int:
        """
        Ask the controlling frame how many listeners it has for ``kind``.

        Args:
            kind: Event kind to count
            on_reply: Optional callback invoked once with the remote count
            timeout: Seconds to wait; falls back to the channel default, None waits forever

        Returns:
            The remote listener count

        Raises:
            TransportUnavailable: If this context has no controlling frame
            asyncio.TimeoutError: If a timeout is set and no reply arrives in time
            ProxyQueryAbandoned: If the query is abandoned while waiting
        """
        if self.transport is None:
            raise TransportUnavailable("No controlling frame to query")

        kind = NotificationEvent(kind)
        token = uuid.uuid4().hex
        future = asyncio.get_running_loop().create_future()
        self._pending[token] = ProxyQuery(token=token, kind=kind, future=future, on_reply=on_reply)
        self.transport.post({
            "type": ProxyMessage.GET_EVENT_LISTENER_COUNT.value,
            "payload": kind.value,
            "replyToken": token,
        })
        logger.debug(f"Sent listener count query {token} for {kind.value}")

        wait = self.timeout if timeout is None else timeout
        try:
            if wait is None:
                data = await future
            else:
                data = await asyncio.wait_for(future, wait)
        finally:
            self._pending.pop(token, None)
        return _as_count(data)

    def send(self, message_type: ProxyMessage, payload: Any) -> bool:
        """Fire-and-forget relay to the controlling frame. Returns False when there is none."""
        message_type = ProxyMessage(message_type)
        if self.transport is None:
            logger.debug(f"No controlling frame; not relaying {message_type.value}")
            return False
        self.transport.post({"type": message_type.value, "payload": payload})
        return True

    async def receive(self, message: Mapping[str, Any]) -> None:
        try:
            reply = ProxyReply.model_validate(message)
        except ValidationError as exc:
            logger.warning(f"Ignoring malformed proxy reply: {exc}")
            return
        query = self._pending.pop(reply.reply_token, None)
        if query is None or query.future.done():
            logger.debug(f"Ignoring reply for unknown or settled token {reply.reply_token}")
            return
        query.future.set_result(reply.data)
        if query.on_reply is not None:
            try:
                query.on_reply(_as_count(reply.data))
            except Exception:
                logger.exception(f"Reply callback failed for {query.kind.value}")

    def abandon_all(self) -> int:
        """Fail every pending query with ``ProxyQueryAbandoned``. Returns how many were pending."""
        abandoned = 0
        for query in list(self._pending.values()):
            if not query.future.done():
                query.future.set_exception(ProxyQueryAbandoned(f"Query {query.token} for {query.kind.value} abandoned"))
                abandoned += 1
        self._pending.clear()
        return abandoned
