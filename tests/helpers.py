"""Message builders shared by the relay tests."""
from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional, Tuple

from pushrelay.core.commands import ProxyMessage
from pushrelay.core.proxy import ProxyReplyChannel
from pushrelay.core.transport import QueueTransport

PAGE_URL = "https://example.com/page"
FIXED_NOW = 1_700_000_000_000


def clicked(payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {"command": "notification.clicked", "payload": payload if payload is not None else {}}


def displayed(payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {"command": "notification.displayed", "payload": payload if payload is not None else {}}


def dismissed(payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {"command": "notification.dismissed", "payload": payload if payload is not None else {}}


def redirect(url: str) -> Dict[str, Any]:
    return {"command": "command.redirect", "payload": url}


def answering_proxy(count: Any, **kwargs: Any) -> ProxyReplyChannel:
    """Proxy channel whose controlling frame answers every count query with ``count``."""
    channels: List[ProxyReplyChannel] = []

    def respond(message: Dict[str, Any]) -> None:
        if message["type"] == ProxyMessage.GET_EVENT_LISTENER_COUNT.value:
            reply = {"replyToken": message["replyToken"], "data": count}
            asyncio.get_running_loop().create_task(channels[0].receive(reply))

    channel = ProxyReplyChannel(QueueTransport(name="frame", on_post=respond), **kwargs)
    channels.append(channel)
    return channel


def linked_transports() -> Tuple[QueueTransport, QueueTransport]:
    """A proxy frame side and a controlling page side; posting on one queues the message on the other."""
    peers: Dict[str, QueueTransport] = {}

    def relay_to(name: str) -> Callable[[Dict[str, Any]], None]:
        def _post(message: Dict[str, Any]) -> None:
            asyncio.get_running_loop().create_task(peers[name].put(dict(message)))
        return _post

    frame_side = QueueTransport(name="frame-side", on_post=relay_to("page"))
    page_side = QueueTransport(name="page-side", on_post=relay_to("frame"))
    peers.update(frame=frame_side, page=page_side)
    return frame_side, page_side
