"""
Message transports.

A transport is the opaque pipe between this context and another one: the
background worker on the command side, the controlling frame on the proxy
side. The relay only needs three things from it: attach a receiver for
inbound messages, detach it, and post outbound messages.

``QueueTransport`` is the in-process implementation. Inbound messages are
queued and drained in arrival order; each one is handed to the receiver in
its own task so a command waiting on a remote reply does not hold up the
ones behind it.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Set

logger = logging.getLogger(__name__)

Message = Dict[str, Any]
Receiver = Callable[[Message], Awaitable[None]]


class Transport(Protocol):
    def attach(self, receiver: Receiver) -> None: ...

    def detach(self) -> None: ...

    def post(self, message: Message) -> None: ...


class QueueTransport:
    def __init__(
        self,
        name: str = "queue",
        maxsize: int = 1000,
        on_post: Optional[Callable[[Message], None]] = None,
    ) -> None:
        self.name = name
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.sent: List[Message] = []
        self.failures: List[BaseException] = []
        self._on_post = on_post
        self._receiver: Optional[Receiver] = None
        self._drain_task: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Future] = set()
        self._started = False
        self._start_lock = asyncio.Lock()

    def attach(self, receiver: Receiver) -> None:
        self._receiver = receiver

    def detach(self) -> None:
        self._receiver = None

    @property
    def attached(self) -> bool:
        return self._receiver is not None

    def post(self, message: Message) -> None:
        self.sent.append(dict(message))
        if self._on_post is not None:
            self._on_post(message)

    async def put(self, message: Message) -> None:
        """Queue an inbound message as if the peer context had sent it."""
        await self.queue.put(message)

    async def _drain(self) -> None:
        while True:
            message = await self.queue.get()
            try:
                receiver = self._receiver
                if receiver is None:
                    logger.debug(f"{self.name}: no receiver attached, dropping message")
                    continue
                task = asyncio.ensure_future(receiver(message))
                self._inflight.add(task)
                task.add_done_callback(self._finished)
            finally:
                self.queue.task_done()

    def _finished(self, task: asyncio.Future) -> None:
        self._inflight.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.failures.append(exc)
            logger.critical(f"{self.name}: dispatch failed: {exc}", exc_info=exc)

    async def start(self) -> None:
        async with self._start_lock:
            if self._started:
                return
            self._drain_task = asyncio.get_running_loop().create_task(self._drain())
            self._started = True

    async def stop(self) -> None:
        if not self._started:
            return
        pending = [self._drain_task, *self._inflight]
        for task in pending:
            task.cancel()
        for task in pending:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:
                # Already recorded by _finished.
                pass
        self._inflight.clear()
        self._drain_task = None
        self._started = False

    async def join(self) -> None:
        """Wait until every queued message has been handed off and its dispatch has finished."""
        await self.queue.join()
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)
