"""Tests for listener presence resolution."""

from __future__ import annotations

import asyncio

import pytest

from helpers import answering_proxy
from pushrelay.core.commands import NotificationEvent
from pushrelay.core.presence import ContextRole, PresenceResolver
from pushrelay.core.proxy import ProxyReplyChannel
from pushrelay.core.registry import ListenerRegistry
from pushrelay.core.transport import QueueTransport


@pytest.mark.asyncio
async def test_local_mode_counts_registry() -> None:
    registry = ListenerRegistry()
    registry.register(NotificationEvent.CLICKED, lambda _: None)
    registry.register(NotificationEvent.CLICKED, lambda _: None)

    resolver = PresenceResolver(registry, role=ContextRole.HOST)

    assert not resolver.delegated
    assert await resolver.count(NotificationEvent.CLICKED) == 2
    assert await resolver.count(NotificationEvent.DISPLAYED) == 0


@pytest.mark.asyncio
async def test_delegated_mode_uses_remote_count_not_local_registry() -> None:
    registry = ListenerRegistry()
    registry.register(NotificationEvent.CLICKED, lambda _: None)
    proxy = answering_proxy(4)
    resolver = PresenceResolver(registry, role=ContextRole.PROXY_FRAME, proxy=proxy)

    assert resolver.delegated
    assert await resolver.count(NotificationEvent.CLICKED) == 4
    assert len(proxy.transport.sent) == 1
    assert proxy.transport.sent[0]["payload"] == "notificationClick"


@pytest.mark.asyncio
async def test_delegated_mode_zero_remote_listeners() -> None:
    registry = ListenerRegistry()
    registry.register(NotificationEvent.CLICKED, lambda _: None)
    resolver = PresenceResolver(registry, role=ContextRole.PROXY_FRAME, proxy=answering_proxy(0))

    assert await resolver.count(NotificationEvent.CLICKED) == 0


@pytest.mark.asyncio
async def test_other_roles_never_query() -> None:
    proxy = answering_proxy(7)
    for role in (ContextRole.HOST, ContextRole.CUSTOM_IFRAME, ContextRole.SUBSCRIPTION_POPUP):
        resolver = PresenceResolver(ListenerRegistry(), role=role, proxy=proxy)
        assert await resolver.count(NotificationEvent.CLICKED) == 0
    assert proxy.transport.sent == []


@pytest.mark.asyncio
async def test_proxy_frame_without_controlling_frame_falls_back_to_local() -> None:
    registry = ListenerRegistry()
    registry.register(NotificationEvent.CLICKED, lambda _: None)
    resolver = PresenceResolver(registry, role=ContextRole.PROXY_FRAME, proxy=ProxyReplyChannel(None))

    assert not resolver.delegated
    assert await resolver.count(NotificationEvent.CLICKED) == 1


@pytest.mark.asyncio
async def test_timed_out_remote_query_counts_as_zero() -> None:
    silent = QueueTransport(name="silent-frame")
    resolver = PresenceResolver(
        ListenerRegistry(),
        role=ContextRole.PROXY_FRAME,
        proxy=ProxyReplyChannel(silent, timeout=0.01),
    )

    assert await resolver.count(NotificationEvent.CLICKED) == 0
    assert len(silent.sent) == 1


@pytest.mark.asyncio
async def test_abandoned_remote_query_counts_as_zero() -> None:
    silent = QueueTransport(name="silent-frame")
    proxy = ProxyReplyChannel(silent)
    resolver = PresenceResolver(ListenerRegistry(), role=ContextRole.PROXY_FRAME, proxy=proxy)

    task = asyncio.create_task(resolver.count(NotificationEvent.CLICKED))
    for _ in range(100):
        if silent.sent:
            break
        await asyncio.sleep(0)
    proxy.abandon_all()

    assert await task == 0
