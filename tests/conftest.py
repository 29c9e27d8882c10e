"""Shared fixtures for relay tests."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import pytest

from helpers import FIXED_NOW, PAGE_URL
from pushrelay.core import ContextRole, DurableInbox, ProxyReplyChannel, QueueTransport, Router


@pytest.fixture
def inbox(tmp_path: Path) -> DurableInbox:  # type: ignore[misc]
    store = DurableInbox(db_path=tmp_path / "inbox.db")
    yield store  # type: ignore[misc]
    store.close()


@pytest.fixture
def worker() -> QueueTransport:
    return QueueTransport(name="worker")


@pytest.fixture
def make_router(inbox: DurableInbox, worker: QueueTransport):
    def _make(
        role: ContextRole = ContextRole.HOST,
        proxy_transport: Optional[QueueTransport] = None,
        timeout: Optional[float] = None,
    ) -> Router:
        router = Router(
            worker,
            inbox=inbox,
            location=lambda: PAGE_URL,
            proxy=ProxyReplyChannel(proxy_transport, timeout=timeout),
            role=role,
            clock=lambda: FIXED_NOW,
        )
        router.bind()
        return router

    return _make
