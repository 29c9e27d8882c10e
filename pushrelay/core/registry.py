"""Per-event listener registry used for local fan-out and presence checks."""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .commands import NotificationEvent

Listener = Callable[[Dict[str, Any]], Any]


@dataclass(frozen=True)
class ListenerRegistration:
    kind: NotificationEvent
    handler: Listener


class ListenerRegistry:
    """
    Ordered listener sets keyed by event kind.

    Insertion order is delivery order. Registering the same handler twice for
    one kind keeps the first registration.
    """

    def __init__(self) -> None:
        self._listeners: Dict[NotificationEvent, List[ListenerRegistration]] = defaultdict(list)

    def register(self, kind: NotificationEvent, handler: Listener) -> ListenerRegistration:
        kind = NotificationEvent(kind)
        for registration in self._listeners[kind]:
            if registration.handler == handler:
                return registration
        registration = ListenerRegistration(kind=kind, handler=handler)
        self._listeners[kind].append(registration)
        return registration

    def unregister(self, kind: NotificationEvent, handler: Listener) -> bool:
        registrations = self._listeners[NotificationEvent(kind)]
        for registration in registrations:
            if registration.handler == handler:
                registrations.remove(registration)
                return True
        return False

    def unregister_all(self, kind: Optional[NotificationEvent] = None) -> None:
        if kind is None:
            self._listeners.clear()
        else:
            self._listeners.pop(NotificationEvent(kind), None)

    def count(self, kind: NotificationEvent) -> int:
        return len(self._listeners.get(NotificationEvent(kind), ()))

    def snapshot(self, kind: NotificationEvent) -> List[ListenerRegistration]:
        """Copy of the registrations for ``kind``, safe to iterate while handlers mutate the registry."""
        return list(self._listeners.get(NotificationEvent(kind), ()))

    def clear(self) -> None:
        self._listeners.clear()

    @property
    def counts(self) -> Dict[str, int]:
        return {kind.value: self.count(kind) for kind in NotificationEvent}
