"""Exception types raised by the relay core."""
from __future__ import annotations


class RelayError(Exception):
    """Base class for relay errors."""


class TransportUnavailable(RelayError):
    """The background or proxy transport does not exist in this context."""


class DurableWriteFailure(RelayError):
    """The inbox could not persist an entry.

    Never swallowed: a click that cannot be stored must surface to the
    caller of the dispatch path instead of disappearing.
    """


class ProxyQueryAbandoned(RelayError):
    """A pending proxy query was cancelled before its reply arrived."""


class InvalidCommand(RelayError, ValueError):
    """An inbound message does not describe a known command."""
