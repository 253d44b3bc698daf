"""
The narrow interface the cache uses to reach Asterisk.

A transport owns the socket, the login handshake and the correlation of
actions with their responses. The cache only ever calls the methods of
:class:`Transport` and listens to the :class:`TransportSignal` channels:

``CONNECTED``            login succeeded
``CLOSED``               the connection ended
``INVALID_CREDENTIALS``  login was refused
``CONNECTION_ERROR``     the transport failed; the listener receives the exception
``EVENT``                one unsolicited AMI event (a key/value mapping)

:class:`ListenerRegistry` is the listener bookkeeping shared by transport
implementations.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Protocol

from .actions import Action

logger = logging.getLogger(__name__)

Response = Mapping[str, Any]
ResponseCallback = Callable[[Optional[Response]], None]
Listener = Callable[..., Any]


class TransportSignal(str, Enum):
    CONNECTED = "connected"
    CLOSED = "connection_closed"
    INVALID_CREDENTIALS = "invalid_credentials"
    CONNECTION_ERROR = "connection_error"
    EVENT = "event"


class Transport(Protocol):
    def open(self) -> None:
        """Start connecting; the outcome arrives as a signal."""
        ...

    def close(self) -> Awaitable[None]: ...

    def send(self, action: Action, callback: ResponseCallback) -> Optional[str]:
        """
        Dispatch ``action``; ``callback`` receives the response, or ``None``.

        Returns the id the action is tracked under, or ``None`` when it was
        answered (or refused) immediately.
        """
        ...

    def cancel(self, action_id: str) -> None:
        """Forget a tracked action; its callback is never invoked."""
        ...

    def on(self, signal: TransportSignal, listener: Listener) -> None: ...

    def off(self, signal: TransportSignal, listener: Listener) -> None: ...

    def remove_all_listeners(self, signal: TransportSignal | None = None) -> None: ...


class ListenerRegistry:
    """Per-signal listener lists with logged, non-propagating dispatch."""

    def __init__(self) -> None:
        self._listeners: Dict[TransportSignal, List[Listener]] = {}

    def on(self, signal: TransportSignal, listener: Listener) -> None:
        self._listeners.setdefault(signal, []).append(listener)

    def off(self, signal: TransportSignal, listener: Listener) -> None:
        listeners = self._listeners.get(signal, [])
        if listener in listeners:
            listeners.remove(listener)

    def remove_all_listeners(self, signal: TransportSignal | None = None) -> None:
        if signal is None:
            self._listeners.clear()
        else:
            self._listeners.pop(signal, None)

    def listener_count(self, signal: TransportSignal) -> int:
        return len(self._listeners.get(signal, []))

    def emit(self, signal: TransportSignal, *args: Any) -> None:
        for listener in list(self._listeners.get(signal, [])):
            try:
                listener(*args)
            except Exception:
                logger.exception("Listener for %s failed", signal.value)


__all__ = [
    "Response",
    "ResponseCallback",
    "TransportSignal",
    "Transport",
    "ListenerRegistry",
]
