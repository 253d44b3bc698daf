"""
Connection lifecycle for the AMI transport.

:class:`ConnectionController` drives the transport through
``DISCONNECTED -> CONNECTING -> CONNECTED`` and, after any failure, through
``RECONNECTING`` back to ``CONNECTING``. Every connect attempt is bounded by
``connect_timeout``; every failure (close, refused login, transport or socket
error, timeout) runs the same disconnection path, which waits a fixed
``reconnect_interval`` and tries again, forever. Only :meth:`shutdown` stops
the loop.

Failures are published as
:class:`~ami_queue_cache.notifications.ConnectionErrorOccurred`; none of
them is raised to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Dict

from .errors import ConnectionErrorCode
from .notifications import (
    Connected,
    ConnectionErrorOccurred,
    Disconnected,
    NotificationBus,
    Reconnecting,
)
from .transport import Transport, TransportSignal

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


class ConnectionController:
    def __init__(
        self,
        transport: Transport,
        bus: NotificationBus,
        *,
        on_event: Callable[[Any], None],
        reconnect_interval: float = 5.0,
        connect_timeout: float = 10.0,
    ) -> None:
        self._transport = transport
        self._bus = bus
        self._reconnect_interval = reconnect_interval
        self._connect_timeout = connect_timeout

        self.state = ConnectionState.DISCONNECTED
        self._should_reconnect = True
        self._connect_timer: asyncio.TimerHandle | None = None
        self._reconnect_timer: asyncio.TimerHandle | None = None

        self._listeners: Dict[TransportSignal, Callable[..., None]] = {
            TransportSignal.CONNECTED: self._handle_connected,
            TransportSignal.CLOSED: self._handle_closed,
            TransportSignal.INVALID_CREDENTIALS: self._handle_invalid_credentials,
            TransportSignal.CONNECTION_ERROR: self._handle_connection_error,
            TransportSignal.EVENT: on_event,
        }

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    @property
    def should_reconnect(self) -> bool:
        return self._should_reconnect

    # ------------------------------------------------------------------ #
    # Connect
    # ------------------------------------------------------------------ #

    def connect(self) -> None:
        """Start one bounded connect attempt unless one is running or we are shut down."""
        if not self._should_reconnect:
            return
        if self.state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
            return

        self._detach()
        self._attach()

        loop = asyncio.get_running_loop()
        self._cancel_timers()
        self._connect_timer = loop.call_later(self._connect_timeout, self._handle_connect_timeout)
        self.state = ConnectionState.CONNECTING
        logger.info("Connecting to Asterisk AMI (timeout=%gs)", self._connect_timeout)

        try:
            self._transport.open()
        except Exception as exc:
            self._signal_error(ConnectionErrorCode.TRANSPORT_ERROR, str(exc))
            self._handle_disconnection()

    def _attach(self) -> None:
        for signal, listener in self._listeners.items():
            self._transport.on(signal, listener)

    def _detach(self) -> None:
        for signal, listener in self._listeners.items():
            self._transport.off(signal, listener)

    # ------------------------------------------------------------------ #
    # Transport signals
    # ------------------------------------------------------------------ #

    def _handle_connected(self, *_: Any) -> None:
        # A late login after a timeout also lands here; drop the pending retry.
        self._cancel_timers()
        self.state = ConnectionState.CONNECTED
        logger.info("Connected to Asterisk AMI")
        self._bus.publish(Connected())

    def _handle_closed(self, *_: Any) -> None:
        logger.warning("AMI connection closed")
        self._handle_disconnection()

    def _handle_invalid_credentials(self, *_: Any) -> None:
        self._signal_error(
            ConnectionErrorCode.INVALID_CREDENTIALS, "Invalid Asterisk AMI credentials"
        )
        self._handle_disconnection()

    def _handle_connection_error(self, error: BaseException | None = None, *_: Any) -> None:
        code = (
            ConnectionErrorCode.SOCKET_ERROR
            if isinstance(error, OSError)
            else ConnectionErrorCode.TRANSPORT_ERROR
        )
        self._signal_error(code, str(error) if error is not None else "Connection error")
        self._handle_disconnection()

    def _handle_connect_timeout(self) -> None:
        self._connect_timer = None
        self._signal_error(
            ConnectionErrorCode.TIMEOUT,
            f"Timed out after {self._connect_timeout:g}s connecting to Asterisk AMI",
        )
        self._handle_disconnection()

    def _signal_error(self, code: ConnectionErrorCode, message: str) -> None:
        logger.error("AMI connection error [%s]: %s", code.value, message)
        self._bus.publish(ConnectionErrorOccurred(code, message))

    # ------------------------------------------------------------------ #
    # Disconnect / reconnect
    # ------------------------------------------------------------------ #

    def _handle_disconnection(self) -> None:
        self._cancel_timers()
        self.state = ConnectionState.DISCONNECTED
        self._bus.publish(Disconnected())

        if not self._should_reconnect:
            return

        self.state = ConnectionState.RECONNECTING
        logger.info("Reconnecting in %gs", self._reconnect_interval)
        self._bus.publish(Reconnecting(self._reconnect_interval))
        self._reconnect_timer = asyncio.get_running_loop().call_later(
            self._reconnect_interval, self._reconnect
        )

    def _reconnect(self) -> None:
        self._reconnect_timer = None
        try:
            self.connect()
        except Exception as exc:
            self._signal_error(ConnectionErrorCode.RECONNECT_ERROR, str(exc))
            self._handle_disconnection()

    def _cancel_connect_timer(self) -> None:
        if self._connect_timer is not None:
            self._connect_timer.cancel()
            self._connect_timer = None

    def _cancel_timers(self) -> None:
        self._cancel_connect_timer()
        if self._reconnect_timer is not None:
            self._reconnect_timer.cancel()
            self._reconnect_timer = None

    async def shutdown(self) -> None:
        """Stop reconnecting, drop listeners and close the transport."""
        self._should_reconnect = False
        self._cancel_timers()
        self._detach()

        # Closed in every state: an attempt abandoned by a timeout may still be running.
        try:
            await self._transport.close()
        except Exception as exc:
            self._signal_error(ConnectionErrorCode.CLEANUP_ERROR, str(exc))

        self.state = ConnectionState.DISCONNECTED
        logger.info("AMI connection shut down")
        self._bus.publish(Disconnected())


__all__ = ["ConnectionState", "ConnectionController"]
