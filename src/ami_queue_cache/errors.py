"""Exception types and connection error codes."""

from __future__ import annotations

from enum import Enum


class ConnectionErrorCode(str, Enum):
    """Labels published with :class:`~ami_queue_cache.notifications.ConnectionErrorOccurred`."""

    TIMEOUT = "Timeout"
    INVALID_CREDENTIALS = "InvalidCredentials"
    TRANSPORT_ERROR = "TransportError"
    SOCKET_ERROR = "SocketError"
    RECONNECT_ERROR = "ReconnectError"
    CLEANUP_ERROR = "CleanupError"


class QueueCacheError(Exception):
    """Base class for every error raised by this package."""


class MalformedEventError(QueueCacheError, ValueError):
    """A raw AMI payload is missing an identity field or carries a bad number."""


class CommandError(QueueCacheError):
    """An action sent through the command gateway did not succeed."""

    def __init__(self, action: str, message: str) -> None:
        super().__init__(message)
        self.action = action


class NotConnectedError(CommandError):
    def __init__(self, action: str) -> None:
        super().__init__(action, f"Not connected to Asterisk; cannot send {action}")


class CommandTimeoutError(CommandError):
    def __init__(self, action: str, timeout: float) -> None:
        super().__init__(action, f"Timed out after {timeout:g}s waiting for {action}")
        self.timeout = timeout


class InvalidResponseError(CommandError):
    def __init__(self, action: str) -> None:
        super().__init__(action, f"Invalid response from Asterisk for {action}")


class RemoteError(CommandError):
    """Asterisk answered with ``Response: Error``."""

    def __init__(self, action: str, remote_message: str | None) -> None:
        self.remote_message = remote_message or "Unknown error"
        super().__init__(action, f"Asterisk error for {action}: {self.remote_message}")


__all__ = [
    "ConnectionErrorCode",
    "QueueCacheError",
    "MalformedEventError",
    "CommandError",
    "NotConnectedError",
    "CommandTimeoutError",
    "InvalidResponseError",
    "RemoteError",
]
