"""Live cache of Asterisk call queues and their members, fed by AMI events."""

from .cache import QueueCache
from .config import Config
from .connection import ConnectionState
from .errors import (
    CommandError,
    CommandTimeoutError,
    ConnectionErrorCode,
    InvalidResponseError,
    MalformedEventError,
    NotConnectedError,
    QueueCacheError,
    RemoteError,
)
from .models import Agent, Member, Queue
from .notifications import (
    Connected,
    ConnectionErrorOccurred,
    Disconnected,
    MemberAdded,
    MemberPauseChanged,
    MemberRemoved,
    MemberStatusChanged,
    Notification,
    NotificationBus,
    NotificationStream,
    QueuesUpdated,
    Reconnecting,
    notification_to_dict,
)

__version__ = "0.1.0"

__all__ = [
    "QueueCache",
    "Config",
    "ConnectionState",
    "Agent",
    "Member",
    "Queue",
    "Notification",
    "NotificationBus",
    "NotificationStream",
    "Connected",
    "Disconnected",
    "Reconnecting",
    "ConnectionErrorOccurred",
    "QueuesUpdated",
    "MemberAdded",
    "MemberRemoved",
    "MemberStatusChanged",
    "MemberPauseChanged",
    "notification_to_dict",
    "ConnectionErrorCode",
    "QueueCacheError",
    "MalformedEventError",
    "CommandError",
    "NotConnectedError",
    "CommandTimeoutError",
    "InvalidResponseError",
    "RemoteError",
]
