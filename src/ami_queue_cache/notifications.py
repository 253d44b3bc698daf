"""
Outbound notifications published by :class:`~ami_queue_cache.QueueCache`.

Every notification is a small frozen dataclass whose ``kind`` names the event
the way hosts usually label it on the wire (``memberPauseChanged`` and so
on). :class:`NotificationBus` delivers them to subscribers, either through
plain callbacks (coroutine callbacks are scheduled as tasks) or through the
async iterator returned by :meth:`NotificationBus.stream`.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Dict, Optional, Tuple, Union

from .errors import ConnectionErrorCode
from .models import Member, Queue

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class Connected:
    kind: ClassVar[str] = "connected"


@dataclass(slots=True, frozen=True)
class Disconnected:
    kind: ClassVar[str] = "disconnected"


@dataclass(slots=True, frozen=True)
class Reconnecting:
    kind: ClassVar[str] = "reconnecting"

    delay: float


@dataclass(slots=True, frozen=True)
class ConnectionErrorOccurred:
    kind: ClassVar[str] = "connectionError"

    code: ConnectionErrorCode
    message: str


@dataclass(slots=True, frozen=True)
class QueuesUpdated:
    kind: ClassVar[str] = "queuesUpdated"

    queues: Tuple[Queue, ...]


@dataclass(slots=True, frozen=True)
class MemberAdded:
    kind: ClassVar[str] = "memberAdded"

    queue: str
    member: Member


@dataclass(slots=True, frozen=True)
class MemberRemoved:
    kind: ClassVar[str] = "memberRemoved"

    queue: str
    member: Member


@dataclass(slots=True, frozen=True)
class MemberStatusChanged:
    kind: ClassVar[str] = "memberStatusChanged"

    queues: Tuple[str, ...]
    member: Member
    paused: int


@dataclass(slots=True, frozen=True)
class MemberPauseChanged:
    kind: ClassVar[str] = "memberPauseChanged"

    queues: Tuple[str, ...]
    member: Member
    paused: int


Notification = Union[
    Connected,
    Disconnected,
    Reconnecting,
    ConnectionErrorOccurred,
    QueuesUpdated,
    MemberAdded,
    MemberRemoved,
    MemberStatusChanged,
    MemberPauseChanged,
]

Subscriber = Callable[[Notification], Any]


def notification_to_dict(notification: Notification) -> Dict[str, Any]:
    """Return a JSON-ready dict: ``{"event": kind, **payload}``."""

    data: Dict[str, Any] = {"event": notification.kind}
    if isinstance(notification, Reconnecting):
        data["delay"] = notification.delay
    elif isinstance(notification, ConnectionErrorOccurred):
        data["code"] = notification.code.value
        data["message"] = notification.message
    elif isinstance(notification, QueuesUpdated):
        data["queues"] = [queue.to_dict() for queue in notification.queues]
    elif isinstance(notification, (MemberAdded, MemberRemoved)):
        data["queue"] = notification.queue
        data["member"] = notification.member.to_dict()
    elif isinstance(notification, (MemberStatusChanged, MemberPauseChanged)):
        data["queues"] = list(notification.queues)
        data["member"] = notification.member.to_dict()
        data["paused"] = notification.paused
    return data


@dataclass(slots=True, eq=False)
class _Subscription:
    callback: Subscriber
    kinds: Tuple[type, ...]

    def wants(self, notification: Notification) -> bool:
        return not self.kinds or isinstance(notification, self.kinds)


class NotificationBus:
    """Fan-out of notifications to callbacks and async streams."""

    def __init__(self) -> None:
        self._subscriptions: list[_Subscription] = []
        self._tasks: set[asyncio.Task] = set()

    def subscribe(self, callback: Subscriber, *kinds: type) -> Callable[[], None]:
        """
        Register ``callback`` for every notification, or only for ``kinds``.

        Returns a callable that removes the subscription again.
        """
        subscription = _Subscription(callback, kinds)
        self._subscriptions.append(subscription)

        def unsubscribe() -> None:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

        return unsubscribe

    def publish(self, notification: Notification) -> None:
        logger.debug("Publishing %s", notification.kind)
        for subscription in list(self._subscriptions):
            if not subscription.wants(notification):
                continue
            try:
                result = subscription.callback(notification)
            except Exception:
                logger.exception("Subscriber failed while handling %s", notification.kind)
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Async subscriber failed: %s", exc, exc_info=exc)

    def stream(self, *kinds: type) -> NotificationStream:
        """Subscribe now and iterate notifications (optionally only ``kinds``) later."""
        return NotificationStream(self, kinds)

    async def wait_for(self, *kinds: type, timeout: float | None = None) -> Notification:
        """Wait for the next notification of ``kinds``; ``asyncio.TimeoutError`` on expiry."""
        future: asyncio.Future[Notification] = asyncio.get_running_loop().create_future()

        def _resolve(notification: Notification) -> None:
            if not future.done():
                future.set_result(notification)

        unsubscribe = self.subscribe(_resolve, *kinds)
        try:
            return await asyncio.wait_for(future, timeout)
        finally:
            unsubscribe()


class NotificationStream:
    """
    Async iterator over the notifications of one bus.

    The subscription is taken when the stream is created, so notifications
    published before the first ``async for`` step are queued, not lost. It
    lasts until :meth:`close`, or the end of an ``async with`` block; closing
    also ends any iteration in progress.
    """

    def __init__(self, bus: NotificationBus, kinds: Tuple[type, ...]) -> None:
        self._queue: asyncio.Queue[Optional[Notification]] = asyncio.Queue()
        self._unsubscribe = bus.subscribe(self._queue.put_nowait, *kinds)
        self._closed = False

    def __aiter__(self) -> NotificationStream:
        return self

    async def __anext__(self) -> Notification:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        notification = await self._queue.get()
        if notification is None:
            raise StopAsyncIteration
        return notification

    async def __aenter__(self) -> NotificationStream:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._unsubscribe()
        self._queue.put_nowait(None)


__all__ = [
    "Connected",
    "Disconnected",
    "Reconnecting",
    "ConnectionErrorOccurred",
    "QueuesUpdated",
    "MemberAdded",
    "MemberRemoved",
    "MemberStatusChanged",
    "MemberPauseChanged",
    "Notification",
    "NotificationBus",
    "NotificationStream",
    "Subscriber",
    "notification_to_dict",
]
