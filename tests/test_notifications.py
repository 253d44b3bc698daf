import asyncio

import pytest

from ami_queue_cache.errors import ConnectionErrorCode
from ami_queue_cache.models import Member, Queue
from ami_queue_cache.notifications import (
    Connected,
    ConnectionErrorOccurred,
    Disconnected,
    MemberPauseChanged,
    NotificationBus,
    QueuesUpdated,
    Reconnecting,
    notification_to_dict,
)


def test_subscribe_filters_by_kind_and_unsubscribes():
    bus = NotificationBus()
    everything, errors = [], []
    unsubscribe = bus.subscribe(everything.append)
    bus.subscribe(errors.append, ConnectionErrorOccurred)

    bus.publish(Connected())
    bus.publish(ConnectionErrorOccurred(ConnectionErrorCode.TIMEOUT, "slow"))
    unsubscribe()
    bus.publish(Disconnected())

    assert everything == [Connected(), ConnectionErrorOccurred(ConnectionErrorCode.TIMEOUT, "slow")]
    assert errors == [ConnectionErrorOccurred(ConnectionErrorCode.TIMEOUT, "slow")]


def test_failing_subscriber_does_not_block_others(caplog):
    bus = NotificationBus()
    received = []

    def broken(notification):
        raise RuntimeError("boom")

    bus.subscribe(broken)
    bus.subscribe(received.append)
    bus.publish(Connected())

    assert received == [Connected()]
    assert "Subscriber failed while handling connected" in caplog.text


@pytest.mark.asyncio
async def test_coroutine_subscribers_are_scheduled():
    bus = NotificationBus()
    received = []

    async def handler(notification):
        received.append(notification)

    bus.subscribe(handler)
    bus.publish(Reconnecting(5.0))
    await asyncio.sleep(0)

    assert received == [Reconnecting(5.0)]


@pytest.mark.asyncio
async def test_stream_and_wait_for():
    bus = NotificationBus()
    stream = bus.stream(Connected, Disconnected)

    async def consume():
        seen = []
        async for notification in stream:
            seen.append(notification)
            if len(seen) == 2:
                break
        return seen

    consumer = asyncio.ensure_future(consume())
    await asyncio.sleep(0)
    bus.publish(Connected())
    bus.publish(Reconnecting(1.0))
    bus.publish(Disconnected())

    assert await asyncio.wait_for(consumer, 1) == [Connected(), Disconnected()]

    waiter = asyncio.ensure_future(bus.wait_for(Reconnecting, timeout=1))
    await asyncio.sleep(0)
    bus.publish(Reconnecting(2.5))
    assert (await waiter).delay == 2.5

    with pytest.raises(asyncio.TimeoutError):
        await bus.wait_for(Connected, timeout=0.01)


@pytest.mark.asyncio
async def test_stream_keeps_notifications_published_before_iteration():
    bus = NotificationBus()

    async with bus.stream(Reconnecting) as stream:
        bus.publish(Reconnecting(1.0))
        bus.publish(Connected())
        bus.publish(Reconnecting(2.0))
        seen = []
        async for notification in stream:
            seen.append(notification.delay)
            if len(seen) == 2:
                break

    assert seen == [1.0, 2.0]
    bus.publish(Reconnecting(3.0))
    assert [n async for n in stream] == []


@pytest.mark.asyncio
async def test_closing_stream_ends_pending_iteration():
    bus = NotificationBus()
    stream = bus.stream()

    async def consume():
        return [n async for n in stream]

    consumer = asyncio.ensure_future(consume())
    await asyncio.sleep(0)
    bus.publish(Connected())
    await asyncio.sleep(0)
    stream.close()

    assert await asyncio.wait_for(consumer, 1) == [Connected()]


def test_notification_to_dict_payload_shapes():
    member = Member("SIP/100", name="Alice", paused=1)

    assert notification_to_dict(Reconnecting(5.0)) == {"event": "reconnecting", "delay": 5.0}
    assert notification_to_dict(
        ConnectionErrorOccurred(ConnectionErrorCode.INVALID_CREDENTIALS, "bad login")
    ) == {"event": "connectionError", "code": "InvalidCredentials", "message": "bad login"}

    pause = notification_to_dict(MemberPauseChanged(("A", "B"), member, 1))
    assert pause["event"] == "memberPauseChanged"
    assert pause["queues"] == ["A", "B"]
    assert pause["paused"] == 1
    assert pause["member"]["name"] == "Alice"

    updated = notification_to_dict(QueuesUpdated((Queue("A"),)))
    assert updated["queues"][0]["name"] == "A"
