import asyncio

import pytest

from ami_queue_cache.cache.coalescer import EventCoalescer, EventKind
from ami_queue_cache.models import Member, PauseUpdate


def _member(ext="SIP/100", status=1):
    return Member(extension=ext, status=status)


@pytest.mark.asyncio
async def test_burst_for_one_extension_fires_once_with_ordered_queues():
    fired = []
    coalescer = EventCoalescer(fired.append, window=0.1)

    for queue in ("A", "B", "A", "C"):
        coalescer.schedule(EventKind.STATUS, "SIP/100", queue, _member())
        await asyncio.sleep(0.02)

    assert fired == []
    assert "SIP/100" in coalescer

    await asyncio.sleep(0.2)

    assert len(fired) == 1
    assert fired[0].queues == ["A", "B", "C"]
    assert len(coalescer) == 0


@pytest.mark.asyncio
async def test_newest_payload_and_kind_win():
    fired = []
    coalescer = EventCoalescer(fired.append, window=0.05)

    coalescer.schedule(EventKind.STATUS, "SIP/100", "A", _member(status=2))
    coalescer.schedule(EventKind.PAUSE, "SIP/100", "B", PauseUpdate(paused=1, paused_reason="Lunch"))
    await asyncio.sleep(0.15)

    assert len(fired) == 1
    assert fired[0].kind is EventKind.PAUSE
    assert fired[0].payload == PauseUpdate(paused=1, paused_reason="Lunch")


@pytest.mark.asyncio
async def test_extensions_are_independent():
    fired = []
    coalescer = EventCoalescer(fired.append, window=0.05)

    coalescer.schedule(EventKind.STATUS, "SIP/100", "A", _member("SIP/100"))
    coalescer.schedule(EventKind.STATUS, "SIP/101", "A", _member("SIP/101"))
    await asyncio.sleep(0.15)

    assert sorted(entry.extension for entry in fired) == ["SIP/100", "SIP/101"]


@pytest.mark.asyncio
async def test_sustained_stream_is_deferred_without_cap():
    fired = []
    coalescer = EventCoalescer(fired.append, window=0.1)

    for _ in range(8):
        coalescer.schedule(EventKind.STATUS, "SIP/100", "A", _member())
        await asyncio.sleep(0.04)

    assert fired == []
    coalescer.cancel_all()


@pytest.mark.asyncio
async def test_max_deferral_forces_fire_during_stream():
    fired = []
    coalescer = EventCoalescer(fired.append, window=0.1, max_deferral=0.15)

    for _ in range(10):
        coalescer.schedule(EventKind.STATUS, "SIP/100", "A", _member())
        await asyncio.sleep(0.04)

    assert len(fired) >= 1
    coalescer.cancel_all()


@pytest.mark.asyncio
async def test_flush_fires_everything_now():
    fired = []
    coalescer = EventCoalescer(fired.append, window=10)

    coalescer.schedule(EventKind.STATUS, "SIP/100", "A", _member("SIP/100"))
    coalescer.schedule(EventKind.PAUSE, "SIP/101", "B", PauseUpdate(paused=1))

    assert coalescer.flush() == 2
    assert [entry.extension for entry in fired] == ["SIP/100", "SIP/101"]
    assert len(coalescer) == 0
    assert coalescer.flush() == 0


@pytest.mark.asyncio
async def test_cancel_all_discards_without_applying():
    fired = []
    coalescer = EventCoalescer(fired.append, window=0.05)

    coalescer.schedule(EventKind.STATUS, "SIP/100", "A", _member())
    coalescer.cancel_all()
    await asyncio.sleep(0.15)

    assert fired == []
    assert coalescer.pending("SIP/100") is None


@pytest.mark.asyncio
async def test_apply_failure_is_logged_and_entry_dropped(caplog):
    def explode(entry):
        raise RuntimeError("boom")

    coalescer = EventCoalescer(explode, window=0.01)
    coalescer.schedule(EventKind.STATUS, "SIP/100", "A", _member())
    await asyncio.sleep(0.1)

    assert len(coalescer) == 0
    assert "Failed to apply buffered QueueMemberStatus for SIP/100" in caplog.text
