"""
Per-extension debouncing of queue member status and pause events.

Asterisk reports a state change once per (queue, interface) pair, so an agent
logged into five queues produces five ``QueueMemberStatus`` events for one
logical change. :class:`EventCoalescer` buffers them by extension: each new
event for a buffered extension records its queue, replaces the payload (the
newest event wins) and restarts the debounce timer. Only when the extension
has been quiet for a full window does the entry fire, once, with every queue
that reported in the meantime.

Restarting the timer on every event means a sustained stream for one
extension never fires. ``max_deferral`` bounds that: when set, the timer is
re-armed with whatever is left of ``first_seen + max_deferral`` if that is
shorter than the window.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List

from ami_queue_cache.models import Member, PauseUpdate

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    STATUS = "QueueMemberStatus"
    PAUSE = "QueueMemberPause"


@dataclass(slots=True)
class PendingEvent:
    """Buffered state for one extension inside the current debounce window."""

    extension: str
    kind: EventKind
    payload: Member | PauseUpdate
    first_seen: float
    queues: List[str] = field(default_factory=list)
    timer: asyncio.TimerHandle | None = field(default=None, repr=False)


class EventCoalescer:
    """Merge bursts of per-queue events into one ``apply`` call per extension."""

    def __init__(
        self,
        apply: Callable[[PendingEvent], None],
        *,
        window: float,
        max_deferral: float | None = None,
    ) -> None:
        self._apply = apply
        self._window = window
        self._max_deferral = max_deferral
        self._pending: Dict[str, PendingEvent] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, extension: object) -> bool:
        return extension in self._pending

    def pending(self, extension: str) -> PendingEvent | None:
        return self._pending.get(extension)

    def schedule(
        self,
        kind: EventKind,
        extension: str,
        queue: str,
        payload: Member | PauseUpdate,
    ) -> None:
        loop = asyncio.get_running_loop()
        now = loop.time()

        entry = self._pending.get(extension)
        if entry is None:
            entry = PendingEvent(extension, kind, payload, first_seen=now, queues=[queue])
            self._pending[extension] = entry
        else:
            if queue not in entry.queues:
                entry.queues.append(queue)
            entry.kind = kind
            entry.payload = payload
            if entry.timer is not None:
                entry.timer.cancel()

        entry.timer = loop.call_later(self._delay(entry, now), self._fire, extension)
        logger.debug(
            "Buffered %s for %s (queues=%s)", kind.value, extension, entry.queues
        )

    def _delay(self, entry: PendingEvent, now: float) -> float:
        if self._max_deferral is None:
            return self._window
        remaining = entry.first_seen + self._max_deferral - now
        return max(0.0, min(self._window, remaining))

    def _fire(self, extension: str) -> None:
        entry = self._pending.pop(extension, None)
        if entry is None:
            return
        entry.timer = None
        try:
            self._apply(entry)
        except Exception:
            logger.exception("Failed to apply buffered %s for %s", entry.kind.value, extension)

    def flush(self) -> int:
        """Fire every pending entry now; returns how many fired."""
        extensions = list(self._pending)
        for extension in extensions:
            entry = self._pending.get(extension)
            if entry is not None and entry.timer is not None:
                entry.timer.cancel()
            self._fire(extension)
        return len(extensions)

    def cancel_all(self) -> None:
        """Drop every pending entry without applying it."""
        for entry in self._pending.values():
            if entry.timer is not None:
                entry.timer.cancel()
        if self._pending:
            logger.info("Discarded %d buffered member events", len(self._pending))
        self._pending.clear()


__all__ = ["EventKind", "PendingEvent", "EventCoalescer"]
