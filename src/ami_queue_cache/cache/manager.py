"""Queue cache coordinating the connection, event coalescing and queue state."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, List, Mapping

from ami_queue_cache import actions
from ami_queue_cache.actions import Action
from ami_queue_cache.config import Config, config as default_config
from ami_queue_cache.connection import ConnectionController, ConnectionState
from ami_queue_cache.errors import CommandError, MalformedEventError
from ami_queue_cache.gateway import CommandGateway, is_success
from ami_queue_cache.models import Agent, Member, PauseUpdate, Queue, normalize_payload, require_field
from ami_queue_cache.notifications import (
    MemberAdded,
    MemberPauseChanged,
    MemberRemoved,
    MemberStatusChanged,
    NotificationBus,
    QueuesUpdated,
    Subscriber,
)
from ami_queue_cache.transport import Transport

from .coalescer import EventCoalescer, EventKind, PendingEvent
from .snapshot import build_queue_map
from .state import QueueState

logger = logging.getLogger(__name__)


class QueueCache:
    """
    Live view of Asterisk queues and their members.

    Owns one transport connection. Raw AMI events flow in through
    :meth:`handle_event`; status and pause bursts are debounced per extension,
    member add/remove events apply immediately and ``FullyBooted`` triggers a
    full :meth:`resync`. Changes are published on :attr:`notifications`.

    Read accessors are synchronous and return copies. The mutating commands
    return ``True``/``False`` and never raise. Call :meth:`shutdown` to stop.
    """

    def __init__(
        self,
        transport: Transport,
        config: Config | None = None,
        *,
        bus: NotificationBus | None = None,
    ) -> None:
        cfg = config or default_config
        timing = cfg.timing

        self.notifications = bus or NotificationBus()
        self._state = QueueState()
        self._coalescer = EventCoalescer(
            self._apply_pending,
            window=timing.EVENT_DEBOUNCE,
            max_deferral=timing.MAX_EVENT_DEFERRAL,
        )
        self._connection = ConnectionController(
            transport,
            self.notifications,
            on_event=self.handle_event,
            reconnect_interval=timing.RECONNECT_INTERVAL,
            connect_timeout=timing.CONNECT_TIMEOUT,
        )
        self._gateway = CommandGateway(
            transport,
            lambda: self._connection.is_connected,
            default_timeout=timing.COMMAND_TIMEOUT,
        )
        self._tasks: set[asyncio.Task] = set()
        self._resync_task: asyncio.Task | None = None
        self._handlers: Dict[str, Callable[[Dict[str, Any]], None]] = {
            "FullyBooted": self._on_fully_booted,
            "QueueMemberStatus": self._on_member_status,
            "QueueMemberPause": self._on_member_pause,
            "QueueMemberAdded": self._on_member_added,
            "QueueMemberRemoved": self._on_member_removed,
        }

    @classmethod
    def from_config(cls, config: Config | None = None, **kwargs: Any) -> "QueueCache":
        """Build a cache over an :class:`~ami_queue_cache.clients.ami.AmiTransport`."""
        from ami_queue_cache.clients.ami import AmiTransport

        cfg = config or default_config
        cfg.ami.validate()
        transport = AmiTransport(
            cfg.ami.HOST,
            cfg.ami.PORT,
            cfg.ami.USERNAME,
            cfg.ami.SECRET,
            events=cfg.ami.EVENTS,
        )
        return cls(transport, cfg, **kwargs)

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    @property
    def connection_state(self) -> ConnectionState:
        return self._connection.state

    @property
    def is_connected(self) -> bool:
        return self._connection.is_connected

    @property
    def gateway(self) -> CommandGateway:
        return self._gateway

    @property
    def pending_events(self) -> int:
        return len(self._coalescer)

    def subscribe(self, callback: Subscriber, *kinds: type) -> Callable[[], None]:
        return self.notifications.subscribe(callback, *kinds)

    def connect(self) -> None:
        self._connection.connect()

    async def shutdown(self) -> None:
        """
        Stop for good: no more reconnects, timers, buffered events or resyncs.

        Everything up to the transport close happens before the first await,
        so no callback can slip in between.
        """
        self._coalescer.cancel_all()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await self._connection.shutdown()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    disconnect = shutdown

    # ------------------------------------------------------------------ #
    # Raw events
    # ------------------------------------------------------------------ #

    def handle_event(self, event: Mapping[str, Any]) -> None:
        payload = normalize_payload(event)
        kind = str(payload.get("event", ""))
        handler = self._handlers.get(kind)
        if handler is None:
            return
        try:
            handler(payload)
        except MalformedEventError as exc:
            logger.warning("Dropping malformed %s event: %s", kind, exc)

    def _on_fully_booted(self, payload: Dict[str, Any]) -> None:
        logger.info("Asterisk fully booted; resynchronizing queues")
        self._start_resync()

    def _on_member_status(self, payload: Dict[str, Any]) -> None:
        queue = require_field(payload, "queue")
        member = Member.from_event(payload)
        self._coalescer.schedule(EventKind.STATUS, member.extension, queue, member)

    def _on_member_pause(self, payload: Dict[str, Any]) -> None:
        queue = require_field(payload, "queue")
        extension = require_field(payload, "interface", "location")
        update = PauseUpdate.from_event(payload)
        self._coalescer.schedule(EventKind.PAUSE, extension, queue, update)

    def _on_member_added(self, payload: Dict[str, Any]) -> None:
        queue = require_field(payload, "queue")
        member = Member.from_event(payload)
        if not self._state.add_member(queue, member):
            return
        logger.info("Member %s added to queue %s", member.extension, queue)
        self.notifications.publish(MemberAdded(queue, member))
        self._publish_queues()

    def _on_member_removed(self, payload: Dict[str, Any]) -> None:
        queue = require_field(payload, "queue")
        extension = require_field(payload, "interface", "location")
        removed = self._state.remove_member(queue, extension)
        if removed is None:
            return
        logger.info("Member %s removed from queue %s", extension, queue)
        self.notifications.publish(MemberRemoved(queue, removed))
        self._publish_queues()

    def _apply_pending(self, entry: PendingEvent) -> None:
        for queue in entry.queues:
            self._state.update_member(queue, entry.extension, entry.payload)

        member = self._state.find_member(entry.queues[0], entry.extension)
        if member is not None:
            if entry.kind is EventKind.STATUS:
                notification = MemberStatusChanged(tuple(entry.queues), member, member.paused)
            else:
                notification = MemberPauseChanged(tuple(entry.queues), member, member.paused)
            self.notifications.publish(notification)
        self._publish_queues()

    def _publish_queues(self) -> None:
        self.notifications.publish(QueuesUpdated(tuple(self._state.queues())))

    # ------------------------------------------------------------------ #
    # Full resync
    # ------------------------------------------------------------------ #

    async def resync(self) -> bool:
        """
        Rebuild the whole cache from a ``QueueStatus`` snapshot.

        Buffered member events are applied first so none fires against the
        replaced map later. On any failure the current cache is kept.

        Callers arriving while a resync is already running share its result
        instead of sending a second ``QueueStatus``.
        """
        return await asyncio.shield(self._start_resync())

    def _start_resync(self) -> asyncio.Task:
        task = self._resync_task
        if task is None or task.done():
            task = asyncio.get_running_loop().create_task(self._resync())
            self._resync_task = task
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        return task

    async def _resync(self) -> bool:
        drained = self._coalescer.flush()
        if drained:
            logger.info("Applied %d buffered member events before resync", drained)

        try:
            response = await self._gateway.send(actions.queue_status())
        except CommandError as exc:
            logger.error("Queue resync failed: %s", exc)
            return False

        entries = response.get("events")
        if entries is None:
            logger.warning("QueueStatus response carried no entries; keeping current cache")
            return False

        queues = build_queue_map(entries)
        self._state.replace(queues)
        logger.info("Resynchronized %d queues", len(queues))
        self._publish_queues()
        return True

    # ------------------------------------------------------------------ #
    # READ helpers
    # ------------------------------------------------------------------ #

    def get_queues(self) -> List[Queue]:
        return self._state.queues()

    def get_queue(self, name: str) -> Queue | None:
        return self._state.queue(name)

    def get_agent_by_extension(self, extension: str) -> Agent | None:
        return self._state.agent(extension)

    def get_available_agents(self, queue: str) -> List[Agent]:
        """Members of ``queue`` with status 1 (not in use) and not paused."""
        return self._state.available_agents(queue)

    def get_queue_agents(self, queue: str) -> List[Agent]:
        return self._state.queue_agents(queue)

    def get_all_agents(self) -> List[Agent]:
        return self._state.all_agents()

    # ------------------------------------------------------------------ #
    # Commands
    # ------------------------------------------------------------------ #

    async def pause_member(
        self, interface: str, reason: str = "", queue: str | None = None
    ) -> bool:
        return await self._run_command(
            actions.queue_pause(interface, reason, queue), f"pause member {interface}"
        )

    async def unpause_member(self, interface: str, queue: str | None = None) -> bool:
        return await self._run_command(
            actions.queue_unpause(interface, queue), f"unpause member {interface}"
        )

    async def add_member_to_queue(
        self,
        interface: str,
        member_name: str,
        queue: str,
        paused: bool = False,
        penalty: int = 0,
    ) -> bool:
        return await self._run_command(
            actions.queue_add(interface, queue, paused, member_name, penalty),
            f"add member {interface} to queue {queue}",
        )

    async def remove_member_from_queue(self, interface: str, queue: str) -> bool:
        return await self._run_command(
            actions.queue_remove(interface, queue),
            f"remove member {interface} from queue {queue}",
        )

    async def _run_command(self, action: Action, description: str) -> bool:
        try:
            response = await self._gateway.send(action)
        except CommandError as exc:
            logger.error("Failed to %s: %s", description, exc)
            return False

        if not is_success(response):
            logger.error("Failed to %s: unexpected response %s", description, dict(response))
            return False

        logger.info("Done: %s", description)
        return True


__all__ = ["QueueCache"]
