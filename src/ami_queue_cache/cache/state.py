"""
The queue map and its read helpers.

:class:`QueueState` owns ``queue name -> Queue`` and is the only code that
mutates it. Writers keep the one-member-per-extension invariant; readers
return copies so callers can never reach into the live map.
"""

from __future__ import annotations

from typing import Dict, Iterable, List

from ami_queue_cache.models import Agent, Member, PauseUpdate, Queue


class QueueState:
    """Authoritative in-memory queue map."""

    def __init__(self) -> None:
        self._queues: Dict[str, Queue] = {}

    def __len__(self) -> int:
        return len(self._queues)

    # ------------------------------------------------------------------ #
    # WRITE helpers
    # ------------------------------------------------------------------ #

    def replace(self, queues: Dict[str, Queue]) -> None:
        """Swap in a freshly built map in one step."""
        self._queues = dict(queues)

    def ensure_queue(self, name: str) -> Queue:
        """Return queue ``name``, creating it with default counters if unseen."""
        queue = self._queues.get(name)
        if queue is None:
            queue = Queue(name=name)
            self._queues[name] = queue
        return queue

    def add_member(self, queue_name: str, member: Member) -> bool:
        """Append ``member`` unless its extension is already in the queue."""
        queue = self.ensure_queue(queue_name)
        if queue.member_index(member.extension) is not None:
            return False
        queue.members.append(member)
        return True

    def remove_member(self, queue_name: str, extension: str) -> Member | None:
        queue = self._queues.get(queue_name)
        if queue is None:
            return None
        index = queue.member_index(extension)
        if index is None:
            return None
        return queue.members.pop(index)

    def update_member(
        self, queue_name: str, extension: str, update: Member | PauseUpdate
    ) -> Member | None:
        """
        Write ``update`` over the member in place.

        A :class:`Member` replaces the whole record; a :class:`PauseUpdate`
        only touches the pause fields. Returns the stored record, or ``None``
        when the queue or member is unknown.
        """
        queue = self._queues.get(queue_name)
        if queue is None:
            return None
        index = queue.member_index(extension)
        if index is None:
            return None
        if isinstance(update, PauseUpdate):
            member = queue.members[index].with_pause(update)
        else:
            member = update
        queue.members[index] = member
        return member

    # ------------------------------------------------------------------ #
    # READ helpers
    # ------------------------------------------------------------------ #

    def find_member(self, queue_name: str, extension: str) -> Member | None:
        queue = self._queues.get(queue_name)
        if queue is None:
            return None
        index = queue.member_index(extension)
        return None if index is None else queue.members[index]

    def queues(self) -> List[Queue]:
        return [queue.copy() for queue in self._queues.values()]

    def queue(self, name: str) -> Queue | None:
        queue = self._queues.get(name)
        return queue.copy() if queue is not None else None

    def agent(self, extension: str) -> Agent | None:
        """Union of every queue holding ``extension``; fields from the first one."""
        first: Member | None = None
        names: List[str] = []
        for queue in self._queues.values():
            index = queue.member_index(extension)
            if index is None:
                continue
            names.append(queue.name)
            if first is None:
                first = queue.members[index]
        if first is None:
            return None
        return Agent(first, tuple(names))

    def queue_agents(self, name: str) -> List[Agent]:
        queue = self._queues.get(name)
        if queue is None:
            return []
        return _annotate(queue.members, name)

    def available_agents(self, name: str) -> List[Agent]:
        queue = self._queues.get(name)
        if queue is None:
            return []
        return _annotate((m for m in queue.members if m.is_available), name)

    def all_agents(self) -> List[Agent]:
        members: Dict[str, Member] = {}
        queues: Dict[str, List[str]] = {}
        for queue in self._queues.values():
            for member in queue.members:
                if member.extension not in members:
                    members[member.extension] = member
                    queues[member.extension] = [queue.name]
                elif queue.name not in queues[member.extension]:
                    queues[member.extension].append(queue.name)
        return [Agent(member, tuple(queues[ext])) for ext, member in members.items()]


def _annotate(members: Iterable[Member], queue_name: str) -> List[Agent]:
    return [Agent(member, (queue_name,)) for member in members]


__all__ = ["QueueState"]
