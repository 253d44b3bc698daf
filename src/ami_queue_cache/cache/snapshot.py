"""Build a queue map from the entries of a ``QueueStatus`` response."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Mapping

from ami_queue_cache.errors import MalformedEventError
from ami_queue_cache.models import Member, Queue, normalize_payload

logger = logging.getLogger(__name__)


def build_queue_map(entries: Iterable[Mapping[str, Any]]) -> Dict[str, Queue]:
    """
    Fold the ordered ``QueueStatus`` entries into ``name -> Queue``.

    A ``QueueParams`` entry opens a new queue; the ``QueueMember`` entries that
    follow belong to it until the next ``QueueParams``. Members seen before any
    queue, repeated extensions and malformed entries are skipped. Other entry
    kinds (``QueueEntry``, ``QueueStatusComplete``) are ignored.
    """
    queues: Dict[str, Queue] = {}
    current: Queue | None = None

    for raw in entries:
        entry = normalize_payload(raw)
        kind = str(entry.get("event", ""))

        if kind == "QueueParams":
            try:
                current = Queue.from_params(entry)
            except MalformedEventError as exc:
                # Its members would otherwise land in the previous queue.
                logger.warning("Skipping malformed QueueParams entry: %s", exc)
                current = None
                continue
            queues[current.name] = current

        elif kind == "QueueMember":
            if current is None:
                continue
            try:
                member = Member.from_snapshot_entry(entry)
            except MalformedEventError as exc:
                logger.warning("Skipping malformed QueueMember entry in %s: %s", current.name, exc)
                continue
            if current.member_index(member.extension) is None:
                current.members.append(member)

    return queues


__all__ = ["build_queue_map"]
