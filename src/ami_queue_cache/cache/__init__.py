"""
Queue and member cache package.

Modules
=======

``manager``
    Defines :class:`~ami_queue_cache.cache.manager.QueueCache`, the coordinator
    that wires the connection controller, the event coalescer, the queue state
    and the command gateway together.
``state``
    Provides :class:`~ami_queue_cache.cache.state.QueueState`, the queue map and
    its agent read helpers.
``coalescer``
    Debounces bursts of ``QueueMemberStatus`` / ``QueueMemberPause`` events per
    extension.
``snapshot``
    Folds the entries of a ``QueueStatus`` response into a fresh queue map.
"""

from .manager import QueueCache

__all__ = ["QueueCache"]
