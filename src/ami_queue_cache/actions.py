"""AMI actions and the builders used by the cache."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass(slots=True)
class Action:
    """An AMI action: a name plus ``Key: value`` fields (``None`` values are omitted)."""

    name: str
    fields: Dict[str, Any] = field(default_factory=dict)

    def to_message(self, action_id: str | None = None) -> bytes:
        lines = [f"Action: {self.name}"]
        if action_id:
            lines.append(f"ActionID: {action_id}")
        for key, value in self.fields.items():
            if value is None:
                continue
            if isinstance(value, bool):
                value = "true" if value else "false"
            lines.append(f"{key}: {value}")
        return ("\r\n".join(lines) + "\r\n\r\n").encode()


def login(username: str, secret: str, events: str = "on") -> Action:
    return Action("Login", {"Username": username, "Secret": secret, "Events": events})


def logoff() -> Action:
    return Action("Logoff")


def queue_status(queue: str | None = None) -> Action:
    return Action("QueueStatus", {"Queue": queue})


def queue_pause(
    interface: str, reason: str = "", queue: str | None = None, paused: bool = True
) -> Action:
    """Pause ``interface`` in ``queue``, or in every queue when ``queue`` is ``None``."""
    return Action(
        "QueuePause",
        {
            "Interface": interface,
            "Queue": queue,
            "Paused": paused,
            "Reason": reason or None,
        },
    )


def queue_unpause(interface: str, queue: str | None = None) -> Action:
    return queue_pause(interface, queue=queue, paused=False)


def queue_add(
    interface: str,
    queue: str,
    paused: bool = False,
    member_name: str | None = None,
    penalty: int = 0,
) -> Action:
    return Action(
        "QueueAdd",
        {
            "Queue": queue,
            "Interface": interface,
            "Paused": paused,
            "MemberName": member_name or None,
            "Penalty": penalty,
        },
    )


def queue_remove(interface: str, queue: str) -> Action:
    return Action("QueueRemove", {"Queue": queue, "Interface": interface})


__all__ = [
    "Action",
    "login",
    "logoff",
    "queue_status",
    "queue_pause",
    "queue_unpause",
    "queue_add",
    "queue_remove",
]
