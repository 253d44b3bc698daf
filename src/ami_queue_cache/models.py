"""
Typed queue and member records built from raw AMI payloads.

AMI delivers every event and response as flat ``Key: value`` text, so every
field arrives as a string and key casing depends on the Asterisk version.
The parsers in this module are the only place raw payloads are turned into
records: keys are matched case-insensitively, integers are parsed strictly and
a bad value raises :class:`~ami_queue_cache.errors.MalformedEventError` instead
of leaking a sentinel into the cache. Optional numeric fields that are simply
absent default to ``0`` because older Asterisk releases omit some of them
(``LoginTime``, ``Wrapuptime``).

Member payload shapes::

    QueueMemberStatus / QueueMemberAdded   Interface, MemberName, ...
    QueueMember (QueueStatus entry)        Location,  Name,       ...
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Tuple

from .errors import MalformedEventError

DEFAULT_STRATEGY = "ringall"

# AST_DEVICE_NOT_INUSE
STATUS_AVAILABLE = 1


def normalize_payload(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``payload`` with lower-cased keys."""
    return {str(key).lower(): value for key, value in payload.items()}


def _text(payload: Mapping[str, Any], *keys: str) -> str:
    for key in keys:
        value = payload.get(key)
        if value is not None:
            return str(value)
    return ""


def require_field(payload: Mapping[str, Any], *keys: str) -> str:
    """Return the first non-blank of ``keys`` (lower-cased names) or raise."""
    value = _text(payload, *keys).strip()
    if not value:
        raise MalformedEventError(f"missing required field {'/'.join(keys)}")
    return value


def _int(payload: Mapping[str, Any], key: str) -> int:
    raw = payload.get(key)
    if raw is None or str(raw).strip() == "":
        return 0
    try:
        return int(str(raw).strip())
    except ValueError as exc:
        raise MalformedEventError(f"{key}={raw!r} is not an integer") from exc


def _float(payload: Mapping[str, Any], key: str) -> float:
    raw = payload.get(key)
    if raw is None or str(raw).strip() == "":
        return 0.0
    try:
        value = float(str(raw).strip())
    except ValueError as exc:
        raise MalformedEventError(f"{key}={raw!r} is not a number") from exc
    if not math.isfinite(value):
        raise MalformedEventError(f"{key}={raw!r} is not a finite number")
    return value


@dataclass(slots=True, frozen=True)
class Member:
    """One agent's registration inside one queue."""

    extension: str
    name: str = ""
    state_interface: str = ""
    membership: str = ""
    penalty: int = 0
    calls_taken: int = 0
    last_call: int = 0
    last_pause: int = 0
    login_time: int = 0
    in_call: int = 0
    status: int = 0
    paused: int = 0
    paused_reason: str = ""
    wrapup_time: int = 0

    @classmethod
    def from_event(cls, payload: Mapping[str, Any]) -> "Member":
        """Build from a ``QueueMemberStatus`` or ``QueueMemberAdded`` event."""
        data = normalize_payload(payload)
        return cls._build(
            data,
            extension=require_field(data, "interface", "location"),
            name=_text(data, "membername", "name"),
        )

    @classmethod
    def from_snapshot_entry(cls, payload: Mapping[str, Any]) -> "Member":
        """Build from a ``QueueMember`` entry of a ``QueueStatus`` response."""
        data = normalize_payload(payload)
        return cls._build(
            data,
            extension=require_field(data, "location", "interface"),
            name=_text(data, "name", "membername"),
        )

    @classmethod
    def _build(cls, data: Mapping[str, Any], *, extension: str, name: str) -> "Member":
        return cls(
            extension=extension,
            name=name,
            state_interface=_text(data, "stateinterface"),
            membership=_text(data, "membership"),
            penalty=_int(data, "penalty"),
            calls_taken=_int(data, "callstaken"),
            last_call=_int(data, "lastcall"),
            last_pause=_int(data, "lastpause"),
            login_time=_int(data, "logintime"),
            in_call=_int(data, "incall"),
            status=_int(data, "status"),
            paused=_int(data, "paused"),
            paused_reason=_text(data, "pausedreason"),
            wrapup_time=_int(data, "wrapuptime"),
        )

    def with_pause(self, update: "PauseUpdate") -> "Member":
        return replace(
            self,
            paused=update.paused,
            paused_reason=update.paused_reason,
            last_pause=update.last_pause,
        )

    @property
    def is_available(self) -> bool:
        return self.status == STATUS_AVAILABLE and self.paused == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "extension": self.extension,
            "stateInterface": self.state_interface,
            "membership": self.membership,
            "penalty": self.penalty,
            "callsTaken": self.calls_taken,
            "lastCall": self.last_call,
            "lastPause": self.last_pause,
            "loginTime": self.login_time,
            "inCall": self.in_call,
            "status": self.status,
            "paused": self.paused,
            "pausedReason": self.paused_reason,
            "wrapupTime": self.wrapup_time,
        }


@dataclass(slots=True, frozen=True)
class PauseUpdate:
    """The three fields a ``QueueMemberPause`` event carries."""

    paused: int
    paused_reason: str = ""
    last_pause: int = 0

    @classmethod
    def from_event(cls, payload: Mapping[str, Any]) -> "PauseUpdate":
        data = normalize_payload(payload)
        return cls(
            paused=_int(data, "paused"),
            # Asterisk < 13 names the field "Reason"
            paused_reason=_text(data, "pausedreason", "reason"),
            last_pause=_int(data, "lastpause"),
        )


@dataclass(slots=True)
class Queue:
    """A call queue with its aggregate counters and ordered members."""

    name: str
    max: int = 0
    strategy: str = DEFAULT_STRATEGY
    calls: int = 0
    holdtime: int = 0
    talktime: int = 0
    completed: int = 0
    abandoned: int = 0
    servicelevel: int = 0
    servicelevel_perf: float = 0.0
    servicelevel_perf2: float = 0.0
    weight: int = 0
    members: list[Member] = field(default_factory=list)

    @classmethod
    def from_params(cls, payload: Mapping[str, Any]) -> "Queue":
        """Build an empty-membered queue from a ``QueueParams`` entry."""
        data = normalize_payload(payload)
        return cls(
            name=require_field(data, "queue"),
            max=_int(data, "max"),
            strategy=_text(data, "strategy") or DEFAULT_STRATEGY,
            calls=_int(data, "calls"),
            holdtime=_int(data, "holdtime"),
            talktime=_int(data, "talktime"),
            completed=_int(data, "completed"),
            abandoned=_int(data, "abandoned"),
            servicelevel=_int(data, "servicelevel"),
            servicelevel_perf=_float(data, "servicelevelperf"),
            servicelevel_perf2=_float(data, "servicelevelperf2"),
            weight=_int(data, "weight"),
        )

    def member_index(self, extension: str) -> int | None:
        for index, member in enumerate(self.members):
            if member.extension == extension:
                return index
        return None

    def copy(self) -> "Queue":
        """Shallow copy with its own member list (members are immutable)."""
        return replace(self, members=list(self.members))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "max": self.max,
            "strategy": self.strategy,
            "calls": self.calls,
            "holdtime": self.holdtime,
            "talktime": self.talktime,
            "completed": self.completed,
            "abandoned": self.abandoned,
            "servicelevel": self.servicelevel,
            "servicelevelperf": self.servicelevel_perf,
            "servicelevelperf2": self.servicelevel_perf2,
            "weight": self.weight,
            "members": [member.to_dict() for member in self.members],
        }


@dataclass(slots=True, frozen=True)
class Agent:
    """Read-side view of one extension and the queues it belongs to."""

    member: Member
    queues: Tuple[str, ...]

    @property
    def extension(self) -> str:
        return self.member.extension

    @property
    def queue(self) -> str:
        """The queue the member fields were taken from."""
        return self.queues[0]

    def to_dict(self) -> Dict[str, Any]:
        data = self.member.to_dict()
        data["queue"] = self.queue
        data["queues"] = list(self.queues)
        return data


__all__ = [
    "DEFAULT_STRATEGY",
    "STATUS_AVAILABLE",
    "normalize_payload",
    "require_field",
    "Member",
    "PauseUpdate",
    "Queue",
    "Agent",
]
