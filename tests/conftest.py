import asyncio
import os
import sys
from pathlib import Path
from typing import Callable, Optional

import pytest

# Add src/ to sys.path for imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

# Ensure credentials exist for Ami.validate()
os.environ.setdefault("AMI_USERNAME", "test-user")
os.environ.setdefault("AMI_SECRET", "test-secret")

from ami_queue_cache.actions import Action  # noqa: E402
from ami_queue_cache.cache import QueueCache  # noqa: E402
from ami_queue_cache.config import Config  # noqa: E402
from ami_queue_cache.config.ami import Ami  # noqa: E402
from ami_queue_cache.config.timing import Timing  # noqa: E402
from ami_queue_cache.transport import ListenerRegistry, Response, TransportSignal  # noqa: E402


class FakeTransport(ListenerRegistry):
    """
    In-memory transport.

    ``open()`` reports a successful login on the next loop iteration unless
    ``auto_connect`` is off. ``responder`` maps each sent action to its
    response; without one, actions are recorded and never answered.
    """

    def __init__(self, *, auto_connect: bool = True) -> None:
        super().__init__()
        self.auto_connect = auto_connect
        self.responder: Optional[Callable[[Action], Optional[Response]]] = None
        self.send_error: Optional[Exception] = None
        self.open_error: Optional[Exception] = None
        self.close_error: Optional[Exception] = None
        self.opened = 0
        self.closed = 0
        self.sent: list[Action] = []
        self.pending: dict[str, Callable] = {}

    def open(self) -> None:
        self.opened += 1
        if self.open_error is not None:
            raise self.open_error
        if self.auto_connect:
            asyncio.get_running_loop().call_soon(self.emit, TransportSignal.CONNECTED)

    async def close(self) -> None:
        self.closed += 1
        if self.close_error is not None:
            raise self.close_error

    def send(self, action: Action, callback) -> Optional[str]:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(action)
        action_id = f"fake-{len(self.sent)}"
        if self.responder is None:
            self.pending[action_id] = callback
            return action_id
        response = self.responder(action)
        asyncio.get_running_loop().call_soon(callback, response)
        return action_id

    def cancel(self, action_id: str) -> None:
        self.pending.pop(action_id, None)

    def event(self, **fields) -> None:
        """Deliver one raw AMI event to the listeners."""
        self.emit(TransportSignal.EVENT, fields)


def make_config(**timing) -> Config:
    values = {
        "reconnect_interval": 0.05,
        "connect_timeout": 0.2,
        "event_debounce": 0.05,
        "command_timeout": 0.2,
        "max_event_deferral": "",
    }
    values.update(timing)
    raw = {"queuecache": {"timing": values}}
    return Config(Ami(raw), Timing(raw))


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def cache_factory(transport):
    def _make(**timing) -> QueueCache:
        return QueueCache(transport, make_config(**timing))

    return _make


@pytest.fixture
def recorder():
    """A subscriber that keeps every notification it receives."""

    class _Recorder(list):
        def __call__(self, notification):
            self.append(notification)

        def of(self, kind):
            return [n for n in self if isinstance(n, kind)]

    return _Recorder()
