"""
Asterisk Manager Interface transport over an asyncio TCP stream.

Wire format: the server greets with a single banner line, then every message
in either direction is a block of ``Key: value`` lines ended by a blank line.
Responses echo the ``ActionID`` of their action. List actions such as
``QueueStatus`` answer ``EventList: start`` and then stream events carrying
the same ``ActionID`` until one marked ``EventList: Complete``; those events
are gathered into the response under ``"events"``. Everything else arriving
with an ``Event`` key is emitted on :attr:`TransportSignal.EVENT`.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ami_queue_cache import actions
from ami_queue_cache.actions import Action
from ami_queue_cache.transport import ListenerRegistry, Response, ResponseCallback, TransportSignal

logger = logging.getLogger(__name__)

MESSAGE_END = b"\r\n\r\n"


def parse_message(raw: bytes) -> Dict[str, str]:
    """Parse one ``Key: value`` block into a dict with lower-cased keys."""
    message: Dict[str, str] = {}
    for line in raw.decode("utf-8", errors="replace").split("\r\n"):
        key, sep, value = line.partition(":")
        key = key.strip()
        if sep and key:
            message[key.lower()] = value.strip()
    return message


@dataclass(slots=True)
class _PendingAction:
    name: str
    callback: ResponseCallback
    response: Optional[Dict[str, Any]] = None
    events: List[Dict[str, str]] = field(default_factory=list)


class AmiTransport(ListenerRegistry):
    """One AMI session: connect, log in, read forever, correlate responses."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        secret: str,
        *,
        events: str = "on",
    ) -> None:
        super().__init__()
        self.host = host
        self.port = port
        self._username = username
        self._secret = secret
        self._events = events

        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._task: asyncio.Task | None = None
        self._pending: Dict[str, _PendingAction] = {}
        self._ids = itertools.count(1)
        self._id_prefix = f"qc-{os.getpid()}"

    @property
    def is_open(self) -> bool:
        return self._writer is not None and not self._writer.is_closing()

    # ------------------------------------------------------------------ #
    # Transport interface
    # ------------------------------------------------------------------ #

    def open(self) -> None:
        """Start a fresh session, abandoning any attempt still in flight."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._release(self._writer)
        self._task = asyncio.get_running_loop().create_task(self._run())

    def send(self, action: Action, callback: ResponseCallback) -> Optional[str]:
        writer = self._writer
        if writer is None or writer.is_closing():
            logger.debug("Cannot send %s: no open AMI session", action.name)
            callback(None)
            return None

        action_id = f"{self._id_prefix}-{next(self._ids)}"
        self._pending[action_id] = _PendingAction(action.name, callback)
        try:
            writer.write(action.to_message(action_id))
        except (OSError, RuntimeError) as exc:
            logger.error("Failed to write %s: %s", action.name, exc)
            self._pending.pop(action_id, None)
            callback(None)
            return None
        return action_id

    def cancel(self, action_id: str) -> None:
        # A late answer for a forgotten id is handled as uncorrelated.
        pending = self._pending.pop(action_id, None)
        if pending is not None:
            logger.debug("Forgot %s (%s)", pending.name, action_id)

    async def close(self) -> None:
        """Log off, stop the reader and close the socket."""
        task, self._task = self._task, None
        writer = self._writer

        if writer is not None and not writer.is_closing():
            try:
                writer.write(actions.logoff().to_message())
                await writer.drain()
            except OSError as exc:
                logger.debug("Logoff not delivered: %s", exc)

        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        self._release(writer)
        if writer is not None:
            try:
                await writer.wait_closed()
            except OSError as exc:
                logger.debug("Error while closing AMI socket: %s", exc)
        logger.info("AMI session to %s:%d closed", self.host, self.port)

    # ------------------------------------------------------------------ #
    # Session
    # ------------------------------------------------------------------ #

    async def _run(self) -> None:
        writer: asyncio.StreamWriter | None = None
        try:
            reader, writer = await asyncio.open_connection(self.host, self.port)
            banner = await reader.readline()
            if not banner:
                raise asyncio.IncompleteReadError(b"", None)
            logger.info(
                "Connected to %s:%d (%s)",
                self.host,
                self.port,
                banner.decode("utf-8", errors="replace").strip(),
            )

            self._reader, self._writer = reader, writer
            self.send(
                actions.login(self._username, self._secret, self._events),
                self._on_login,
            )

            while True:
                raw = await reader.readuntil(MESSAGE_END)
                self._dispatch(parse_message(raw))

        except asyncio.IncompleteReadError:
            logger.warning("AMI server at %s:%d closed the connection", self.host, self.port)
            self._release(writer)
            self.emit(TransportSignal.CLOSED)
        except (OSError, asyncio.LimitOverrunError) as exc:
            logger.error("AMI socket error: %s", exc)
            self._release(writer)
            self.emit(TransportSignal.CONNECTION_ERROR, exc)
        except asyncio.CancelledError:
            self._release(writer)
            raise

    def _on_login(self, response: Optional[Response]) -> None:
        if response is None:
            # The session ended before the answer; its own signal reports that.
            return
        if str(response.get("response", "")).lower() == "success":
            logger.info("Logged in to AMI as %s", self._username)
            self.emit(TransportSignal.CONNECTED)
            return

        logger.error("AMI login rejected: %s", response.get("message", "no message"))
        self.emit(TransportSignal.INVALID_CREDENTIALS)
        task = asyncio.current_task()
        if task is not None and task is self._task:
            task.cancel()

    def _dispatch(self, message: Dict[str, str]) -> None:
        action_id = message.get("actionid")
        pending = self._pending.get(action_id) if action_id else None

        if pending is None or ("event" in message and pending.response is None):
            if "event" in message:
                self.emit(TransportSignal.EVENT, message)
            else:
                logger.debug("Dropping uncorrelated message: %s", message)
            return

        if "event" not in message:
            if message.get("eventlist", "").lower() == "start":
                pending.response = message
                return
            del self._pending[action_id]
            self._answer(pending, message)
            return

        if message.get("eventlist", "").lower() == "complete":
            del self._pending[action_id]
            response = dict(pending.response or {})
            response["events"] = pending.events
            self._answer(pending, response)
        else:
            pending.events.append(message)

    def _answer(self, pending: _PendingAction, response: Optional[Response]) -> None:
        try:
            pending.callback(response)
        except Exception:
            logger.exception("Response callback for %s failed", pending.name)

    def _release(self, writer: asyncio.StreamWriter | None) -> None:
        """Forget ``writer`` if it is the live one, failing its pending actions."""
        if writer is self._writer:
            self._reader = self._writer = None
            pending, self._pending = self._pending, {}
            for entry in pending.values():
                self._answer(entry, None)
        if writer is not None:
            writer.close()


__all__ = ["AmiTransport", "parse_message", "MESSAGE_END"]
