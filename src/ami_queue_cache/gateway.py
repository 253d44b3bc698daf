"""Request/response wrapper for AMI actions."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from .actions import Action
from .errors import (
    CommandTimeoutError,
    InvalidResponseError,
    NotConnectedError,
    RemoteError,
)
from .transport import Response, Transport

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_TIMEOUT = 5.0


class CommandGateway:
    """
    Send one action and wait for its response.

    Raises a :class:`~ami_queue_cache.errors.CommandError` subclass when not
    connected, when ``timeout`` elapses first, when the transport answers with
    nothing, or when Asterisk answers ``Response: Error``.
    """

    def __init__(
        self,
        transport: Transport,
        is_connected: Callable[[], bool],
        *,
        default_timeout: float = DEFAULT_COMMAND_TIMEOUT,
    ) -> None:
        self._transport = transport
        self._is_connected = is_connected
        self._default_timeout = default_timeout

    async def send(self, action: Action, timeout: float | None = None) -> Response:
        if not self._is_connected():
            raise NotConnectedError(action.name)

        timeout = self._default_timeout if timeout is None else timeout
        future: asyncio.Future[Optional[Response]] = asyncio.get_running_loop().create_future()

        def _on_response(response: Optional[Response]) -> None:
            if not future.done():
                future.set_result(response)

        try:
            action_id = self._transport.send(action, _on_response)
        except Exception as exc:
            logger.error("Transport failed to dispatch %s: %s", action.name, exc)
            raise InvalidResponseError(action.name) from exc

        try:
            response = await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError:
            if action_id is not None:
                self._transport.cancel(action_id)
            raise CommandTimeoutError(action.name, timeout) from None

        if not response:
            raise InvalidResponseError(action.name)
        if str(response.get("response", "")).lower() == "error":
            raise RemoteError(action.name, response.get("message"))
        return response


def is_success(response: Response | None) -> bool:
    return bool(response) and str(response.get("response", "")).lower() == "success"


__all__ = ["CommandGateway", "DEFAULT_COMMAND_TIMEOUT", "is_success"]
