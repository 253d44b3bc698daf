import pytest

from ami_queue_cache import actions
from ami_queue_cache.errors import (
    CommandTimeoutError,
    InvalidResponseError,
    NotConnectedError,
    RemoteError,
)
from ami_queue_cache.gateway import CommandGateway, is_success


def _gateway(transport, connected=True, timeout=0.2):
    return CommandGateway(transport, lambda: connected, default_timeout=timeout)


@pytest.mark.asyncio
async def test_not_connected_fails_before_dispatch(transport):
    gateway = _gateway(transport, connected=False)

    with pytest.raises(NotConnectedError) as excinfo:
        await gateway.send(actions.queue_status())

    assert excinfo.value.action == "QueueStatus"
    assert transport.sent == []


@pytest.mark.asyncio
async def test_success_returns_response(transport):
    transport.responder = lambda action: {"response": "Success", "message": "Paused"}

    response = await _gateway(transport).send(actions.queue_pause("SIP/100"))

    assert is_success(response)
    assert response["message"] == "Paused"


@pytest.mark.asyncio
async def test_timeout(transport):
    with pytest.raises(CommandTimeoutError) as excinfo:
        await _gateway(transport).send(actions.queue_status(), timeout=0.05)

    assert excinfo.value.timeout == 0.05
    assert len(transport.sent) == 1
    # the transport no longer tracks the abandoned action
    assert transport.pending == {}


@pytest.mark.asyncio
async def test_empty_response_is_invalid(transport):
    transport.responder = lambda action: None
    with pytest.raises(InvalidResponseError):
        await _gateway(transport).send(actions.queue_status())

    transport.responder = lambda action: {}
    with pytest.raises(InvalidResponseError):
        await _gateway(transport).send(actions.queue_status())


@pytest.mark.asyncio
async def test_error_response_carries_remote_message(transport):
    transport.responder = lambda action: {"response": "Error", "message": "Interface not found"}

    with pytest.raises(RemoteError) as excinfo:
        await _gateway(transport).send(actions.queue_remove("SIP/9", "sales"))

    assert excinfo.value.remote_message == "Interface not found"

    transport.responder = lambda action: {"response": "error"}
    with pytest.raises(RemoteError) as excinfo:
        await _gateway(transport).send(actions.queue_remove("SIP/9", "sales"))
    assert excinfo.value.remote_message == "Unknown error"


@pytest.mark.asyncio
async def test_dispatch_failure_is_invalid_response(transport):
    transport.send_error = RuntimeError("socket gone")

    with pytest.raises(InvalidResponseError):
        await _gateway(transport).send(actions.queue_status())


def test_is_success():
    assert is_success({"response": "Success"})
    assert not is_success({"response": "Goodbye"})
    assert not is_success(None)
