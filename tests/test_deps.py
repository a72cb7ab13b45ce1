import pytest
from starlette.requests import Request

from ghl_gateway.deps import read_body
from ghl_gateway.errors import InvalidRequest


def _chunked_request(chunks):
    state = {"sent": 0}

    async def receive():
        index = state["sent"]
        state["sent"] += 1
        return {
            "type": "http.request",
            "body": chunks[index],
            "more_body": index + 1 < len(chunks),
        }

    scope = {
        "type": "http",
        "method": "POST",
        "path": "/mcp",
        "headers": [(b"transfer-encoding", b"chunked")],
    }
    return Request(scope, receive), state


@pytest.mark.asyncio
async def test_chunked_body_within_limit_is_joined():
    request, _ = _chunked_request([b'{"a":', b" 1}"])
    assert await read_body(request, 64) == b'{"a": 1}'


@pytest.mark.asyncio
async def test_chunked_body_stops_reading_once_over_limit():
    request, state = _chunked_request([b"x" * 40] * 100)

    with pytest.raises(InvalidRequest) as excinfo:
        await read_body(request, 64)

    assert excinfo.value.http_status == 413
    # Only the chunks up to the limit were pulled off the connection.
    assert state["sent"] == 2


@pytest.mark.asyncio
async def test_declared_length_over_limit_is_rejected_before_reading():
    async def receive():
        raise AssertionError("body should not be read")

    scope = {
        "type": "http",
        "method": "POST",
        "path": "/mcp",
        "headers": [(b"content-length", b"1000")],
    }
    with pytest.raises(InvalidRequest):
        await read_body(Request(scope, receive), 64)
