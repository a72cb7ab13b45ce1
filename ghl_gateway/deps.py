from typing import Optional

from fastapi import Request

from .errors import InvalidRequest
from .protocol import ProtocolAdapter
from .session_manager import SessionManager, resolve_session_id
from .settings import Settings
from .sse import ChannelHub


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_protocol(request: Request) -> ProtocolAdapter:
    return request.app.state.protocol


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.sessions


def get_channels(request: Request) -> ChannelHub:
    return request.app.state.channels


def get_session_id(request: Request) -> Optional[str]:
    """
    FastAPI dependency resolving the caller's session id from correlation headers.
    """
    return resolve_session_id(request.headers, request.app.state.settings)


async def read_body(request: Request, limit: int) -> bytes:
    """
    Read the whole request body once, refusing anything above `limit` bytes.
    """
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > limit:
        raise InvalidRequest(f"Request body exceeds {limit} bytes", http_status=413)
    # Chunked uploads carry no length; count while reading.
    chunks = []
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        if received > limit:
            raise InvalidRequest(f"Request body exceeds {limit} bytes", http_status=413)
        chunks.append(chunk)
    return b"".join(chunks)
