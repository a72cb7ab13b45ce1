import datetime
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import httpx
from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from .deps import (
    get_channels,
    get_protocol,
    get_session_id,
    get_session_manager,
    get_settings,
    read_body,
)
from .dispatcher import Dispatcher
from .errors import InvalidRequest
from .logging_config import logger
from .models import RpcResponse
from .protocol import ProtocolAdapter
from .session_manager import SESSION_HEADERS, SessionManager, session_id_from_headers
from .settings import Settings, settings as default_settings
from .sse import ChannelHub, encode_sse, single_event_stream
from .storage import CredentialStore, build_credential_store
from .sweeper import SessionSweeper
from .tools import build_default_registry
from .upstream import UpstreamClientFactory

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class HealthResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: str = "healthy"
    timestamp: str
    mode: str
    active_sessions: int = Field(..., alias="activeSessions")
    available_tools: int = Field(..., alias="availableTools")


class ToolsResponse(BaseModel):
    tools: list[Dict[str, Any]] = Field(default_factory=list)
    count: int = 0


def _wants_event_stream(request: Request) -> bool:
    return "text/event-stream" in request.headers.get("accept", "").lower()


def _render(response: Optional[RpcResponse], *, as_event_stream: bool) -> Response:
    """
    Turn an envelope into an HTTP response. Notifications (no envelope) get 202.
    """
    if response is None:
        return Response(status_code=status.HTTP_202_ACCEPTED)
    payload = response.to_payload()
    if as_event_stream:
        return StreamingResponse(
            single_event_stream(payload),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )
    return JSONResponse(content=payload, status_code=response.http_status)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifecycle:
    - startup: start the periodic session sweep
    - shutdown: stop the sweep, close open push channels and the store
    """
    sweeper: SessionSweeper = app.state.sweeper
    sweeper.start()
    try:
        yield
    finally:
        await sweeper.stop()
        app.state.channels.close_all()
        await app.state.store.close()


def create_app(
    config: Optional[Settings] = None,
    *,
    store: Optional[CredentialStore] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    config = config or default_settings
    store = store or build_credential_store(config)

    registry = build_default_registry()
    sessions = SessionManager(
        store, UpstreamClientFactory.from_settings(config, transport=transport), config
    )
    dispatcher = Dispatcher(registry, sessions, config)

    app = FastAPI(title="GoHighLevel MCP Gateway", version=config.server_version, lifespan=lifespan)
    app.state.settings = config
    app.state.store = store
    app.state.registry = registry
    app.state.sessions = sessions
    app.state.protocol = ProtocolAdapter(dispatcher)
    app.state.sweeper = SessionSweeper(
        store, interval=config.session_sweep_interval, ttl=config.session_ttl_seconds
    )
    app.state.channels = ChannelHub(
        heartbeat_interval=config.sse_heartbeat_interval,
        max_duration=config.sse_max_duration,
    )

    if not config.single_tenant_fallback:
        logger.info("Single-tenant fallback disabled; a session header is required")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.get_cors_origins(),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", *SESSION_HEADERS],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """
        Basic request/response logging middleware.
        Also logs request headers so we can inspect how different
        clients are passing session-related information.
        """
        client_host = request.client.host if request.client else "-"
        # Copy headers into a plain dict; redact Authorization by default.
        headers_for_log = {}
        for k, v in request.headers.items():
            if k.lower() == "authorization":
                headers_for_log[k] = "***REDACTED***"
            else:
                headers_for_log[k] = v

        logger.info(
            "HTTP %s %s from %s, headers=%s",
            request.method,
            request.url.path,
            client_host,
            headers_for_log,
        )
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "Unhandled error while processing %s %s",
                request.method,
                request.url.path,
            )
            raise
        logger.info(
            "HTTP %s %s -> %s", request.method, request.url.path, response.status_code
        )
        return response

    @app.get("/", response_model=HealthResponse)
    @app.get("/health", response_model=HealthResponse)
    async def health(
        request: Request,
        sessions: SessionManager = Depends(get_session_manager),
        cfg: Settings = Depends(get_settings),
    ) -> HealthResponse:
        return HealthResponse(
            timestamp=datetime.datetime.now(datetime.timezone.utc).isoformat(),
            mode=f"session-{cfg.session_backend}",
            active_sessions=await sessions.active_sessions(),
            available_tools=len(request.app.state.registry),
        )

    @app.get("/tools", response_model=ToolsResponse)
    async def list_tools(request: Request) -> ToolsResponse:
        tools = request.app.state.registry.describe_all()
        return ToolsResponse(tools=tools, count=len(tools))

    async def rpc_endpoint(
        request: Request,
        protocol: ProtocolAdapter = Depends(get_protocol),
        cfg: Settings = Depends(get_settings),
        session_id: Optional[str] = Depends(get_session_id),
    ) -> Response:
        """
        One JSON-RPC request per HTTP request. The response is JSON unless
        the caller accepts `text/event-stream`.
        """
        as_event_stream = _wants_event_stream(request)
        try:
            body = await read_body(request, cfg.max_body_bytes)
        except InvalidRequest as exc:
            return _render(RpcResponse.failure(None, exc), as_event_stream=as_event_stream)
        response = await protocol.handle_raw(body, session_id)
        return _render(response, as_event_stream=as_event_stream)

    for path in ("/", "/mcp", "/sse"):
        app.add_api_route(path, rpc_endpoint, methods=["POST"], include_in_schema=path == "/mcp")

    @app.get("/sse")
    async def open_push_channel(
        request: Request,
        channels: ChannelHub = Depends(get_channels),
        session_id: Optional[str] = Depends(get_session_id),
    ) -> StreamingResponse:
        """
        Long-lived push channel. Responses to `POST /messages?channel_id=...`
        are delivered here as `message` events.
        """
        channel = channels.open(session_id)
        endpoint = f"/messages?channel_id={channel.channel_id}"
        connected = {
            "type": "connection",
            "status": "connected",
            "channelId": channel.channel_id,
            "tools": len(request.app.state.registry),
        }
        return StreamingResponse(
            channel.stream(
                encode_sse(endpoint, event="endpoint"),
                encode_sse(connected, event="connection"),
            ),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    @app.post("/messages")
    async def post_message(
        request: Request,
        channel_id: str = Query(...),
        protocol: ProtocolAdapter = Depends(get_protocol),
        channels: ChannelHub = Depends(get_channels),
        cfg: Settings = Depends(get_settings),
    ) -> Response:
        """
        Accept one JSON-RPC request and push its response onto an open channel.
        """
        channel = channels.get(channel_id)
        if channel is None or channel.closed:
            return JSONResponse(
                status_code=status.HTTP_404_NOT_FOUND,
                content={"error": "not_found", "message": f"Channel '{channel_id}' not found"},
            )

        session_id = session_id_from_headers(request.headers) or channel.session_id
        try:
            body = await read_body(request, cfg.max_body_bytes)
        except InvalidRequest as exc:
            return _render(RpcResponse.failure(None, exc), as_event_stream=False)
        response = await protocol.handle_raw(body, session_id)
        if response is not None and not channel.send(response.to_payload()):
            logger.warning("Channel %s closed before its response was delivered", channel_id)
        return Response(status_code=status.HTTP_202_ACCEPTED)

    return app


__all__ = ["create_app", "lifespan"]
