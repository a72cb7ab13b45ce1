"""
GoHighLevel session gateway.

This package contains:
- settings: configuration read from the environment / .env
- logging_config: shared logging setup
- errors: JSON-RPC error taxonomy
- models: session and RPC envelope models
- storage: credential stores (in-memory and Redis)
- upstream: GoHighLevel API client factory
- session_manager: authenticate / resolve sessions
- sweeper: periodic eviction of idle sessions
- tools: tool registry and CRM tool handlers
- dispatcher: RPC method dispatch
- protocol: envelope parsing and response formatting
- sse: server-sent events push channels
- routes: FastAPI app factory and HTTP endpoints
"""
