from typing import List, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Read from OS env and optional .env file in project root.
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # GoHighLevel API
    ghl_base_url: str = Field(
        "https://services.leadconnectorhq.com",
        alias="GHL_BASE_URL",
        description="Base URL of the GoHighLevel REST API",
    )
    ghl_api_version: str = Field(
        "2021-07-28",
        alias="GHL_API_VERSION",
        description="Value sent in the 'Version' header on every upstream call",
    )
    api_key_prefix: str = Field(
        "pit-",
        alias="GHL_API_KEY_PREFIX",
        description="Required prefix of private integration keys; empty disables the check",
    )

    # HTTP timeouts (seconds) applied to every upstream call.
    upstream_timeout: float = Field(20.0, alias="UPSTREAM_TIMEOUT")

    # Session storage
    session_backend: Literal["memory", "redis"] = Field(
        "memory",
        alias="SESSION_BACKEND",
        description="Where verified credentials are cached: 'memory' or 'redis'",
    )
    redis_url: str = Field(
        "redis://localhost:6379/0",
        alias="REDIS_URL",
        description="Redis connection URL, e.g. 'redis://redis:6379/0'",
    )
    session_ttl_seconds: int = Field(3600, alias="SESSION_TTL_SECONDS")
    session_sweep_interval: float = Field(600.0, alias="SESSION_SWEEP_INTERVAL")

    # Session correlation. With the fallback enabled every caller that sends
    # no correlation header shares `default_session_id`.
    single_tenant_fallback: bool = Field(True, alias="SINGLE_TENANT_FALLBACK")
    default_session_id: str = Field("default-session", alias="DEFAULT_SESSION_ID")
    clear_session_on_auth_failure: bool = Field(
        False,
        alias="CLEAR_SESSION_ON_AUTH_FAILURE",
        description="Drop an existing session when re-authentication fails",
    )

    # Transport
    max_body_bytes: int = Field(1_048_576, alias="MAX_BODY_BYTES")
    sse_heartbeat_interval: float = Field(25.0, alias="SSE_HEARTBEAT_INTERVAL")
    sse_max_duration: float = Field(
        50.0,
        alias="SSE_MAX_DURATION",
        description="Hard cap on how long a push channel stays open",
    )
    cors_allow_origins: str = Field("*", alias="CORS_ALLOW_ORIGINS")

    # Server identity reported by `initialize`.
    protocol_version: str = Field("2024-11-05", alias="MCP_PROTOCOL_VERSION")
    server_name: str = Field("ghl-mcp-server-session", alias="SERVER_NAME")
    server_version: str = Field("1.0.0", alias="SERVER_VERSION")

    # Application log level for our ghl_gateway logger.
    # Can be overridden via LOG_LEVEL env var, e.g. "DEBUG" while debugging.
    log_level: str = Field(
        "INFO",
        alias="LOG_LEVEL",
        description="Application log level: DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    log_timezone: Optional[str] = Field(
        default=None,
        alias="LOG_TIMEZONE",
        description="Timezone name for log timestamps, e.g. 'America/New_York'. Defaults to system local time.",
    )
    log_dir: str = Field("logs", alias="LOG_DIR")

    def get_cors_origins(self) -> List[str]:
        """
        Return configured CORS origins from CORS_ALLOW_ORIGINS.
        Whitespace is stripped and empty entries are ignored.
        """
        if not self.cors_allow_origins:
            return []
        return [
            item.strip()
            for item in self.cors_allow_origins.split(",")
            if item.strip()
        ]


settings = Settings()  # Reads from environment if available
