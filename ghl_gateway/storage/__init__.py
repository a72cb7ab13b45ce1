from ghl_gateway.redis_client import get_redis_client
from ghl_gateway.settings import Settings

from .credential_store import (
    Clock,
    CredentialStore,
    InMemoryCredentialStore,
    SessionNotFound,
    is_expired,
)
from .redis_store import RedisCredentialStore


def build_credential_store(config: Settings) -> CredentialStore:
    """
    Construct the credential store selected by SESSION_BACKEND.
    """
    if config.session_backend == "redis":
        return RedisCredentialStore(
            get_redis_client(config.redis_url),
            ttl_seconds=config.session_ttl_seconds,
        )
    return InMemoryCredentialStore(ttl_seconds=config.session_ttl_seconds)


__all__ = [
    "Clock",
    "CredentialStore",
    "InMemoryCredentialStore",
    "RedisCredentialStore",
    "SessionNotFound",
    "build_credential_store",
    "is_expired",
]
