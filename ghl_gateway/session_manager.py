"""
Session management: verify caller credentials once against the CRM, cache
them per session id, and resolve them again for auth-required tools.

Sessions follow a trust-once-then-cache policy: credentials are checked
upstream when `authenticate` is called and are not re-validated on later use.
"""

from __future__ import annotations

from typing import Mapping, Optional

from .errors import AuthenticationFailed, AuthenticationRequired, BadCredentials, InvalidRequest
from .logging_config import logger, mask_secret
from .models import AuthResult, Credentials, Session
from .settings import Settings
from .storage import CredentialStore, SessionNotFound
from .upstream import GHLClient, UpstreamClientFactory, UpstreamError

# Correlation headers in priority order.
SESSION_HEADERS = ("x-thread-id", "x-conversation-id", "x-session-id")


def session_id_from_headers(headers: Mapping[str, str]) -> Optional[str]:
    """
    First non-blank correlation header, or None. No fallback applied.
    """
    lowered = {k.lower(): v for k, v in headers.items()}
    for name in SESSION_HEADERS:
        value = lowered.get(name)
        if value and value.strip():
            return value.strip()
    return None


def resolve_session_id(headers: Mapping[str, str], config: Settings) -> Optional[str]:
    """
    Derive the session id from transport headers.

    Falls back to the shared default id only when the single-tenant fallback
    is enabled; otherwise returns None and the caller has no session.
    """
    session_id = session_id_from_headers(headers)
    if session_id is not None:
        return session_id
    if config.single_tenant_fallback:
        return config.default_session_id
    return None


def _format_ttl(ttl_seconds: float) -> str:
    seconds = int(ttl_seconds)
    if seconds % 3600 == 0:
        hours = seconds // 3600
        return f"{hours} hour" + ("" if hours == 1 else "s")
    if seconds % 60 == 0:
        minutes = seconds // 60
        return f"{minutes} minute" + ("" if minutes == 1 else "s")
    return f"{seconds} seconds"


class SessionManager:
    def __init__(
        self,
        store: CredentialStore,
        clients: UpstreamClientFactory,
        config: Settings,
    ) -> None:
        self.store = store
        self.clients = clients
        self.config = config

    def _validate_fields(self, api_key: Optional[str], account_id: Optional[str]) -> Credentials:
        if not isinstance(api_key, str) or not isinstance(account_id, str):
            raise BadCredentials()
        api_key = api_key.strip()
        account_id = account_id.strip()
        if not api_key or not account_id:
            raise BadCredentials()
        prefix = self.config.api_key_prefix
        if prefix and not api_key.startswith(prefix):
            raise BadCredentials(
                f"api_key does not look like a GoHighLevel private integration key "
                f"(expected prefix '{prefix}')"
            )
        return Credentials(api_key=api_key, account_id=account_id)

    async def authenticate(
        self,
        session_id: Optional[str],
        api_key: Optional[str],
        account_id: Optional[str],
    ) -> AuthResult:
        """
        Probe the CRM with the given credentials and store them on success.
        """
        if not session_id:
            raise InvalidRequest(
                "A session header (X-Thread-ID, X-Conversation-ID or X-Session-ID) is required"
            )
        credentials = self._validate_fields(api_key, account_id)

        try:
            async with self.client_for(credentials) as client:
                await client.get_location()
        except UpstreamError as exc:
            logger.warning(
                "Credential check failed for session=%s account=%s key=%s: %s",
                session_id,
                credentials.account_id,
                mask_secret(credentials.api_key),
                exc.message,
            )
            if self.config.clear_session_on_auth_failure:
                if await self.store.delete(session_id):
                    logger.info("Cleared previous session %s after failed re-authentication", session_id)
            raise AuthenticationFailed(
                f"Invalid credentials: {exc.message}", data=exc.to_data()
            ) from exc

        await self.store.put(session_id, credentials)
        logger.info(
            "Session %s authenticated for account=%s", session_id, credentials.account_id
        )
        return AuthResult(
            message="Authentication successful! You can now use all GoHighLevel tools.",
            session_id=session_id,
            expires_in=_format_ttl(self.config.session_ttl_seconds),
        )

    async def lookup(self, session_id: Optional[str]) -> Session:
        if not session_id:
            raise AuthenticationRequired()
        try:
            return await self.store.get(session_id)
        except SessionNotFound:
            logger.info("No active session for %s", session_id)
            raise AuthenticationRequired() from None

    async def resolve(self, session_id: Optional[str]) -> Credentials:
        """
        Return live credentials for a session or raise AuthenticationRequired.
        """
        session = await self.lookup(session_id)
        return session.credentials

    def client_for(self, credentials: Credentials) -> GHLClient:
        return self.clients.build(credentials.api_key, credentials.account_id)

    async def active_sessions(self) -> int:
        return await self.store.count()


__all__ = ["SESSION_HEADERS", "SessionManager", "resolve_session_id", "session_id_from_headers"]
