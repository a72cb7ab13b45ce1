"""
GoHighLevel API client factory.

`UpstreamClientFactory.build()` is a pure function of its inputs: it binds the
base URL, the bearer token and the API version header to a fresh
`httpx.AsyncClient` without touching the network. Handles are short-lived;
callers open one per operation with `async with`.
"""

import json
from types import TracebackType
from typing import Any, Dict, Optional, Type

import httpx

from .logging_config import logger, mask_secret
from .settings import Settings


class UpstreamError(Exception):
    """
    A failed call to the CRM API.

    `status_code` is None for transport-level failures (connection errors,
    timeouts); otherwise it is the upstream HTTP status.
    """

    def __init__(
        self,
        *,
        status_code: Optional[int],
        message: str,
        payload: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.payload = payload

    def to_data(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"status": self.status_code, "message": self.message}
        if self.payload is not None:
            data["details"] = self.payload
        return data


def _extract_error_message(resp: httpx.Response) -> tuple[str, Any]:
    """
    Pull the human-readable message out of an upstream error body.
    """
    text = resp.text
    try:
        payload = resp.json()
    except (json.JSONDecodeError, ValueError):
        return (text or f"HTTP {resp.status_code}"), (text or None)

    if isinstance(payload, dict):
        for field in ("message", "error", "msg"):
            value = payload.get(field)
            if isinstance(value, list):
                value = "; ".join(str(v) for v in value)
            if isinstance(value, str) and value:
                return value, payload
    return f"HTTP {resp.status_code}", payload


class GHLClient:
    """
    Thin async wrapper over the GoHighLevel REST endpoints used by the tools.
    """

    def __init__(self, http: httpx.AsyncClient, account_id: str) -> None:
        self._http = http
        self.account_id = account_id

    async def __aenter__(self) -> "GHLClient":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    @property
    def http(self) -> httpx.AsyncClient:
        return self._http

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Perform one upstream call and return the decoded JSON object.
        Non-2xx responses and transport errors raise UpstreamError.
        """
        try:
            resp = await self._http.request(method, path, params=params, json=json_body)
        except httpx.TimeoutException as exc:
            logger.warning("Upstream timeout for %s %s: %s", method, path, exc)
            raise UpstreamError(
                status_code=None, message=f"Upstream request timed out: {exc}"
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("Upstream transport error for %s %s: %s", method, path, exc)
            raise UpstreamError(status_code=None, message=str(exc) or repr(exc)) from exc

        if resp.status_code >= 400:
            message, payload = _extract_error_message(resp)
            logger.warning(
                "Upstream HTTP error %s for %s %s: %s",
                resp.status_code,
                method,
                path,
                message,
            )
            raise UpstreamError(
                status_code=resp.status_code, message=message, payload=payload
            )

        if not resp.content:
            return {}
        try:
            data = resp.json()
        except (json.JSONDecodeError, ValueError) as exc:
            raise UpstreamError(
                status_code=resp.status_code,
                message="Upstream returned a non-JSON body",
                payload=resp.text,
            ) from exc
        return data if isinstance(data, dict) else {"data": data}

    # ---- CRM operations -------------------------------------------------

    async def get_location(self) -> Dict[str, Any]:
        return await self.request("GET", f"/locations/{self.account_id}")

    async def search_contacts(self, query: str, limit: int = 10) -> Dict[str, Any]:
        return await self.request(
            "GET",
            "/contacts/",
            params={"locationId": self.account_id, "query": query, "limit": limit},
        )

    async def create_contact(
        self,
        *,
        first_name: str,
        phone: str,
        last_name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "locationId": self.account_id,
            "firstName": first_name,
            "phone": phone,
        }
        if last_name:
            body["lastName"] = last_name
        if email:
            body["email"] = email
        return await self.request("POST", "/contacts/", json_body=body)

    async def send_message(
        self,
        *,
        contact_id: str,
        message: str,
        message_type: str = "SMS",
        subject: Optional[str] = None,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "type": message_type,
            "contactId": contact_id,
            "message": message,
        }
        if message_type == "Email" and subject:
            body["subject"] = subject
        return await self.request("POST", "/conversations/messages", json_body=body)

    async def create_blog_post(
        self, *, title: str, content: str, status: str = "draft"
    ) -> Dict[str, Any]:
        return await self.request(
            "POST",
            "/blogs/",
            json_body={
                "locationId": self.account_id,
                "title": title,
                "content": content,
                "status": status,
            },
        )

    async def search_opportunities(
        self, *, limit: int = 20, status: str = "open"
    ) -> Dict[str, Any]:
        return await self.request(
            "GET",
            "/opportunities/search",
            params={"location_id": self.account_id, "limit": limit, "status": status},
        )


class UpstreamClientFactory:
    """
    Builds GHLClient handles bound to one set of credentials.
    """

    def __init__(
        self,
        *,
        base_url: str,
        api_version: str,
        timeout: float,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_version = api_version
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        config: Settings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "UpstreamClientFactory":
        return cls(
            base_url=config.ghl_base_url,
            api_version=config.ghl_api_version,
            timeout=config.upstream_timeout,
            transport=transport,
        )

    def build_headers(self, api_key: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "Version": self.api_version,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def build(self, api_key: str, account_id: str) -> GHLClient:
        logger.debug(
            "Building upstream client for account=%s key=%s",
            account_id,
            mask_secret(api_key),
        )
        http = httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.build_headers(api_key),
            timeout=self.timeout,
            transport=self._transport,
        )
        return GHLClient(http, account_id)


__all__ = ["GHLClient", "UpstreamClientFactory", "UpstreamError"]
