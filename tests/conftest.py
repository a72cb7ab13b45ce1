"""
Shared pytest configuration.

This file ensures the project root is on sys.path so that `import ghl_gateway`
works consistently in all tests, and provides the fakes shared by the suites:
a controllable clock, a minimal async Redis and a stub GoHighLevel API.
"""

import sys
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import httpx
import pytest


# Ensure project root is importable for test modules.
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from ghl_gateway.session_manager import SessionManager  # noqa: E402
from ghl_gateway.settings import Settings  # noqa: E402
from ghl_gateway.storage import InMemoryCredentialStore  # noqa: E402
from ghl_gateway.upstream import UpstreamClientFactory  # noqa: E402


VALID_KEY = "valid-key"
ACCOUNT_ID = "loc-1"


class FakeClock:
    """
    Manually driven clock. With a non-zero `step` every read moves time
    forward, so concurrent readers each see a distinct instant.
    """

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start
        self.step = 0.0

    def __call__(self) -> float:
        value = self.now
        self.now += self.step
        return value

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakePipeline:
    """
    Transaction pipeline: reads run immediately, writes queued after
    `multi()` run on `execute`.
    """

    def __init__(self, redis: "FakeRedis") -> None:
        self._redis = redis
        self.commands: List[Tuple[str, tuple, Dict[str, Any]]] = []

    async def get(self, key: str):
        value = await self._redis.get(key)
        hook, self._redis.after_watched_read = self._redis.after_watched_read, None
        if hook is not None:
            await hook()
        return value

    def multi(self) -> None:
        return None

    def set(self, key: str, value: str, ex: int | None = None, xx: bool = False):
        self.commands.append(("set", (key, value), {"ex": ex, "xx": xx}))
        return self

    def delete(self, *keys: str):
        self.commands.append(("delete", keys, {}))
        return self


class FakeRedis:
    """
    Minimal async Redis replacement used for tests.
    Supports the subset of commands used by the credential store, including
    WATCH/MULTI transactions that retry when a watched key is written.
    """

    def __init__(self) -> None:
        self._data: Dict[str, Any] = {}
        self._versions: Dict[str, int] = {}
        self.expiry: Dict[str, Optional[int]] = {}
        self.conflicts = 0
        self.closed = False
        # Awaited once, right after the next transactional read.
        self.after_watched_read: Optional[Callable[[], Awaitable[Any]]] = None

    def _touch(self, key: str) -> None:
        self._versions[key] = self._versions.get(key, 0) + 1

    async def get(self, key: str):
        return self._data.get(key)

    async def set(self, key: str, value: str, ex: int | None = None, xx: bool = False):
        if xx and key not in self._data:
            return None
        self._data[key] = value
        self.expiry[key] = ex
        self._touch(key)
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._data.pop(key, None) is not None:
                removed += 1
                self._touch(key)
            self.expiry.pop(key, None)
        return removed

    async def transaction(self, func, *watches: str, value_from_callable: bool = False):
        while True:
            watched = {key: self._versions.get(key, 0) for key in watches}
            pipe = FakePipeline(self)
            value = await func(pipe)
            if any(self._versions.get(key, 0) != seen for key, seen in watched.items()):
                self.conflicts += 1
                continue
            results = [
                await getattr(self, name)(*args, **kwargs)
                for name, args, kwargs in pipe.commands
            ]
            return value if value_from_callable else results

    async def scan_iter(self, match: str | None = None):
        prefix = (match or "*").rstrip("*")
        for key in list(self._data):
            if key.startswith(prefix):
                yield key

    async def aclose(self) -> None:
        self.closed = True


class StubGHL:
    """
    Callable handler for httpx.MockTransport imitating the GoHighLevel API.

    Only `VALID_KEY` passes the location check. Individual routes can be made
    to fail with `fail(method, path, status, body)`.
    """

    def __init__(self) -> None:
        self.calls: List[httpx.Request] = []
        self.contacts: List[Dict[str, Any]] = [
            {"id": "contact-1", "firstName": "Ada", "phone": "+15550001111"}
        ]
        self._failures: Dict[Tuple[str, str], Tuple[int, Any]] = {}

    def fail(self, method: str, path: str, status: int, body: Any) -> None:
        self._failures[(method, path)] = (status, body)

    def paths(self) -> List[str]:
        return [f"{r.method} {r.url.path}" for r in self.calls]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        key = (request.method, request.url.path)
        if key in self._failures:
            status, body = self._failures[key]
            return httpx.Response(status, json=body)

        if request.headers.get("Authorization") != f"Bearer {VALID_KEY}":
            return httpx.Response(401, json={"statusCode": 401, "message": "Invalid JWT"})

        path = request.url.path
        if request.method == "GET" and path.startswith("/locations/"):
            return httpx.Response(200, json={"location": {"id": path.rsplit("/", 1)[-1]}})
        if request.method == "GET" and path == "/contacts/":
            query = request.url.params.get("query", "")
            found = [c for c in self.contacts if query in (c["phone"], c["firstName"])]
            return httpx.Response(200, json={"contacts": found, "total": len(found)})
        if request.method == "POST" and path == "/contacts/":
            return httpx.Response(201, json={"contact": {"id": "contact-new"}})
        if request.method == "POST" and path == "/conversations/messages":
            return httpx.Response(200, json={"messageId": "msg-1", "conversationId": "conv-1"})
        if request.method == "POST" and path == "/blogs/":
            return httpx.Response(201, json={"id": "blog-1", "url": "https://blog.example/p/1"})
        if request.method == "GET" and path == "/opportunities/search":
            return httpx.Response(200, json={"opportunities": [{"id": "opp-1"}], "total": 1})
        return httpx.Response(404, json={"message": f"No route for {request.method} {path}"})


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ghl() -> StubGHL:
    return StubGHL()


@pytest.fixture
def transport(ghl: StubGHL) -> httpx.MockTransport:
    return httpx.MockTransport(ghl)


@pytest.fixture
def make_settings(tmp_path):
    """
    Factory for Settings isolated from the environment. The key prefix check
    is off unless a test asks for it.
    """

    def factory(**overrides: Any) -> Settings:
        values: Dict[str, Any] = {
            "api_key_prefix": "",
            "log_dir": str(tmp_path / "logs"),
        }
        values.update(overrides)
        return Settings(**values)

    return factory


@pytest.fixture
def settings(make_settings) -> Settings:
    return make_settings()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryCredentialStore:
    return InMemoryCredentialStore(ttl_seconds=3600, clock=clock)


@pytest.fixture
def sessions(store, transport, settings) -> SessionManager:
    return SessionManager(
        store, UpstreamClientFactory.from_settings(settings, transport=transport), settings
    )


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()
