import json

import httpx
import pytest

from ghl_gateway.upstream import UpstreamClientFactory, UpstreamError


def _factory(handler) -> UpstreamClientFactory:
    return UpstreamClientFactory(
        base_url="https://ghl.test/",
        api_version="2021-07-28",
        timeout=5.0,
        transport=httpx.MockTransport(handler),
    )


def test_build_headers_carry_bearer_token_and_version():
    headers = _factory(lambda r: httpx.Response(200)).build_headers("pit-secret")
    assert headers["Authorization"] == "Bearer pit-secret"
    assert headers["Version"] == "2021-07-28"


@pytest.mark.asyncio
async def test_location_lookup_hits_account_path_with_headers():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"location": {"id": "loc-1"}})

    async with _factory(handler).build("pit-secret", "loc-1") as client:
        data = await client.get_location()

    assert data == {"location": {"id": "loc-1"}}
    request = seen[0]
    assert str(request.url) == "https://ghl.test/locations/loc-1"
    assert request.headers["Authorization"] == "Bearer pit-secret"
    assert request.headers["Version"] == "2021-07-28"


@pytest.mark.asyncio
async def test_search_contacts_sends_location_query_and_limit():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"contacts": [], "total": 0})

    async with _factory(handler).build("k", "loc-9") as client:
        await client.search_contacts("ada", 5)

    params = seen[0].url.params
    assert seen[0].url.path == "/contacts/"
    assert params["locationId"] == "loc-9"
    assert params["query"] == "ada"
    assert params["limit"] == "5"


@pytest.mark.asyncio
async def test_send_message_only_includes_subject_for_email():
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"messageId": "m"})

    async with _factory(handler).build("k", "loc") as client:
        await client.send_message(contact_id="c1", message="hi", subject="ignored")
        await client.send_message(
            contact_id="c1", message="hi", message_type="Email", subject="Hello"
        )

    assert bodies[0] == {"type": "SMS", "contactId": "c1", "message": "hi"}
    assert bodies[1]["subject"] == "Hello"


@pytest.mark.asyncio
async def test_http_error_carries_status_and_upstream_message():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"statusCode": 401, "message": "Invalid JWT"})

    async with _factory(handler).build("k", "loc") as client:
        with pytest.raises(UpstreamError) as excinfo:
            await client.get_location()

    exc = excinfo.value
    assert exc.status_code == 401
    assert exc.message == "Invalid JWT"
    assert exc.to_data()["details"]["statusCode"] == 401


@pytest.mark.asyncio
async def test_error_message_list_is_joined():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(422, json={"message": ["phone is invalid", "email is invalid"]})

    async with _factory(handler).build("k", "loc") as client:
        with pytest.raises(UpstreamError) as excinfo:
            await client.create_contact(first_name="A", phone="x")

    assert excinfo.value.message == "phone is invalid; email is invalid"


@pytest.mark.asyncio
async def test_non_json_error_body_falls_back_to_text():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="Service Unavailable")

    async with _factory(handler).build("k", "loc") as client:
        with pytest.raises(UpstreamError) as excinfo:
            await client.get_location()

    assert excinfo.value.status_code == 503
    assert excinfo.value.message == "Service Unavailable"


@pytest.mark.asyncio
async def test_timeout_is_reported_without_status():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    async with _factory(handler).build("k", "loc") as client:
        with pytest.raises(UpstreamError) as excinfo:
            await client.get_location()

    assert excinfo.value.status_code is None
    assert "timed out" in excinfo.value.message


@pytest.mark.asyncio
async def test_empty_and_non_object_bodies_are_normalised():
    responses = [httpx.Response(204), httpx.Response(200, json=[1, 2])]

    def handler(request: httpx.Request) -> httpx.Response:
        return responses.pop(0)

    async with _factory(handler).build("k", "loc") as client:
        assert await client.request("GET", "/a") == {}
        assert await client.request("GET", "/b") == {"data": [1, 2]}
