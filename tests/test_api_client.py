import asyncio

import httpx
import pytest

from campus_support.api_client import ApiClient, clean_params, normalise_envelope, request_key
from campus_support.exceptions import ApiError


# ─── Envelope ─────────────────────────────────────────────────────────────────

def test_envelope_with_success_flag():
    resp = httpx.Response(200, json={"success": True, "message": "ok", "data": {"x": 1}})
    env = normalise_envelope(resp)
    assert env.success and env.data == {"x": 1} and env.message == "ok"


def test_envelope_without_success_derives_from_status():
    env = normalise_envelope(httpx.Response(200, json={"data": [1, 2]}))
    assert env.success is True
    assert env.data == [1, 2]

    env = normalise_envelope(httpx.Response(503, json={"message": "down"}))
    assert env.success is False
    assert env.message == "down"


def test_raw_body_becomes_data():
    env = normalise_envelope(httpx.Response(200, json={"id": 5, "name": "raw"}))
    assert env.data == {"id": 5, "name": "raw"}


def test_non_json_failure_gets_status_message():
    env = normalise_envelope(httpx.Response(500, text="<html>oops</html>"))
    assert env.success is False
    assert env.message.startswith("HTTP 500")


def test_success_false_in_ok_response():
    env = normalise_envelope(httpx.Response(200, json={"success": False, "message": "nope"}))
    assert env.success is False


def test_clean_params_and_key_are_order_independent():
    assert clean_params({"a": None, "b": "all", "c": "", "d": True, "e": [1, 2]}) == {"d": "true", "e": "1,2"}
    assert request_key("get", "/t", {"b": 2, "a": 1}) == request_key("GET", "/t", {"a": 1, "b": 2})


# ─── Request loop ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_bearer_token_and_base_url(backend, make_client):
    backend.on("GET", "/auth/user", body={"success": True, "data": {"user": {"id": 1, "name": "A"}}})
    client = make_client()
    await client.get("/auth/user")
    request = backend.requests[0]
    assert str(request.url) == "http://backend.test/api/auth/user"
    assert request.headers["Authorization"] == "Bearer test-token"
    await client.aclose()


@pytest.mark.asyncio
async def test_get_retries_on_5xx_then_succeeds(backend, make_client):
    attempts = []

    def flaky(request):
        attempts.append(request)
        if len(attempts) < 3:
            return httpx.Response(503, json={"message": "busy"})
        return httpx.Response(200, json={"success": True, "data": "ok"})

    backend.on("GET", "/health", handler=flaky)
    client = make_client(max_retries=3)
    env = await client.get("/health")
    assert env.data == "ok"
    assert len(attempts) == 3
    await client.aclose()


@pytest.mark.asyncio
async def test_zero_retries_means_a_single_attempt(backend, make_client):
    backend.on("GET", "/health", status=503, body={"message": "busy"})
    client = make_client(max_retries=0, timeout=0, upload_timeout=0)
    assert client.timeout == 0 and client.upload_timeout == 0
    with pytest.raises(ApiError) as err:
        await client.get("/health")
    assert err.value.status_code == 503
    assert len(backend.calls("GET", "/health")) == 1
    await client.aclose()


@pytest.mark.asyncio
async def test_4xx_is_not_retried(backend, make_client):
    backend.on("GET", "/tickets/9", status=404, body={"success": False, "message": "Ticket not found"})
    client = make_client(max_retries=3)
    with pytest.raises(ApiError) as err:
        await client.get("/tickets/9")
    assert err.value.status_code == 404
    assert err.value.is_client_error
    assert len(backend.calls("GET", "/tickets/9")) == 1
    await client.aclose()


@pytest.mark.asyncio
async def test_validation_errors_are_carried(backend, make_client):
    backend.on("POST", "/tickets", status=422,
               body={"success": False, "message": "Invalid", "errors": {"subject": ["required"]}})
    client = make_client()
    with pytest.raises(ApiError) as err:
        await client.post("/tickets", json={})
    assert err.value.errors == {"subject": ["required"]}
    await client.aclose()


@pytest.mark.asyncio
async def test_post_is_not_retried_on_5xx(backend, make_client):
    backend.on("POST", "/tickets", status=500, body={"message": "boom"})
    client = make_client(max_retries=3)
    with pytest.raises(ApiError) as err:
        await client.post("/tickets", json={"subject": "x"})
    assert err.value.status_code == 500
    assert len(backend.calls("POST", "/tickets")) == 1
    await client.aclose()


@pytest.mark.asyncio
async def test_connection_error_becomes_network_api_error():
    def refuse(request):
        raise httpx.ConnectError("refused", request=request)

    client = ApiClient(
        base_url="http://backend.test/api",
        transport=httpx.MockTransport(refuse),
        max_retries=2,
        base_delay=0,
    )
    with pytest.raises(ApiError) as err:
        await client.get("/health")
    assert err.value.status_code is None
    assert "Network error" in err.value.message
    await client.aclose()


@pytest.mark.asyncio
async def test_concurrent_identical_gets_share_one_request(backend, make_client):
    async def slow(request):
        await asyncio.sleep(0.01)
        return httpx.Response(200, json={"success": True, "data": [1]})

    backend.on("GET", "/notifications", handler=slow)
    client = make_client()
    first, second = await asyncio.gather(
        client.get("/notifications", params={"page": 1}),
        client.get("/notifications", params={"page": 1}),
    )
    assert first.data == second.data == [1]
    assert len(backend.calls("GET", "/notifications")) == 1
    await client.aclose()


@pytest.mark.asyncio
async def test_repeat_inside_window_reuses_result_and_write_clears_it(backend, make_client):
    backend.on("GET", "/resources", body={"success": True, "data": []})
    backend.on("POST", "/resources/1/bookmark", body={"success": True, "data": {"bookmarked": True}})
    client = make_client(dedupe_window=60)

    await client.get("/resources")
    await client.get("/resources")
    assert len(backend.calls("GET", "/resources")) == 1

    await client.post("/resources/1/bookmark")
    await client.get("/resources")
    assert len(backend.calls("GET", "/resources")) == 2

    await client.get("/resources", fresh=True)
    assert len(backend.calls("GET", "/resources")) == 3
    await client.aclose()


@pytest.mark.asyncio
async def test_upload_is_multipart(backend, make_client):
    backend.on("POST", "/tickets/5/attachments", body={"success": True, "data": {}})
    client = make_client()
    await client.upload("/tickets/5/attachments", files={"attachment": ("a.txt", b"hello", "text/plain")})
    request = backend.requests[0]
    assert request.headers["Content-Type"].startswith("multipart/form-data")
    assert b"hello" in request.content
    await client.aclose()
