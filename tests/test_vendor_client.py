from __future__ import annotations

import asyncio
import json
from typing import Any, Awaitable, Callable, List

import httpx
import pytest

from autocall.vendor import (
    VendorAPIError,
    VendorClient,
    VendorConfigurationError,
    VendorTimeoutError,
)


BASE_URL = "https://vendor.test/api/ver2"


def _run(client: VendorClient, call: Callable[[VendorClient], Awaitable[Any]]) -> Any:
    async def runner() -> Any:
        try:
            return await call(client)
        finally:
            await client.aclose()

    return asyncio.run(runner())


def _client(handler, *, token: str = "main-token", autocall_token: str = None, timeout: float = 90.0) -> VendorClient:
    return VendorClient(
        BASE_URL,
        token,
        autocall_token=autocall_token,
        timeout=timeout,
        transport=httpx.MockTransport(handler),
    )


def test_requests_carry_bearer_token_and_query() -> None:
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"data": []})

    result = _run(_client(handler), lambda client: client.list_campaigns())

    assert result == {"data": []}
    request = seen[0]
    assert request.method == "GET"
    assert request.url.path == "/api/ver2/autocall/"
    assert request.url.params["max"] == "50"
    assert request.url.params["pos"] == "0"
    assert request.headers["Authorization"] == "Bearer main-token"


def test_autocall_paths_use_dedicated_token() -> None:
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[])

    async def calls(client: VendorClient) -> None:
        await client.start_campaign("5")
        await client.list_employees()

    _run(_client(handler, autocall_token="autocall-token"), calls)

    assert seen[0].url.path.endswith("/autocall/5/start")
    assert seen[0].headers["Authorization"] == "Bearer autocall-token"
    assert seen[1].url.path.endswith("/employees/")
    assert seen[1].headers["Authorization"] == "Bearer main-token"


def test_select_line_sends_patch_body() -> None:
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"success": True})

    _run(_client(handler), lambda client: client.select_line(12, 3))

    assert seen[0].method == "PATCH"
    assert json.loads(seen[0].content) == {"autocall": 12, "id": 3, "selected": True}


def test_missing_token_fails_before_any_request() -> None:
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - must not be reached
        raise AssertionError("vendor must not be contacted")

    client = _client(handler, token="")

    assert client.configured is False
    with pytest.raises(VendorConfigurationError, match="not configured"):
        _run(client, lambda c: c.list_lines())


@pytest.mark.parametrize(
    "response, message",
    [
        (httpx.Response(400, json={"message": "Bad campaign"}), "Bad campaign"),
        (httpx.Response(403, json={"error": "Forbidden token"}), "Forbidden token"),
        (httpx.Response(404, json={"msg": "No such autocall"}), "No such autocall"),
        (httpx.Response(500, json={"unexpected": True}), "Vendor API error: 500 Internal Server Error"),
        (httpx.Response(502, text="Bad gateway upstream"), "Bad gateway upstream"),
    ],
)
def test_vendor_errors_surface_vendor_message(response: httpx.Response, message: str) -> None:
    client = _client(lambda request: response)

    with pytest.raises(VendorAPIError) as excinfo:
        _run(client, lambda c: c.get_campaign("1"))

    assert str(excinfo.value) == message
    assert excinfo.value.status_code == response.status_code


def test_timeout_is_reported_distinctly() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(VendorTimeoutError, match="timed out after 90 seconds"):
        _run(_client(handler), lambda client: client.get_call_report("1"))


def test_connection_failure_is_an_api_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(VendorAPIError, match="Failed to contact vendor API"):
        _run(_client(handler), lambda client: client.list_lines())


def test_empty_body_returns_none() -> None:
    result = _run(_client(lambda request: httpx.Response(204)), lambda client: client.delete_campaign("1"))

    assert result is None


def test_invalid_json_is_an_api_error() -> None:
    client = _client(lambda request: httpx.Response(200, text="<html>"))

    with pytest.raises(VendorAPIError, match="invalid response"):
        _run(client, lambda c: c.list_lines())


def test_upload_numbers_sends_one_request_per_valid_number() -> None:
    bodies: List[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        bodies.append(body)
        if body["number"] == 79000000002:
            return httpx.Response(400, json={"message": "Duplicate number"})
        return httpx.Response(200, json={"success": True})

    summary = _run(
        _client(handler),
        lambda client: client.upload_numbers("77", ["+7 900 000-00-01", "79000000002", "call me"]),
    )

    assert bodies == [
        {"autocall": "77", "number": 79000000001, "comment": ""},
        {"autocall": "77", "number": 79000000002, "comment": ""},
    ]
    assert summary["success"] is True
    assert summary["totalCount"] == 3
    assert summary["successCount"] == 1
    assert summary["failureCount"] == 2
    assert summary["results"][1] == {"number": "79000000002", "success": False, "error": "Duplicate number"}
    assert summary["results"][2] == {"number": "call me", "success": False, "error": "Invalid phone number"}


def test_unassign_operators_collects_per_operator_outcomes() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if "/autocall-operator/2/" in request.url.path:
            return httpx.Response(404, json={"message": "Operator not assigned"})
        return httpx.Response(200, json={"success": True})

    results = _run(_client(handler), lambda client: client.unassign_operators("9", [1, 2]))

    assert results == [
        {"operatorId": 1, "success": True, "response": {"success": True}},
        {"operatorId": 2, "success": False, "error": "Operator not assigned"},
    ]
