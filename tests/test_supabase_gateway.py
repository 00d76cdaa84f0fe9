from __future__ import annotations

import asyncio
import json
from pathlib import Path
import sys

sys.path.append(str(Path(__file__).resolve().parents[1]))

import httpx
import pytest

from workshop.core.schema import BigIdea, WorkshopData, empty_workshop_data
from workshop.infrastructure import (
    SessionGatewayError,
    SessionNotFoundError,
    SupabaseSessionGateway,
    TransientIOError,
)

URL = "https://demo.supabase.co"


def _gateway(handler) -> tuple[SupabaseSessionGateway, httpx.AsyncClient]:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    gateway = SupabaseSessionGateway(URL, "anon-key", http_client=http_client)
    return gateway, http_client


def test_create_upserts_row_with_auth_headers():
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["method"] = request.method
        captured["path"] = request.url.path
        captured["params"] = dict(request.url.params)
        captured["headers"] = request.headers
        captured["body"] = json.loads(request.content.decode("utf-8"))
        return httpx.Response(201)

    async def scenario():
        gateway, http_client = _gateway(handler)
        data = WorkshopData(big_idea=BigIdea(description="Bookkeeping for florists"))
        await gateway.create("s-1", data, 1)
        await http_client.aclose()

    asyncio.run(scenario())

    assert captured["method"] == "POST"
    assert captured["path"] == "/rest/v1/workshop_sessions"
    assert captured["params"] == {"on_conflict": "session_id"}
    headers = captured["headers"]
    assert headers["apikey"] == "anon-key"
    assert headers["authorization"] == "Bearer anon-key"
    assert "merge-duplicates" in headers["prefer"]
    body = captured["body"]
    assert body["session_id"] == "s-1"
    assert body["current_step"] == 1
    assert body["workshop_data"]["bigIdea"]["description"] == "Bookkeeping for florists"
    assert body["updated_at"]


def test_load_parses_stored_row():
    row = {
        "session_id": "s-1",
        "current_step": 4,
        "updated_at": "2026-01-01T00:00:00+00:00",
        "workshop_data": {
            "triggerEvents": [{"id": "t1", "description": "Tax season", "source": "bot"}],
            "pains": [
                {
                    "id": "p1",
                    "description": "Receipts everywhere",
                    "fireScores": {"frequency": 3, "intensity": 3, "recurring": 2, "expensive": 1},
                }
            ],
        },
    }

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "GET"
        assert request.url.params["session_id"] == "eq.s-1"
        assert request.url.params["select"] == "*"
        return httpx.Response(200, json=[row])

    async def scenario():
        gateway, http_client = _gateway(handler)
        record = await gateway.load("s-1")
        await http_client.aclose()
        return record

    record = asyncio.run(scenario())

    assert record.session_id == "s-1"
    assert record.current_step == 4
    assert record.workshop_data.trigger_events[0].source == "assistant"
    assert record.workshop_data.pains[0].calculated_fire_score == 9
    assert record.workshop_data.pains[0].is_fire is True
    assert record.workshop_data.jobs == []


def test_load_missing_row_raises_not_found():
    async def scenario():
        gateway, http_client = _gateway(lambda request: httpx.Response(200, json=[]))
        try:
            with pytest.raises(SessionNotFoundError) as excinfo:
                await gateway.load("ghost")
        finally:
            await http_client.aclose()
        return excinfo.value

    error = asyncio.run(scenario())
    assert error.session_id == "ghost"


def test_save_and_update_step_patch_existing_row():
    requests: list[tuple[str, dict, dict]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content.decode("utf-8"))
        requests.append((request.method, dict(request.url.params), body))
        return httpx.Response(200, json=[{"session_id": "s-1"}])

    async def scenario():
        gateway, http_client = _gateway(handler)
        await gateway.save("s-1", empty_workshop_data(), 3)
        await gateway.update_step("s-1", 5)
        await http_client.aclose()

    asyncio.run(scenario())

    save, step = requests
    assert save[0] == "PATCH"
    assert save[1] == {"session_id": "eq.s-1"}
    assert save[2]["current_step"] == 3
    assert save[2]["workshop_data"]["targetBuyers"] == []
    assert step[0] == "PATCH"
    assert step[2]["current_step"] == 5
    assert "workshop_data" not in step[2]


def test_patch_matching_no_rows_raises_not_found():
    async def scenario():
        gateway, http_client = _gateway(lambda request: httpx.Response(200, json=[]))
        try:
            with pytest.raises(SessionNotFoundError):
                await gateway.save("ghost", empty_workshop_data(), 1)
            with pytest.raises(SessionNotFoundError):
                await gateway.update_step("ghost", 2)
        finally:
            await http_client.aclose()

    asyncio.run(scenario())


@pytest.mark.parametrize(
    "handler",
    [
        lambda request: httpx.Response(500, json={"message": "upstream"}),
        lambda request: httpx.Response(200, content=b"<html>not json</html>"),
    ],
    ids=["server-error", "invalid-json"],
)
def test_remote_failures_are_transient(handler):
    async def scenario():
        gateway, http_client = _gateway(handler)
        try:
            with pytest.raises(TransientIOError):
                await gateway.load("s-1")
        finally:
            await http_client.aclose()

    asyncio.run(scenario())


def test_network_errors_are_transient():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async def scenario():
        gateway, http_client = _gateway(handler)
        try:
            with pytest.raises(TransientIOError):
                await gateway.update_step("s-1", 2)
        finally:
            await http_client.aclose()

    asyncio.run(scenario())


def test_custom_table_and_invalid_configuration():
    gateway = SupabaseSessionGateway(f"{URL}/ignored/path", "key", table="sessions_v2")
    assert gateway.endpoint == "https://demo.supabase.co/rest/v1/sessions_v2"
    asyncio.run(gateway.aclose())

    with pytest.raises(ValueError):
        SupabaseSessionGateway("demo.supabase.co", "key")
    with pytest.raises(ValueError):
        SupabaseSessionGateway(URL, "")


@pytest.mark.parametrize("status", [400, 401, 403, 404])
def test_client_errors_are_not_transient(status):
    async def scenario():
        gateway, http_client = _gateway(lambda request: httpx.Response(status, json={"message": "denied"}))
        try:
            with pytest.raises(SessionGatewayError) as excinfo:
                await gateway.load("s-1")
        finally:
            await http_client.aclose()
        return excinfo.value

    error = asyncio.run(scenario())
    assert not isinstance(error, (TransientIOError, SessionNotFoundError))
    assert str(status) in str(error)


@pytest.mark.parametrize("status", [408, 429, 503])
def test_timeouts_and_rate_limits_are_transient(status):
    async def scenario():
        gateway, http_client = _gateway(lambda request: httpx.Response(status))
        try:
            with pytest.raises(TransientIOError):
                await gateway.save("s-1", empty_workshop_data(), 1)
        finally:
            await http_client.aclose()

    asyncio.run(scenario())
