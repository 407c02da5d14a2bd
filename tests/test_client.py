"""Tests for the Harper query client against a mock transport."""
from __future__ import annotations

import base64
import json

import httpx
import pytest

from dug.client import HarperClient, is_network_error
from dug.errors import (
    AuthenticationError,
    ConnectError,
    HarperAPIError,
    NetworkError,
    NotFoundError,
    RequestError,
    ResponseShapeError,
    UnreachableError,
)
from dug.models import Condition, SortSpec, TableSchema


class FakeServer:
    """Records request bodies and answers from a queue (or a fixed payload)."""

    def __init__(self, payload=None, queue=None):
        self.payload = payload
        self.queue = list(queue or [])
        self.requests: list[httpx.Request] = []

    @property
    def bodies(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.queue:
            item = self.queue.pop(0)
            if isinstance(item, Exception):
                raise item
            return item
        return httpx.Response(200, json=self.payload)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def make_client(server: FakeServer, **kwargs):
    sleeps: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    client = HarperClient(transport=httpx.MockTransport(server), sleep=fake_sleep, **kwargs)
    return client, sleeps


async def connected(server: FakeServer, **kwargs):
    client, sleeps = make_client(server, **kwargs)
    await client.connect("http://localhost:9925/", "HDB_ADMIN", "secret")
    return client, sleeps


# ─── connect ───────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_connect_sends_basic_auth_and_strips_trailing_slash(describe_all_payload):
    """connect checks the instance with describe_all using Basic auth on the bare URL."""
    server = FakeServer(describe_all_payload)
    client, _ = await connected(server)

    assert client.is_connected()
    assert client.url == "http://localhost:9925"
    request = server.requests[0]
    expected = base64.b64encode(b"HDB_ADMIN:secret").decode()
    assert request.headers["authorization"] == f"Basic {expected}"
    assert request.headers["content-type"] == "application/json"
    assert request.method == "POST"
    assert server.bodies[0] == {"operation": "describe_all"}
    await client.aclose()


@pytest.mark.asyncio
async def test_connect_401_raises_authentication_error():
    server = FakeServer(queue=[httpx.Response(401, text="Login failed")])
    client, sleeps = make_client(server)

    with pytest.raises(AuthenticationError) as exc:
        await client.connect("http://localhost:9925", "HDB_ADMIN", "wrong")

    assert "invalid username or password" in str(exc.value)
    assert not client.is_connected()
    assert client.url == ""
    assert len(server.requests) == 1
    assert sleeps == []


@pytest.mark.asyncio
async def test_connect_refused_raises_unreachable_after_retries():
    server = FakeServer(queue=[httpx.ConnectError("Connection refused")] * 4)
    client, sleeps = make_client(server)

    with pytest.raises(UnreachableError) as exc:
        await client.connect("http://nowhere:9925", "u", "p")

    assert str(exc.value) == "Cannot reach Harper instance at http://nowhere:9925 - is it running?"
    assert len(server.requests) == 4
    assert sleeps == [0.5, 1.0, 2.0]
    assert not client.is_connected()


@pytest.mark.asyncio
async def test_connect_other_failure_wraps_message():
    server = FakeServer(queue=[httpx.Response(403, text="forbidden")])
    client, _ = make_client(server)

    with pytest.raises(ConnectError) as exc:
        await client.connect("http://localhost:9925", "u", "p")

    assert not isinstance(exc.value, (AuthenticationError, UnreachableError))
    assert str(exc.value) == "Failed to connect to Harper: Harper API error (403): forbidden"


@pytest.mark.asyncio
async def test_connect_malformed_url_is_a_connect_error():
    """A URL httpx cannot parse fails the connect cleanly, without retries."""
    server = FakeServer()
    client, sleeps = make_client(server)

    with pytest.raises(ConnectError) as exc:
        await client.connect("http://[::1", "u", "p")

    assert not isinstance(exc.value, UnreachableError)
    assert str(exc.value).startswith("Failed to connect to Harper: Invalid URL 'http://[::1'")
    assert isinstance(exc.value.__cause__, RequestError)
    assert server.requests == []
    assert sleeps == []
    assert not client.is_connected()
    assert client.url == ""


@pytest.mark.asyncio
async def test_non_transport_httpx_errors_are_not_retried(describe_all_payload):
    server = FakeServer(describe_all_payload)
    client, sleeps = await connected(server)
    server.queue.append(httpx.DecodingError("bad gzip"))

    with pytest.raises(RequestError, match="bad gzip"):
        await client.search_by_id("data", "dog", [1])
    assert sleeps == []


@pytest.mark.asyncio
async def test_disconnect_resets_state(describe_all_payload):
    client, _ = await connected(FakeServer(describe_all_payload))
    client.disconnect()
    assert not client.is_connected()
    assert client.url == ""


# ─── retry / backoff ───────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_server_errors_are_retried_with_backoff(describe_all_payload):
    server = FakeServer(describe_all_payload)
    client, sleeps = await connected(server)
    server.queue = [
        httpx.Response(500, text="boom"),
        httpx.Response(500, text="boom"),
        httpx.Response(200, json=[{"id": 1}]),
    ]

    rows = await client.search_by_id("data", "dog", [1])

    assert rows == [{"id": 1}]
    assert len(server.requests) == 1 + 3
    assert sleeps == [0.5, 1.0]


@pytest.mark.asyncio
async def test_client_errors_fail_immediately(describe_all_payload):
    server = FakeServer(describe_all_payload)
    client, sleeps = await connected(server)
    server.queue = [httpx.Response(400, text="bad attribute")]

    with pytest.raises(HarperAPIError) as exc:
        await client.search_by_value("data", "dog", "nope", "x")

    assert exc.value.status_code == 400
    assert exc.value.is_client_error
    assert str(exc.value) == "Harper API error (400): bad attribute"
    assert len(server.requests) == 2
    assert sleeps == []


@pytest.mark.asyncio
async def test_exhausted_retries_raise_last_error(describe_all_payload):
    server = FakeServer(describe_all_payload)
    client, sleeps = await connected(server, max_retries=2, initial_backoff_ms=100)
    server.queue = [httpx.Response(503, text="busy")] * 3

    with pytest.raises(HarperAPIError) as exc:
        await client.search_by_id("data", "dog", [1])

    assert exc.value.is_server_error
    assert sleeps == [0.1, 0.2]


@pytest.mark.asyncio
async def test_attempts_are_recorded(describe_all_payload):
    server = FakeServer(describe_all_payload)
    client, _ = await connected(server)
    server.queue = [httpx.Response(500, text="boom"), httpx.Response(200, json=[])]

    await client.search_by_id("data", "dog", [1])

    ops = [(a.operation, a.attempt, a.ok) for a in client.attempts]
    assert ops == [("describe_all", 0, True), ("search_by_id", 0, False), ("search_by_id", 1, True)]
    assert isinstance(client.last_query_time, int)


@pytest.mark.asyncio
async def test_invalid_json_is_a_shape_error(describe_all_payload):
    server = FakeServer(describe_all_payload)
    client, _ = await connected(server)
    server.queue = [httpx.Response(200, text="<html>oops</html>")]

    with pytest.raises(ResponseShapeError):
        await client.search_by_id("data", "dog", [1])


# ─── schema discovery / cache ──────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_describe_all_is_cached_until_ttl_expires(describe_all_payload):
    server = FakeServer(describe_all_payload)
    clock = FakeClock()
    client, _ = await connected(server, clock=clock)

    await client.describe_all()
    await client.describe_all()
    assert len(server.requests) == 1

    clock.now += 59.0
    await client.describe_all()
    assert len(server.requests) == 1

    clock.now += 2.0
    await client.describe_all()
    assert len(server.requests) == 2


@pytest.mark.asyncio
async def test_clear_cache_forces_refetch(describe_all_payload):
    server = FakeServer(describe_all_payload)
    client, _ = await connected(server)

    client.clear_cache()
    await client.describe_database("data")

    assert len(server.requests) == 2


@pytest.mark.asyncio
async def test_row_queries_are_never_cached(describe_all_payload):
    server = FakeServer(describe_all_payload)
    client, _ = await connected(server)
    server.queue = [httpx.Response(200, json=[]), httpx.Response(200, json=[])]

    await client.search_by_id("data", "dog", [1])
    await client.search_by_id("data", "dog", [1])

    assert len(server.requests) == 3


@pytest.mark.asyncio
async def test_describe_table_parses_schema_and_keeps_extra_fields(describe_all_payload):
    client, _ = await connected(FakeServer(describe_all_payload))

    schema = await client.describe_table("data", "dog")

    assert isinstance(schema, TableSchema)
    assert schema.schema_name == "data"
    assert schema.hash_attribute == "id"
    assert schema.extra == {"db_size": 4096}


@pytest.mark.asyncio
async def test_missing_database_and_table_raise_not_found(describe_all_payload):
    client, _ = await connected(FakeServer(describe_all_payload))

    with pytest.raises(NotFoundError, match='Database "nope" not found'):
        await client.describe_database("nope")
    with pytest.raises(NotFoundError, match='Table "cat" not found in database "data"'):
        await client.describe_table("data", "cat")


@pytest.mark.asyncio
async def test_malformed_describe_all_is_a_shape_error():
    server = FakeServer({"data": {"dog": {"name": "dog"}}})
    client, _ = make_client(server)

    with pytest.raises(ConnectError) as exc:
        await client.connect("http://localhost:9925", "u", "p")

    cause = exc.value.__cause__
    assert isinstance(cause, ResponseShapeError)
    assert str(cause).startswith("Unexpected response shape:\n")
    assert "...and" in str(cause)


# ─── row queries ───────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_empty_conditions_fall_back_to_wildcard_search_by_value(describe_all_payload):
    server = FakeServer(describe_all_payload)
    client, _ = await connected(server)
    server.queue = [httpx.Response(200, json=[])]

    await client.search_by_conditions("data", "dog", [], limit=10, offset=20, get_attributes=["*"], hash_attribute="id")

    assert server.bodies[-1] == {
        "operation": "search_by_value",
        "table": "dog",
        "search_attribute": "id",
        "search_value": "*",
        "schema": "data",
        "get_attributes": ["*"],
        "limit": 10,
        "offset": 20,
    }


@pytest.mark.asyncio
async def test_empty_conditions_use_sort_attribute_then_id(describe_all_payload):
    server = FakeServer(describe_all_payload)
    client, _ = await connected(server)
    server.queue = [httpx.Response(200, json=[]), httpx.Response(200, json=[])]

    await client.search_by_conditions("data", "dog", [], sort=SortSpec(attribute="name"))
    await client.search_by_conditions("data", "dog", [])

    assert server.bodies[-2]["search_attribute"] == "name"
    assert server.bodies[-1]["search_attribute"] == "id"


@pytest.mark.asyncio
async def test_search_by_conditions_body(describe_all_payload):
    server = FakeServer(describe_all_payload)
    client, _ = await connected(server)
    server.queue = [httpx.Response(200, json=[{"id": 1}])]

    rows = await client.search_by_conditions(
        "data",
        "dog",
        [Condition(attribute="age", comparator="between", value=[1, 5])],
        operator="or",
        sort=SortSpec(attribute="age", descending=True),
        limit=5,
        offset=0,
    )

    assert rows == [{"id": 1}]
    body = server.bodies[-1]
    assert body["operation"] == "search_by_conditions"
    assert body["schema"] == "data"
    assert body["operator"] == "or"
    assert body["conditions"] == [{"attribute": "age", "comparator": "between", "value": [1, 5]}]
    assert body["sort"] == {"attribute": "age", "descending": True}
    assert body["limit"] == 5
    assert body["offset"] == 0


@pytest.mark.asyncio
async def test_system_information_validates_response(describe_all_payload):
    server = FakeServer(describe_all_payload)
    client, _ = await connected(server)
    server.queue = [
        httpx.Response(
            200,
            json={"system": {"hostname": "box", "platform": "linux"}, "cpu": {"current_load": {"currentLoad": 12.5}}, "disk": {}},
        )
    ]

    info = await client.system_information(["system", "cpu"])

    assert info.system.hostname == "box"
    assert info.cpu.current_load.currentLoad == 12.5
    assert server.bodies[-1] == {"operation": "system_information", "attributes": ["system", "cpu"]}


def test_is_network_error_classification():
    assert is_network_error(NetworkError("boom"))
    assert is_network_error(httpx.ConnectError("refused"))
    assert is_network_error(Exception("connect ECONNREFUSED 127.0.0.1:9925"))
    assert not is_network_error(HarperAPIError(400, "bad"))
    assert not is_network_error("timed out")
