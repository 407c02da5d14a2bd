"""
Harper operations API client.

Async client for a single Harper instance: one POST endpoint, Basic auth,
an in-memory TTL cache for schema discovery and retry with exponential
backoff for transient failures.

Usage:
    async with HarperClient() as client:
        await client.connect("http://localhost:9925", "HDB_ADMIN", "secret")
        dbs = await client.describe_all()
"""

from __future__ import annotations

import asyncio
import base64
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import httpx
from pydantic import BaseModel, ValidationError

from .errors import (
    AuthenticationError,
    ConnectError,
    DugError,
    HarperAPIError,
    NetworkError,
    NotFoundError,
    RequestError,
    ResponseShapeError,
    UnreachableError,
)
from .models import (
    ConditionLike,
    DatabaseSchema,
    DescribeAll,
    SortSpec,
    SystemInfo,
    TableSchema,
    describe_all_adapter,
    format_validation_error,
)

logger = logging.getLogger("dug.api")

CACHE_TTL_MS = 60_000
MAX_RETRIES = 3
INITIAL_BACKOFF_MS = 500
MAX_RECORDED_ATTEMPTS = 100

_NETWORK_MARKERS = (
    "fetch failed",
    "econnrefused",
    "econnreset",
    "etimedout",
    "enetunreach",
    "socket hang up",
    "abort",
    "connection refused",
    "connection reset",
    "timed out",
    "unreachable",
)


def is_network_error(error: object) -> bool:
    """Whether a failure is network-class (worth retrying)."""
    if isinstance(error, (NetworkError, httpx.TransportError, ConnectionError, TimeoutError)):
        return True
    if isinstance(error, Exception):
        msg = str(error).lower()
        return any(marker in msg for marker in _NETWORK_MARKERS)
    return False


@dataclass
class CacheEntry:
    data: Any
    timestamp_ms: float


@dataclass(frozen=True)
class QueryAttempt:
    """One network round trip, kept for diagnostics."""

    operation: str
    attempt: int
    elapsed_ms: int
    ok: bool
    error: str | None = None


def _to_wire(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(exclude_none=True)
    return value


class HarperClient:
    """Single point of contact with a Harper instance.

    Schema discovery results are cached for ``cache_ttl_ms``; row queries
    always go to the network.
    """

    def __init__(
        self,
        *,
        timeout: float = 30.0,
        cache_ttl_ms: int = CACHE_TTL_MS,
        max_retries: int = MAX_RETRIES,
        initial_backoff_ms: int = INITIAL_BACKOFF_MS,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport
        self._clock = clock or time.monotonic
        self._sleep = sleep or asyncio.sleep
        self.cache_ttl_ms = cache_ttl_ms
        self.max_retries = max_retries
        self.initial_backoff_ms = initial_backoff_ms

        self._client: httpx.AsyncClient | None = None
        self._url = ""
        self._auth_header = ""
        self._connected = False
        self._cache: dict[str, CacheEntry] = {}
        self._last_query_time = 0
        self.attempts: deque[QueryAttempt] = deque(maxlen=MAX_RECORDED_ATTEMPTS)

    @classmethod
    def from_settings(cls, settings: object) -> HarperClient:
        return cls(
            timeout=float(getattr(settings, "DUG_HTTP_TIMEOUT", 30.0)),
            cache_ttl_ms=int(getattr(settings, "DUG_CACHE_TTL_MS", CACHE_TTL_MS)),
            max_retries=int(getattr(settings, "DUG_MAX_RETRIES", MAX_RETRIES)),
            initial_backoff_ms=int(getattr(settings, "DUG_BACKOFF_MS", INITIAL_BACKOFF_MS)),
        )

    async def __aenter__(self) -> HarperClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    # ========================================================================
    # Connection
    # ========================================================================

    @property
    def url(self) -> str:
        return self._url

    async def connect(self, url: str, username: str, password: str) -> None:
        """Check the instance with ``describe_all`` and mark the client connected.

        Raises:
            AuthenticationError: credentials rejected.
            UnreachableError: the instance did not answer at all.
            ConnectError: any other failure, wrapping the original message.
        """
        logger.info("Connecting to %s as %s", url, username)
        self._url = url.rstrip("/")
        token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
        self._auth_header = f"Basic {token}"
        self._connected = False
        self._cache.clear()

        try:
            await self.describe_all()
        except DugError as exc:
            logger.error("Connection failed: %s", exc)
            self._reset_connection()
            msg = str(exc).lower()
            if (isinstance(exc, HarperAPIError) and exc.status_code == 401) or "401" in msg or "unauthorized" in msg:
                raise AuthenticationError() from exc
            if not isinstance(exc, RequestError) and is_network_error(exc):
                raise UnreachableError(url) from exc
            raise ConnectError(f"Failed to connect to Harper: {exc}") from exc

        self._connected = True
        logger.info("Connected successfully")

    def disconnect(self) -> None:
        self._reset_connection()
        self._cache.clear()

    def is_connected(self) -> bool:
        return self._connected

    def _reset_connection(self) -> None:
        self._url = ""
        self._auth_header = ""
        self._connected = False

    # ========================================================================
    # Schema discovery (cached)
    # ========================================================================

    async def describe_all(self) -> DescribeAll:
        cache_key = "describe_all"
        cached = self._get_cached(cache_key)
        if cached is not None:
            return cached

        raw = await self._execute({"operation": "describe_all"})
        try:
            parsed = describe_all_adapter.validate_python(raw)
        except ValidationError as err:
            raise ResponseShapeError(format_validation_error(err)) from err
        self._set_cache(cache_key, parsed)
        return parsed

    async def describe_database(self, database: str) -> DatabaseSchema:
        cache_key = f"describe_db:{database}"
        cached = self._get_cached(cache_key)
        if cached is not None:
            return cached

        all_dbs = await self.describe_all()
        db = all_dbs.get(database)
        if db is None:
            raise NotFoundError(f'Database "{database}" not found')
        self._set_cache(cache_key, db)
        return db

    async def describe_table(self, database: str, table: str) -> TableSchema:
        cache_key = f"describe_table:{database}.{table}"
        cached = self._get_cached(cache_key)
        if cached is not None:
            return cached

        db = await self.describe_database(database)
        tbl = db.get(table)
        if tbl is None:
            raise NotFoundError(f'Table "{table}" not found in database "{database}"')
        try:
            parsed = TableSchema.model_validate(tbl)
        except ValidationError as err:
            raise ResponseShapeError(format_validation_error(err)) from err
        self._set_cache(cache_key, parsed)
        return parsed

    # ========================================================================
    # Row queries (never cached)
    # ========================================================================

    async def search_by_id(
        self,
        database: str | None,
        table: str,
        ids: list[Any],
        get_attributes: list[str] | None = None,
    ) -> list[dict[str, Any]]:
        body: dict[str, Any] = {"operation": "search_by_id", "table": table, "ids": list(ids)}
        if database:
            body["schema"] = database
        if get_attributes:
            body["get_attributes"] = get_attributes
        return await self._execute(body)

    async def search_by_value(
        self,
        database: str | None,
        table: str,
        attribute: str,
        value: Any,
        get_attributes: list[str] | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[dict[str, Any]]:
        body: dict[str, Any] = {
            "operation": "search_by_value",
            "table": table,
            "search_attribute": attribute,
            "search_value": value,
        }
        if database:
            body["schema"] = database
        if get_attributes:
            body["get_attributes"] = get_attributes
        if limit is not None:
            body["limit"] = limit
        if offset is not None:
            body["offset"] = offset
        return await self._execute(body)

    async def search_by_conditions(
        self,
        database: str | None,
        table: str,
        conditions: list[ConditionLike | dict[str, Any]],
        operator: str | None = None,
        sort: SortSpec | dict[str, Any] | None = None,
        limit: int | None = None,
        offset: int | None = None,
        get_attributes: list[str] | None = None,
        hash_attribute: str | None = None,
    ) -> list[dict[str, Any]]:
        """Filter rows server-side.

        Harper rejects an empty condition list, so zero conditions become a
        wildcard ``search_by_value`` on the hash attribute (or the sort
        attribute, or ``id``).
        """
        sort_wire = _to_wire(sort)
        if not conditions:
            attribute = hash_attribute or (sort_wire or {}).get("attribute") or "id"
            return await self.search_by_value(
                database,
                table,
                attribute,
                "*",
                get_attributes=get_attributes,
                limit=limit,
                offset=offset,
            )

        body: dict[str, Any] = {
            "operation": "search_by_conditions",
            "table": table,
            "conditions": [_to_wire(c) for c in conditions],
        }
        if database:
            body["schema"] = database
        if operator:
            body["operator"] = operator
        if offset is not None:
            body["offset"] = offset
        if limit is not None:
            body["limit"] = limit
        if sort_wire:
            body["sort"] = sort_wire
        if get_attributes:
            body["get_attributes"] = get_attributes
        return await self._execute(body)

    async def system_information(self, attributes: list[str] | None = None) -> SystemInfo:
        body: dict[str, Any] = {"operation": "system_information"}
        if attributes:
            body["attributes"] = attributes

        raw = await self._execute(body)
        try:
            return SystemInfo.model_validate(raw)
        except ValidationError as err:
            raise ResponseShapeError(format_validation_error(err)) from err

    # ========================================================================
    # Cache / timing
    # ========================================================================

    def clear_cache(self) -> None:
        self._cache.clear()

    @property
    def last_query_time(self) -> int:
        """Elapsed milliseconds of the most recent round trip."""
        return self._last_query_time

    def _now_ms(self) -> float:
        return self._clock() * 1000.0

    def _get_cached(self, key: str) -> Any | None:
        entry = self._cache.get(key)
        if entry is None:
            return None
        if self._now_ms() - entry.timestamp_ms > self.cache_ttl_ms:
            del self._cache[key]
            return None
        return entry.data

    def _set_cache(self, key: str, data: Any) -> None:
        self._cache[key] = CacheEntry(data=data, timestamp_ms=self._now_ms())

    # ========================================================================
    # HTTP
    # ========================================================================

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout, connect=10.0),
                transport=self._transport,
            )
        return self._client

    def _record(self, op: str, attempt: int, start: float, error: DugError | None = None) -> int:
        elapsed = round((time.perf_counter() - start) * 1000)
        self._last_query_time = elapsed
        self.attempts.append(
            QueryAttempt(
                operation=op,
                attempt=attempt,
                elapsed_ms=elapsed,
                ok=error is None,
                error=str(error) if error is not None else None,
            )
        )
        return elapsed

    async def _execute(self, body: dict[str, Any]) -> Any:
        op = body.get("operation", "unknown")
        last_error: DugError | None = None

        for attempt in range(self.max_retries + 1):
            if attempt > 0:
                logger.warning("%s retry %d/%d", op, attempt, self.max_retries)
                await self._sleep(self.initial_backoff_ms * 2 ** (attempt - 1) / 1000.0)

            logger.debug("%s %s", op, {k: v for k, v in body.items() if k != "operation"})
            start = time.perf_counter()
            try:
                response = await self._http().post(
                    self._url,
                    json=body,
                    headers={"Content-Type": "application/json", "Authorization": self._auth_header},
                )
            except (httpx.InvalidURL, httpx.UnsupportedProtocol) as exc:
                err = RequestError(f"Invalid URL {self._url!r}: {exc}")
                elapsed = self._record(op, attempt, start, err)
                logger.error("%s failed (%dms): %s", op, elapsed, err)
                raise err from exc
            except (httpx.TransportError, OSError) as exc:
                last_error = NetworkError(str(exc) or exc.__class__.__name__)
                elapsed = self._record(op, attempt, start, last_error)
                logger.error("%s failed (%dms): %s", op, elapsed, last_error)
                continue
            except httpx.HTTPError as exc:
                err = RequestError(str(exc) or exc.__class__.__name__)
                elapsed = self._record(op, attempt, start, err)
                logger.error("%s failed (%dms): %s", op, elapsed, err)
                raise err from exc

            if not response.is_success:
                text = response.text or response.reason_phrase
                err = HarperAPIError(response.status_code, text)
                elapsed = self._record(op, attempt, start, err)
                logger.error("%s failed (%dms): %s", op, elapsed, err)
                if not err.is_server_error:
                    # Auth and client errors are permanent.
                    raise err
                last_error = err
                continue

            try:
                data = response.json()
            except ValueError as exc:
                err = ResponseShapeError(f"Unexpected response shape:\n  body is not valid JSON ({exc})")
                self._record(op, attempt, start, err)
                raise err from exc

            elapsed = self._record(op, attempt, start)
            logger.info("%s OK (%dms)", op, elapsed)
            return data

        raise last_error or NetworkError("Request failed after retries")
