"""Loading/error/timing state around one async operation.

Screens own an ``ApiCall`` per query. Disposing the call flips its
cancellation token; completions that arrive afterwards are dropped.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Generic, TypeVar

logger = logging.getLogger("dug.app")

T = TypeVar("T")

DEFAULT_ERROR = "An unexpected error occurred"


class CancelToken:
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ApiCall(Generic[T]):
    """Wrap an async callable with ``data``, ``loading``, ``error`` and ``elapsed_ms``.

    ``execute`` never raises: failures land in ``error``.
    """

    def __init__(self, fn: Callable[..., Awaitable[T]], immediate: bool = False):
        self._fn = fn
        self.data: T | None = None
        self.loading = False
        self.error: str | None = None
        self.elapsed_ms: int | None = None
        self._last_args: tuple[Any, ...] = ()
        self._last_kwargs: dict[str, Any] = {}
        self._token = CancelToken()
        self._task: asyncio.Task[None] | None = None
        if immediate:
            self._task = asyncio.get_running_loop().create_task(self.execute())

    @property
    def disposed(self) -> bool:
        return self._token.cancelled

    async def execute(self, *args: Any, **kwargs: Any) -> None:
        token = self._token
        self._last_args = args
        self._last_kwargs = kwargs
        self.loading = True
        self.error = None
        start = time.perf_counter()
        try:
            result = await self._fn(*args, **kwargs)
        except Exception as exc:
            if token.cancelled:
                return
            self.elapsed_ms = round((time.perf_counter() - start) * 1000)
            self.error = str(exc) or DEFAULT_ERROR
            logger.debug("call failed after %dms: %s", self.elapsed_ms, self.error)
        else:
            if token.cancelled:
                return
            self.elapsed_ms = round((time.perf_counter() - start) * 1000)
            self.data = result
        finally:
            if not token.cancelled:
                self.loading = False

    async def retry(self) -> None:
        await self.execute(*self._last_args, **self._last_kwargs)

    async def wait(self) -> None:
        """Wait for the call scheduled by ``immediate=True``, if any."""
        if self._task is not None:
            await self._task

    def dispose(self) -> None:
        self._token.cancel()
        self._task = None
