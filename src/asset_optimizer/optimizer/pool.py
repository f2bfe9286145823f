"""Worker pools executing the minification primitive, and the concurrency limiter."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import AsyncIterator, Awaitable, Callable
from concurrent.futures import ProcessPoolExecutor
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Protocol, TypeVar

from asset_optimizer.optimizer.minify import run_serialized
from asset_optimizer.optimizer.models import MinifyOutput, OptimizationTask, normalize_output

logger = logging.getLogger(__name__)

T = TypeVar("T")


def available_width(parallel: bool | int, cpu_count: int | None = None) -> int:
    """Number of pool members allowed by the ``parallel`` option (0 means in-process)."""

    cores = cpu_count if cpu_count is not None else (os.cpu_count() or 1)
    if parallel is True:
        return max(cores - 1, 0)
    if parallel is False:
        return 0
    return max(min(int(parallel or 0), cores - 1), 0)


class WorkerPool(Protocol):
    """Uniform execution surface for in-process and multi-process modes."""

    width: int

    async def transform(self, task: OptimizationTask) -> MinifyOutput:
        """Run the primitive for ``task``; primitive errors propagate unchanged."""

    async def end(self) -> None:
        """Release pool resources."""


class InProcessPool:
    """Calls the primitive directly in the coordinating process."""

    width = 0

    def __init__(self) -> None:
        self.calls = 0
        self.ended = False

    async def transform(self, task: OptimizationTask) -> MinifyOutput:
        self.calls += 1
        return normalize_output(task.config.minify_fn(task.to_request()))

    async def end(self) -> None:
        self.ended = True


class ProcessWorkerPool:
    """Spreads tasks over a fixed set of worker processes.

    Requests travel as JSON; the minify function must be importable by the
    workers. Workers inherit the host stdout/stderr descriptors, so their output
    reaches the host streams unbuffered by the pool.
    """

    def __init__(self, width: int) -> None:
        if width < 1:
            raise ValueError("ProcessWorkerPool width must be >= 1")
        self.width = width
        self._executor: ProcessPoolExecutor | None = ProcessPoolExecutor(max_workers=width)

    async def transform(self, task: OptimizationTask) -> MinifyOutput:
        if self._executor is None:
            raise RuntimeError("Worker pool has already been shut down")
        future = self._executor.submit(
            run_serialized,
            task.to_request().to_json(),
            task.config.minify_fn,
        )
        result = await asyncio.wrap_future(future)
        return normalize_output(result)

    async def end(self) -> None:
        executor, self._executor = self._executor, None
        if executor is None:
            return
        await asyncio.to_thread(executor.shutdown, wait=True)
        logger.debug("Worker pool with %d process(es) shut down", self.width)


class ConcurrencyLimiter:
    """Caps in-flight calls; ``width=None`` disables the cap."""

    def __init__(self, width: int | None) -> None:
        if width is not None and width < 1:
            raise ValueError("ConcurrencyLimiter width must be >= 1 or None")
        self.width = width
        self._semaphore = asyncio.Semaphore(width) if width is not None else None
        self.active = 0
        self.peak = 0

    async def run(self, factory: Callable[[], Awaitable[T]]) -> T:
        if self._semaphore is None:
            return await self._tracked(factory)
        async with self._semaphore:
            return await self._tracked(factory)

    async def _tracked(self, factory: Callable[[], Awaitable[T]]) -> T:
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            return await factory()
        finally:
            self.active -= 1


PoolFactory = Callable[
    [bool | int, int],
    AbstractAsyncContextManager[tuple[WorkerPool, ConcurrencyLimiter]],
]


@asynccontextmanager
async def open_worker_pool(
    parallel: bool | int,
    asset_count: int,
    *,
    cpu_count: int | None = None,
) -> AsyncIterator[tuple[WorkerPool, ConcurrencyLimiter]]:
    """Select execution mode, yield ``(pool, limiter)`` and always tear the pool down."""

    width = available_width(parallel, cpu_count)
    pool: WorkerPool
    if width <= 0 or asset_count <= 0:
        pool = InProcessPool()
        limiter = ConcurrencyLimiter(None)
        logger.info("Minifying %d asset(s) in-process", asset_count)
    else:
        size = min(asset_count, width)
        pool = ProcessWorkerPool(size)
        limiter = ConcurrencyLimiter(size)
        logger.info("Minifying %d asset(s) with %d worker process(es)", asset_count, size)
    try:
        yield pool, limiter
    finally:
        await pool.end()
