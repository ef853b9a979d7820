"""Bounded fan-out helpers for asyncio task batches."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Iterable
from typing import TypeVar

T = TypeVar("T")


async def gather_or_cancel(
    aws: Iterable[Awaitable[T]],
    limit: int | None = None,
) -> list[T]:
    """Run *aws* concurrently, at most *limit* at a time.

    The first failure cancels every task still pending or running, and is
    re-raised once they have all unwound. Results keep input order.
    """
    sem = asyncio.Semaphore(limit) if limit else None

    async def _bounded(aw: Awaitable[T]) -> T:
        if sem is None:
            return await aw
        async with sem:
            return await aw

    tasks = [asyncio.ensure_future(_bounded(aw)) for aw in aws]
    if not tasks:
        return []
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    except asyncio.CancelledError:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    if pending:
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    for task in tasks:
        if task in done and not task.cancelled() and task.exception() is not None:
            raise task.exception()  # type: ignore[misc]
    return [task.result() for task in tasks]
