from __future__ import annotations

import asyncio
import logging
from typing import Awaitable

log = logging.getLogger("adopsiak.background")

# Strong refs; the event loop only keeps weak references to tasks.
_PENDING: set[asyncio.Task] = set()


def _on_done(task: asyncio.Task) -> None:
    _PENDING.discard(task)
    if task.cancelled():
        log.warning("detached task %s cancelled", task.get_name())
        return
    exc = task.exception()
    if exc is not None:
        log.error("detached task %s failed", task.get_name(), exc_info=exc)


def spawn_detached(coro: Awaitable, *, name: str) -> asyncio.Task:
    """Run `coro` without the caller awaiting it. Failures are logged, never raised."""
    task = asyncio.ensure_future(coro)
    task.set_name(name)
    _PENDING.add(task)
    task.add_done_callback(_on_done)
    return task


def pending_count() -> int:
    return len(_PENDING)


async def drain(timeout: float = 5.0) -> None:
    """Wait for in-flight detached tasks (shutdown / tests)."""
    if not _PENDING:
        return
    done, still_pending = await asyncio.wait(set(_PENDING), timeout=timeout)
    for t in still_pending:
        log.warning("detached task %s still running at drain; cancelling", t.get_name())
        t.cancel()
    if still_pending:
        # let cancelled tasks unwind before the caller tears down the engine
        await asyncio.gather(*still_pending, return_exceptions=True)
