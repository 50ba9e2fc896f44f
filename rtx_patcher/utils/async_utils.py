from __future__ import annotations

import asyncio
from concurrent.futures import Executor
from typing import Any, AsyncIterator, Callable, Optional

DEFAULT_POLL_INTERVAL = 0.05


async def run_blocking(func: Callable[..., Any], *args, executor: Optional[Executor] = None, **kwargs) -> Any:
    loop = asyncio.get_running_loop()
    if kwargs:
        return await loop.run_in_executor(executor, lambda: func(*args, **kwargs))
    return await loop.run_in_executor(executor, func, *args)


async def drain_until_done(
    task: "asyncio.Future[Any]",
    queue: "asyncio.Queue[Any]",
    poll_interval: float = DEFAULT_POLL_INTERVAL,
) -> AsyncIterator[Any]:
    """Yield queued items until ``task`` has finished and the queue is empty.

    Items scheduled with ``call_soon_threadsafe`` before the task completed are
    always delivered, because the task's completion callback runs after them.
    """
    while True:
        if task.done() and queue.empty():
            return
        try:
            yield await asyncio.wait_for(queue.get(), timeout=poll_interval)
        except asyncio.TimeoutError:
            continue
