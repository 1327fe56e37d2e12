"""Bridge blocking sync work into async MCP handlers."""

import asyncio
from typing import Any, Callable, TypeVar

T = TypeVar("T")


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a blocking function in a worker thread.

    Example:
        report = await run_sync(engine.run)
    """
    return await asyncio.to_thread(func, *args, **kwargs)
