"""Bridging from synchronous callers into the async pipeline."""

import asyncio
from collections.abc import Coroutine
from typing import Any, TypeVar

T = TypeVar("T")


def run_async(coro: Coroutine[Any, Any, T], timeout: float | None = None) -> T:
    """Run a coroutine to completion from sync code (CLI, scripts).

    With a timeout, the coroutine is cancelled when it expires, which in
    turn cancels any in-flight embedding or retrieval calls, and
    TimeoutError is raised.

    Raises:
        RuntimeError: If called while an event loop is already running.
            Await the async API directly there.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        pass
    else:
        coro.close()
        raise RuntimeError(
            "run_async() cannot be used inside a running event loop; "
            "await build_context() instead of calling build_context_sync()."
        )

    if timeout is None:
        return asyncio.run(coro)
    return asyncio.run(asyncio.wait_for(coro, timeout))
