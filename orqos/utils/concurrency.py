import asyncio
from typing import Callable, TypeVar

T = TypeVar("T")


async def run_blocking(func: Callable[..., T], *args, **kwargs) -> T:
    """Run a blocking docker-py call in the default executor.

    Central helper so the event loop never waits on the daemon socket directly.
    """
    return await asyncio.to_thread(func, *args, **kwargs)


async def wait_for_stop(stop_event: asyncio.Event, timeout: float) -> bool:
    """Sleep up to ``timeout`` seconds, waking early when ``stop_event`` is set.

    Returns True when the caller should stop.
    """
    if stop_event.is_set():
        return True
    try:
        await asyncio.wait_for(stop_event.wait(), timeout=timeout)
    except asyncio.TimeoutError:
        return False
    return True
