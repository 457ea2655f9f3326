"""Some tools for recurrent I/O tasks."""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional, Union  # pylint: disable=unused-import

LOGGER = logging.getLogger('lasercal.asyncio_tools')


async def async_call(callback: Callable, *args: Any, **kwargs: Any) -> Any:
    """Call it like it's async.

    This returns a coroutine object no matter if ``callback`` is a coroutine
    function or not. It passes on additional arguments to the callee, just
    like functools.partial does.

    :param callback: The function to call. May expect arbitrary combination of
                arguments. It's return value is returned if the call succeeds.
                Can be a regular or a coroutine function.
    :raises Exception: Whatever the callback might raise.
    """
    if asyncio.iscoroutinefunction(callback):
        return await callback(*args, **kwargs)
    return callback(*args, **kwargs)


async def safe_async_call(callback: Callable, *args: Any, **kwargs: Any) -> Any:
    """Call it like it's async and log everything that might be raised.

    Use this for cleanup steps that must not keep further steps from running.

    :param callback: The function to call. May expect arbitrary combination of
                arguments. It's return value is returned if the call succeeds.
                Can be a regular or a coroutine function.
    :returns: Whatever the callback returns, None if it raised.
    """
    try:
        return await async_call(callback, *args, **kwargs)
    except Exception:  # It might raise hell. # pylint: disable=broad-except
        LOGGER.exception("""Error calling callback "%s"!""",
                         getattr(callback, '__name__', repr(callback)))


async def wait_for_condition(indicator: Callable[[], Union[bool, Awaitable[bool]]],
                             checks: int, interval: float) -> bool:
    """Check ``indicator`` up to ``checks`` times, ``interval`` seconds apart.

    The first check happens after the first wait.  Exceptions raised by
    ``indicator`` are passed on to the caller.

    :param indicator: Regular or coroutine function returning something
                coercible to bool.
    :param checks: Give up after this many negative checks.
    :param interval: Seconds to wait before each check.
    :returns: Whether ``indicator`` turned True before running out of checks.
    """
    for attempt in range(checks):
        await asyncio.sleep(interval)
        if await async_call(indicator):
            LOGGER.debug("Condition met after %s checks.", attempt + 1)
            return True
    return False


async def repeat_task(
        coro: Callable[[], Optional[Awaitable[None]]],
        period: float,
        do_continue: Callable[[], bool] = lambda: True,
        reps: int = 0, min_wait_time: float = 0.1) -> None:
    """Repeat a task at given time intervals forever or ``reps`` times.

    :param coro: The regular or coroutine function to call.
    """
    async def run_once() -> None:
        """Run one loop iteration."""
        start = time.time()
        # Do things the caller wants to be done.
        await async_call(coro)
        remaining_wait_time = period - (time.time() - start)
        if remaining_wait_time > 0:
            await asyncio.sleep(remaining_wait_time)
        elif min_wait_time > 0:
            await asyncio.sleep(min_wait_time)

    if reps > 0:  # Do `reps` repetitions at max.
        for _ in range(reps):
            if not do_continue():
                break
            await run_once()
    else:  # Run forever.
        while do_continue():
            await run_once()
