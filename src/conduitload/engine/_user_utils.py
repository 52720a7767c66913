"""Virtual user housekeeping shared by the session's scale-down and shutdown paths."""

from __future__ import annotations

import asyncio
import contextlib

from conduitload._internal.logging import get_logger

logger = get_logger("engine.user_utils")


async def stop_user(task: asyncio.Task[None], timeout: float = 2.0) -> None:
    """Cancel one virtual user and wait briefly for it to unwind.

    Args:
        task: The virtual user's task.
        timeout: Seconds to wait for cancellation to complete.
    """
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError, TimeoutError):
        await asyncio.wait_for(asyncio.shield(task), timeout=timeout)


async def shutdown_all_users(
    user_tasks: list[tuple[int, asyncio.Task[None]]],
    stop_event: asyncio.Event,
    grace_period: float = 5.0,
) -> None:
    """Gracefully shut down all virtual users.

    Sets the stop event so loops exit after their current iteration, waits
    up to *grace_period* seconds, then cancels whatever is still running.

    Args:
        user_tasks: ``(vu_id, task)`` pairs to shut down. Cleared on return.
        stop_event: Event polled by virtual user loops.
        grace_period: Seconds to let in-flight iterations finish.
    """
    stop_event.set()

    if user_tasks:
        tasks = [t for _, t in user_tasks]
        _done, pending = await asyncio.wait(tasks, timeout=grace_period)

        for task in pending:
            task.cancel()

        if pending:
            logger.debug("Cancelled %d virtual users still mid-iteration", len(pending))
            await asyncio.wait(pending, timeout=2.0)

    user_tasks.clear()
    logger.debug("All virtual users shut down")
