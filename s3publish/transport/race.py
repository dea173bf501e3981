"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
S3 Publish, a product of Garudex Labs

Timeout and cancellation race for a single transport call.

The network operation runs as an asyncio task; the timer and the
cancellation watcher are plain futures settled by a loop timer and a token
listener. The first branch to settle decides the outcome. The timer handle
and the token listener are released before the race returns, and a losing
network task is cancelled.
"""

import asyncio
from typing import Any, Awaitable, Optional, TypeVar

from s3publish.exceptions import RequestAbortedError, RequestTimeoutError
from s3publish.transport.cancellation import CancellationToken

T = TypeVar("T")


def _discard_outcome(task: "asyncio.Future") -> None:
    # Retrieve the exception of an abandoned branch so asyncio does not
    # report it as never retrieved.
    if not task.cancelled():
        task.exception()


def _settle(future: "asyncio.Future", value: Any = None) -> None:
    if not future.done():
        future.set_result(value)


async def race_request(
    operation: Awaitable[T],
    timeout_ms: Optional[int] = None,
    cancellation: Optional[CancellationToken] = None,
) -> T:
    """
    Await ``operation`` racing it against a timeout and a cancellation token.

    Args:
        operation: Coroutine or future performing the network call
        timeout_ms: Budget in milliseconds; None or 0 disables the timer
        cancellation: Optional token; aborting it settles the race

    Returns:
        The operation's result when it settles first

    Raises:
        RequestAbortedError: If the token is or becomes aborted first
        RequestTimeoutError: If the budget elapses first
        Exception: Whatever the operation raised, when it settles first with an error
    """
    if cancellation is not None and cancellation.aborted:
        # Do not even schedule the operation
        if asyncio.iscoroutine(operation):
            operation.close()
        raise RequestAbortedError(reason=cancellation.reason)

    loop = asyncio.get_running_loop()
    request_task = asyncio.ensure_future(operation)
    branches = {request_task}

    timer = None
    timer_handle = None
    if timeout_ms:
        timer = loop.create_future()
        timer_handle = loop.call_later(timeout_ms / 1000.0, _settle, timer)
        branches.add(timer)

    aborted = None
    remove_listener = None
    if cancellation is not None:
        aborted = loop.create_future()

        def on_abort(reason: Optional[Any]) -> None:
            # abort() may be called from another thread
            if not loop.is_closed():
                loop.call_soon_threadsafe(_settle, aborted, reason)

        remove_listener = cancellation.add_listener(on_abort)
        branches.add(aborted)

    try:
        done, _ = await asyncio.wait(branches, return_when=asyncio.FIRST_COMPLETED)
    finally:
        if timer_handle is not None:
            timer_handle.cancel()
        if remove_listener is not None:
            remove_listener()
        if not request_task.done():
            request_task.cancel()
            request_task.add_done_callback(_discard_outcome)

    # Several branches can settle in the same loop iteration; a settled
    # abort is reported before anything else.
    if aborted is not None and aborted in done:
        if request_task in done:
            _discard_outcome(request_task)
        raise RequestAbortedError(reason=cancellation.reason)

    if request_task in done:
        return request_task.result()

    raise RequestTimeoutError(timeout_ms)
