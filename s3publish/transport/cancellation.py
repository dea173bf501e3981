"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
S3 Publish, a product of Garudex Labs

Cancellation token for in-flight transport calls.

A token starts active and can be aborted at most once. Abort may come from
any thread (a signal handler, a UI thread) while the request runs on an
event loop, so listener bookkeeping is guarded by a lock and waiters are
woken through ``loop.call_soon_threadsafe``.
"""

import asyncio
import threading
from typing import Any, Callable, List, Optional

from s3publish.logging_config import get_logger

logger = get_logger(__name__)

AbortListener = Callable[[Optional[Any]], None]


class CancellationToken:
    """
    Signals that the caller no longer wants the result of a request.

    Example:
        >>> token = CancellationToken()
        >>> task = asyncio.create_task(handler.handle(request, cancellation=token))
        >>> token.abort("user pressed Ctrl-C")
    """

    def __init__(self):
        self._aborted = False
        self._reason: Optional[Any] = None
        self._listeners: List[AbortListener] = []
        self._lock = threading.Lock()

    @property
    def aborted(self) -> bool:
        """True once abort() has been called."""
        return self._aborted

    @property
    def reason(self) -> Optional[Any]:
        """Reason passed to abort(), if any."""
        return self._reason

    def abort(self, reason: Optional[Any] = None) -> bool:
        """
        Transition the token to the aborted state.

        Listeners run synchronously in the calling thread. Calling abort()
        again is a no-op.

        Args:
            reason: Optional value describing why the request was aborted

        Returns:
            True if this call performed the transition, False if already aborted
        """
        with self._lock:
            if self._aborted:
                return False
            self._aborted = True
            self._reason = reason
            listeners, self._listeners = self._listeners, []

        logger.debug("cancellation_aborted", reason=str(reason) if reason is not None else None)

        for listener in listeners:
            listener(reason)
        return True

    def add_listener(self, listener: AbortListener) -> Callable[[], None]:
        """
        Register a callback invoked once when the token aborts.

        If the token is already aborted the callback runs immediately.

        Returns:
            A function that detaches the listener
        """
        with self._lock:
            if not self._aborted:
                self._listeners.append(listener)
                return lambda: self._remove_listener(listener)

        listener(self._reason)
        return lambda: None

    def _remove_listener(self, listener: AbortListener) -> None:
        with self._lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    async def wait(self) -> Optional[Any]:
        """
        Suspend until the token is aborted.

        The listener is detached when the waiter finishes or is cancelled.

        Returns:
            The abort reason
        """
        if self._aborted:
            return self._reason

        loop = asyncio.get_running_loop()
        waiter: asyncio.Future = loop.create_future()

        def _wake(reason: Optional[Any]) -> None:
            if not waiter.done():
                waiter.set_result(reason)

        def _on_abort(reason: Optional[Any]) -> None:
            if loop.is_closed():
                return
            loop.call_soon_threadsafe(_wake, reason)

        remove = self.add_listener(_on_abort)
        try:
            return await waiter
        finally:
            remove()
