"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
S3 Publish, a product of Garudex Labs

Unit tests for CancellationToken.
"""

import asyncio
import threading

import pytest

from s3publish.transport.cancellation import CancellationToken


class TestCancellationToken:
    """Tests for CancellationToken."""

    def test_starts_active(self):
        token = CancellationToken()
        assert token.aborted is False
        assert token.reason is None

    def test_abort_sets_reason_once(self):
        token = CancellationToken()

        assert token.abort("first") is True
        assert token.abort("second") is False
        assert token.aborted is True
        assert token.reason == "first"

    def test_listener_runs_once(self):
        token = CancellationToken()
        calls = []
        token.add_listener(calls.append)

        token.abort("stop")
        token.abort("again")

        assert calls == ["stop"]
        assert token.listener_count == 0

    def test_listener_added_after_abort_runs_immediately(self):
        token = CancellationToken()
        token.abort("late")
        calls = []

        token.add_listener(calls.append)

        assert calls == ["late"]

    def test_removed_listener_not_called(self):
        token = CancellationToken()
        calls = []
        remove = token.add_listener(calls.append)

        remove()
        token.abort()

        assert calls == []
        assert token.listener_count == 0

    @pytest.mark.asyncio
    async def test_wait_returns_reason(self):
        token = CancellationToken()
        waiter = asyncio.ensure_future(token.wait())
        await asyncio.sleep(0)

        token.abort("done")

        assert await asyncio.wait_for(waiter, 1.0) == "done"
        assert token.listener_count == 0

    @pytest.mark.asyncio
    async def test_wait_woken_from_other_thread(self):
        token = CancellationToken()
        waiter = asyncio.ensure_future(token.wait())
        await asyncio.sleep(0)

        thread = threading.Thread(target=token.abort, args=("thread",))
        thread.start()
        thread.join()

        assert await asyncio.wait_for(waiter, 1.0) == "thread"

    @pytest.mark.asyncio
    async def test_cancelled_wait_detaches_listener(self):
        token = CancellationToken()
        waiter = asyncio.ensure_future(token.wait())
        await asyncio.sleep(0)
        assert token.listener_count == 1

        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        assert token.listener_count == 0
