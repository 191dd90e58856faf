"""Tests for best-effort side effects."""

import asyncio
from unittest.mock import AsyncMock

from ivr.side_effects import best_effort

from conftest import CALLER


class TestBestEffort:
    async def test_success_first_try(self):
        send = AsyncMock()
        assert await best_effort("Admin alert", send, phone=CALLER, retries=2) is True
        assert send.await_count == 1

    async def test_retries_then_succeeds(self):
        send = AsyncMock(side_effect=[RuntimeError("busy"), None])
        assert await best_effort("Admin alert", send, retries=1) is True
        assert send.await_count == 2

    async def test_gives_up_after_retries(self, caplog):
        send = AsyncMock(side_effect=RuntimeError("down"))
        assert await best_effort("Admin alert", send, phone=CALLER, retries=2) is False
        assert send.await_count == 3
        assert "attempt 3/3" in caplog.text
        assert "gave up" in caplog.text

    async def test_zero_retries_single_attempt(self):
        send = AsyncMock(side_effect=RuntimeError("down"))
        assert await best_effort("Admin alert", send, retries=0) is False
        assert send.await_count == 1

    async def test_timeout_counts_as_failure(self, caplog):
        async def slow():
            await asyncio.sleep(1)

        assert await best_effort("Admin alert", slow, retries=0, timeout=0.01) is False
        assert "timed out" in caplog.text
