"""
Tests for the background expiry sweeper (quorum_core.sweeper).
"""

from __future__ import annotations

import asyncio
import logging
from unittest.mock import MagicMock

import pytest

from quorum_core.schedule import ScheduleState
from quorum_core.sweeper import ExpirySweeper


class TestExpirySweeper:

    def test_interval_must_be_positive(self, registry):
        with pytest.raises(ValueError):
            ExpirySweeper(registry, 0)
        with pytest.raises(ValueError):
            ExpirySweeper(registry, -1.0)

    @pytest.mark.asyncio
    async def test_run_once_expires_overdue(self, registry, schedule_id, clock):
        sweeper = ExpirySweeper(registry, 1.0)
        assert await sweeper.run_once() == []
        clock.advance(3600)
        assert await sweeper.run_once() == [schedule_id]
        assert registry.query(schedule_id).state is ScheduleState.EXPIRED
        assert sweeper.sweeps == 2

    @pytest.mark.asyncio
    async def test_start_and_stop(self, registry, schedule_id, clock):
        clock.advance(3600)
        sweeper = ExpirySweeper(registry, 0.01)
        sweeper.start()
        assert sweeper.running
        for _ in range(100):
            if sweeper.sweeps:
                break
            await asyncio.sleep(0.01)
        await sweeper.stop()
        assert not sweeper.running
        assert sweeper.sweeps >= 1
        assert registry.query(schedule_id).state is ScheduleState.EXPIRED

    @pytest.mark.asyncio
    async def test_start_twice_keeps_one_task(self, registry):
        sweeper = ExpirySweeper(registry, 10.0)
        sweeper.start()
        task = sweeper._task
        sweeper.start()
        assert sweeper._task is task
        await sweeper.stop()

    @pytest.mark.asyncio
    async def test_stop_without_start(self, registry):
        sweeper = ExpirySweeper(registry, 1.0)
        await sweeper.stop()
        assert not sweeper.running

    @pytest.mark.asyncio
    async def test_failed_sweep_is_logged_and_loop_continues(self, caplog):
        registry = MagicMock()
        registry.sweep_expired.side_effect = RuntimeError("boom")
        sweeper = ExpirySweeper(registry, 0.01)
        with caplog.at_level(logging.ERROR, logger="quorum_sweeper"):
            sweeper.start()
            for _ in range(100):
                if registry.sweep_expired.call_count >= 2:
                    break
                await asyncio.sleep(0.01)
            await sweeper.stop()
        assert registry.sweep_expired.call_count >= 2
        assert "Expiry sweep failed" in caplog.text
