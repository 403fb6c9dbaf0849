"""
Tests for the interval refresh scheduler.
"""
import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from wavecore.automation.refresh import RefreshReport
from wavecore.automation.scheduler import RefreshScheduler


DAY = 24 * 3600


def _coordinator(report=None):
    coordinator = MagicMock()
    coordinator.refresh_symbols = AsyncMock(
        return_value=report or RefreshReport(timeframe="1d", started_at=0, finished_at=1)
    )
    return coordinator


class TestShouldRun:
    """Test interval logic."""

    def test_first_run_is_due(self, clock):
        scheduler = RefreshScheduler(_coordinator(), ["SPY"], "1d", clock=clock)
        assert scheduler.should_run()
        assert scheduler.seconds_until_next_run() == 0.0

    @pytest.mark.asyncio
    async def test_not_due_until_interval_passed(self, clock):
        scheduler = RefreshScheduler(_coordinator(), ["SPY"], "1d", interval_seconds=DAY, clock=clock)
        await scheduler.run_once()

        clock.advance(DAY - 1)
        assert not scheduler.should_run()
        assert scheduler.seconds_until_next_run() == 1

        clock.advance(1)
        assert scheduler.should_run()

    def test_interval_must_be_positive(self, clock):
        with pytest.raises(ValueError):
            RefreshScheduler(_coordinator(), ["SPY"], "1d", interval_seconds=0, clock=clock)

    def test_symbols_deduplicated(self, clock):
        scheduler = RefreshScheduler(_coordinator(), ["spy", "SPY", "qqq"], "1d", clock=clock)
        assert scheduler.symbols == ["SPY", "QQQ"]


class TestRunOnce:
    """Test run_once and state persistence."""

    @pytest.mark.asyncio
    async def test_calls_coordinator(self, clock):
        coordinator = _coordinator()
        scheduler = RefreshScheduler(coordinator, ["SPY", "QQQ"], "1wk", clock=clock)

        await scheduler.run_once()

        coordinator.refresh_symbols.assert_awaited_once_with(["SPY", "QQQ"], "1wk")
        assert scheduler.last_run == clock()

    @pytest.mark.asyncio
    async def test_state_survives_restart(self, tmp_path, clock):
        state_file = tmp_path / "state" / "refresh.json"
        report = RefreshReport(timeframe="1d", started_at=5, finished_at=9, failed={"BAD": "no data"})
        scheduler = RefreshScheduler(_coordinator(report), ["SPY"], "1d", state_file=state_file, clock=clock)
        await scheduler.run_once()

        data = json.loads(state_file.read_text())
        assert data["last_run"] == clock()
        assert data["last_report"]["failed"] == {"BAD": "no data"}

        restarted = RefreshScheduler(_coordinator(), ["SPY"], "1d", state_file=state_file, clock=clock)
        assert restarted.last_run == clock()
        assert not restarted.should_run()

    def test_corrupt_state_starts_fresh(self, tmp_path, clock):
        state_file = tmp_path / "refresh.json"
        state_file.write_text("{broken")

        scheduler = RefreshScheduler(_coordinator(), ["SPY"], "1d", state_file=state_file, clock=clock)
        assert scheduler.last_run is None

    def test_format_time_uses_timezone(self, clock):
        scheduler = RefreshScheduler(_coordinator(), ["SPY"], "1d", timezone="America/New_York", clock=clock)

        assert scheduler.format_time(None) == "never"
        assert scheduler.format_time(1_704_067_200).startswith("2023-12-31 19:00")


class TestRunForever:
    """Test the service loop."""

    @pytest.mark.asyncio
    async def test_runs_then_stops(self, clock):
        stop_event = asyncio.Event()
        coordinator = _coordinator()

        async def refresh_and_stop(symbols, timeframe):
            stop_event.set()
            return RefreshReport(timeframe=timeframe, started_at=0, finished_at=0)

        coordinator.refresh_symbols = AsyncMock(side_effect=refresh_and_stop)
        scheduler = RefreshScheduler(coordinator, ["SPY"], "1d", clock=clock)

        await asyncio.wait_for(scheduler.run_forever(stop_event), timeout=5)

        assert coordinator.refresh_symbols.await_count == 1

    @pytest.mark.asyncio
    async def test_stop_wakes_sleeping_loop(self, clock):
        coordinator = _coordinator()
        scheduler = RefreshScheduler(coordinator, ["SPY"], "1d", clock=clock)
        scheduler.last_run = clock()  # Not due for a day
        stop_event = asyncio.Event()

        loop_task = asyncio.ensure_future(scheduler.run_forever(stop_event))
        await asyncio.sleep(0)
        stop_event.set()
        await asyncio.wait_for(loop_task, timeout=5)

        coordinator.refresh_symbols.assert_not_awaited()
