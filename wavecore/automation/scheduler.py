"""
Interval scheduler for the batch refresh.

Runs the refresh for the configured working set once per interval (24h by
default). The time of the last run is persisted to a JSON state file so a
restarted process does not refresh again too early.
"""
import asyncio
import json
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Optional, Union

import pytz

from ..shared.defaults import REFRESH_INTERVAL_SECONDS, SCHEDULE_TIMEZONE
from .refresh import BatchRefreshCoordinator, RefreshReport, dedupe_symbols


logger = logging.getLogger(__name__)


class RefreshScheduler:
    """
    Triggers BatchRefreshCoordinator.refresh_symbols on a fixed interval.

    Responsibilities:
    - Decide whether a refresh is due
    - Persist the last run (and its summary) across restarts
    - Sleep until the next run, waking early on shutdown
    """

    def __init__(
        self,
        coordinator: BatchRefreshCoordinator,
        symbols: Iterable[str],
        timeframe: str,
        interval_seconds: float = REFRESH_INTERVAL_SECONDS,
        timezone: str = SCHEDULE_TIMEZONE,
        state_file: Optional[Union[str, Path]] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize scheduler.

        Args:
            coordinator: Runs the actual refresh
            symbols: Working set refreshed on every run
            timeframe: Bar timeframe refreshed
            interval_seconds: Time between runs
            timezone: Timezone used when logging run times
            state_file: JSON file for the last run (optional)
            clock: Returns epoch seconds
        """
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be > 0, got {interval_seconds}")
        self.coordinator = coordinator
        self.symbols = dedupe_symbols(symbols)
        self.timeframe = timeframe
        self.interval_seconds = interval_seconds
        self.tz = pytz.timezone(timezone)
        self.state_file = Path(state_file).expanduser() if state_file else None
        self.clock = clock

        self.last_run: Optional[float] = None
        self.last_report: Optional[Dict[str, Any]] = None
        self._load_state()

    def _load_state(self):
        """Load last run from the state file."""
        if self.state_file is None:
            return
        if not self.state_file.exists():
            logger.info(f"State file {self.state_file} does not exist, starting fresh")
            return

        try:
            with open(self.state_file, 'r') as f:
                data = json.load(f)
            self.last_run = data.get("last_run")
            self.last_report = data.get("last_report")
            logger.info(f"Loaded state from {self.state_file}: last run {self.format_time(self.last_run)}")
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load state from {self.state_file}: {e}")
            self.last_run = None
            self.last_report = None

    def _save_state(self):
        """Save last run to the state file."""
        if self.state_file is None:
            return
        try:
            self.state_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.state_file, 'w') as f:
                json.dump({"last_run": self.last_run, "last_report": self.last_report}, f, indent=2)
            logger.debug(f"Saved state to {self.state_file}")
        except OSError as e:
            logger.error(f"Failed to save state to {self.state_file}: {e}")

    def format_time(self, epoch: Optional[float]) -> str:
        if epoch is None:
            return "never"
        return datetime.fromtimestamp(epoch, self.tz).strftime('%Y-%m-%d %H:%M %Z')

    def should_run(self, now: Optional[float] = None) -> bool:
        """True if no run happened yet or the last one is at least one interval old."""
        now = self.clock() if now is None else now
        return self.last_run is None or now - self.last_run >= self.interval_seconds

    def seconds_until_next_run(self, now: Optional[float] = None) -> float:
        now = self.clock() if now is None else now
        if self.should_run(now):
            return 0.0
        return self.last_run + self.interval_seconds - now

    async def run_once(self) -> RefreshReport:
        """Refresh the working set now and record the run."""
        report = await self.coordinator.refresh_symbols(self.symbols, self.timeframe)
        self.last_run = self.clock()
        self.last_report = report.to_dict()
        self._save_state()
        return report

    async def run_forever(self, stop_event: Optional[asyncio.Event] = None, max_sleep_seconds: float = 3600):
        """
        Refresh whenever due until stop_event is set.

        Sleeps in chunks of at most max_sleep_seconds; setting stop_event
        wakes the loop immediately.
        """
        stop_event = stop_event or asyncio.Event()
        logger.info(
            f"Scheduler started: {len(self.symbols)} symbols ({self.timeframe}) "
            f"every {self.interval_seconds / 3600:.1f}h"
        )

        while not stop_event.is_set():
            if self.should_run():
                await self.run_once()
                next_run = self.last_run + self.interval_seconds
                logger.info(f"Next refresh: {self.format_time(next_run)}")

            wait = min(self.seconds_until_next_run(), max_sleep_seconds)
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=max(wait, 0.0))
            except asyncio.TimeoutError:
                pass

        logger.info("Scheduler stopped")
