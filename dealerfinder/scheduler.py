"""
Periodic triggering of source runs with a per-source overlap guard.
"""

from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Iterable, Optional, Protocol

import pytz
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from .models import RunReport, RunStatus, SourceConfig
from .utils import get_logger


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


class Runnable(Protocol):
    async def run(self) -> RunReport:
        ...


class Scheduler:
    """
    Owns the Idle/Running state of every configured source.

    A trigger for a source that is already running is skipped, not queued.
    The state returns to Idle however the run ends.
    """

    def __init__(
        self,
        sources: Iterable[SourceConfig],
        runner_factory: Callable[[SourceConfig], Runnable],
        timezone: str = "Europe/Berlin",
    ):
        self.sources: Dict[str, SourceConfig] = {source.name: source for source in sources}
        self.runner_factory = runner_factory
        self.timezone = pytz.timezone(timezone)
        self.logger = get_logger()

        self._states: Dict[str, RunState] = {name: RunState.IDLE for name in self.sources}
        self._scheduler: Optional[AsyncIOScheduler] = None

    def state(self, source: str) -> RunState:
        return self._states.get(source, RunState.IDLE)

    async def trigger(self, source: str) -> RunReport:
        """Run a source now unless it is already running."""
        if source not in self.sources:
            raise KeyError(f"Unknown source '{source}'")

        if self._states[source] is RunState.RUNNING:
            self.logger.warning(f"[{source}] Previous run still in progress, skipping this trigger")
            return RunReport(source=source, status=RunStatus.SKIPPED, finished_at=datetime.now())

        self._states[source] = RunState.RUNNING
        started_at = datetime.now()
        try:
            runner = self.runner_factory(self.sources[source])
            report = await runner.run()
        except Exception as e:
            self.logger.error(f"[{source}] Run failed: {e}", exc_info=True)
            report = RunReport(
                source=source,
                status=RunStatus.FAILED,
                started_at=started_at,
                finished_at=datetime.now(),
                error=str(e),
            )
        finally:
            self._states[source] = RunState.IDLE

        self.logger.print_run_report(report)
        return report

    def start(self, paused: bool = False) -> AsyncIOScheduler:
        """
        Register one interval job per enabled source, first run immediately.
        Must be called with a running event loop.
        """
        scheduler = AsyncIOScheduler(timezone=self.timezone)
        now = datetime.now(self.timezone)

        for name, source in self.sources.items():
            if not source.enabled:
                self.logger.info(f"[{name}] Disabled, not scheduled")
                continue
            scheduler.add_job(
                self.trigger,
                "interval",
                minutes=source.interval_minutes,
                args=[name],
                id=name,
                next_run_time=now,
                # overlap is handled by trigger()
                max_instances=2,
                coalesce=True,
            )
            self.logger.info(f"[{name}] Scheduled every {source.interval_minutes} min")

        scheduler.start(paused=paused)
        self._scheduler = scheduler
        return scheduler

    def shutdown(self):
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
