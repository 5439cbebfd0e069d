"""
Unit Tests for Scheduler

Overlap guard and state handling, independent of any browser.
"""

import asyncio

import pytest

from dealerfinder.models import RunReport, RunStatus, SourceConfig
from dealerfinder.scheduler import RunState, Scheduler

SOURCES = [
    SourceConfig(name="kia", search_terms=["Berlin"], interval_minutes=60),
    SourceConfig(name="opel", search_terms=["Berlin"], interval_minutes=30, enabled=False),
]


class BlockingRunner:
    def __init__(self, started, release, calls):
        self.started = started
        self.release = release
        self.calls = calls

    async def run(self):
        self.calls.append("run")
        self.started.set()
        await self.release.wait()
        return RunReport(source="kia")


class FailingRunner:
    async def run(self):
        raise RuntimeError("store exploded")


def test_trigger_while_running_is_skipped():
    calls = []

    async def scenario():
        started, release = asyncio.Event(), asyncio.Event()
        scheduler = Scheduler(SOURCES, lambda source: BlockingRunner(started, release, calls))

        first = asyncio.create_task(scheduler.trigger("kia"))
        await started.wait()
        running_state = scheduler.state("kia")
        second = await scheduler.trigger("kia")
        release.set()
        return running_state, second, await first, scheduler.state("kia")

    running_state, second, first, final_state = asyncio.run(scenario())

    assert running_state is RunState.RUNNING
    assert second.status is RunStatus.SKIPPED
    assert first.status is RunStatus.COMPLETED
    assert final_state is RunState.IDLE
    assert calls == ["run"]


def test_sources_are_guarded_independently():
    calls = []

    async def scenario():
        started, release = asyncio.Event(), asyncio.Event()
        scheduler = Scheduler(SOURCES, lambda source: BlockingRunner(started, release, calls))

        first = asyncio.create_task(scheduler.trigger("kia"))
        await started.wait()
        other_state = scheduler.state("opel")
        release.set()
        await first
        return other_state

    assert asyncio.run(scenario()) is RunState.IDLE


def test_failed_run_clears_state():
    scheduler = Scheduler(SOURCES, lambda source: FailingRunner())

    report = asyncio.run(scheduler.trigger("kia"))

    assert report.status is RunStatus.FAILED
    assert "store exploded" in report.error
    assert scheduler.state("kia") is RunState.IDLE


def test_runner_factory_failure_clears_state():
    def factory(source):
        raise ValueError("Unknown adapter 'bmw'")

    scheduler = Scheduler(SOURCES, factory)

    report = asyncio.run(scheduler.trigger("kia"))

    assert report.status is RunStatus.FAILED
    assert scheduler.state("kia") is RunState.IDLE


def test_unknown_source_is_rejected():
    scheduler = Scheduler(SOURCES, lambda source: FailingRunner())

    with pytest.raises(KeyError):
        asyncio.run(scheduler.trigger("seat"))


def test_start_schedules_enabled_sources():
    async def scenario():
        scheduler = Scheduler(SOURCES, lambda source: FailingRunner(), timezone="Europe/Berlin")
        aps = scheduler.start(paused=True)
        jobs = {job.id: job for job in aps.get_jobs()}
        scheduler.shutdown()
        await asyncio.sleep(0)
        return jobs

    jobs = asyncio.run(scenario())

    assert set(jobs) == {"kia"}
    assert jobs["kia"].trigger.interval.total_seconds() == 3600
