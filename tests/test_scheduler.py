import asyncio

from newsdash.models.articles import AggregateResult
from newsdash.services.scheduler import HeadlineStore, RefreshScheduler, SchedulerState


class GatedAggregator:
    """Each cycle waits for ``gate`` and returns a result tagged by cycle number."""

    def __init__(self, make_article):
        self.make_article = make_article
        self.gate = asyncio.Event()
        self.cycles = 0

    async def run_cycle(self, sources=None):
        self.cycles += 1
        n = self.cycles
        await self.gate.wait()
        return AggregateResult(articles=(self.make_article("Cycle", n),))


def test_refresh_now_publishes_result(stub_aggregator_cls, make_article):
    async def main():
        store = HeadlineStore()
        scheduler = RefreshScheduler(stub_aggregator_cls([make_article("Alpha", 1)]), store, interval=60)
        result = await scheduler.refresh_now()
        return store, result, scheduler

    store, result, scheduler = asyncio.run(main())
    assert store.current is result
    assert store.cycles_completed == 1
    assert scheduler.last_duration_ms is not None


def test_readers_see_old_set_until_cycle_completes(make_article):
    async def main():
        aggregator = GatedAggregator(make_article)
        old = AggregateResult(articles=(make_article("Old", 0),))
        store = HeadlineStore(old)
        scheduler = RefreshScheduler(aggregator, store, interval=60)

        task = asyncio.create_task(scheduler.refresh_now())
        await asyncio.sleep(0.01)
        during = store.current
        refreshing = scheduler.refreshing
        aggregator.gate.set()
        new = await task
        return old, during, refreshing, new, store.current

    old, during, refreshing, new, after = asyncio.run(main())
    assert during is old
    assert refreshing
    assert after is new
    assert after.articles[0].source == "Cycle"


def test_pause_does_not_cancel_inflight_cycle(make_article):
    async def main():
        aggregator = GatedAggregator(make_article)
        store = HeadlineStore()
        scheduler = RefreshScheduler(aggregator, store, interval=60)

        first = scheduler.start()
        await asyncio.sleep(0.01)
        scheduler.pause()
        state = scheduler.state
        aggregator.gate.set()
        await first
        await scheduler.stop()
        return state, store.cycles_completed

    state, cycles = asyncio.run(main())
    assert state is SchedulerState.PAUSED
    assert cycles == 1


def test_resume_refreshes_immediately(stub_aggregator_cls):
    async def main():
        aggregator = stub_aggregator_cls()
        scheduler = RefreshScheduler(aggregator, HeadlineStore(), interval=60)

        await scheduler.start()
        scheduler.pause()
        assert scheduler.resume() is not None
        await asyncio.sleep(0.01)
        state = scheduler.state
        await scheduler.stop()
        return aggregator.cycles, state

    cycles, state = asyncio.run(main())
    assert cycles == 2
    assert state is SchedulerState.RUNNING


def test_resume_when_not_paused_is_noop(stub_aggregator_cls):
    async def main():
        scheduler = RefreshScheduler(stub_aggregator_cls(), HeadlineStore(), interval=60)
        return scheduler.resume(), scheduler.state

    task, state = asyncio.run(main())
    assert task is None
    assert state is SchedulerState.STOPPED


def test_periodic_cycles_run_while_running(stub_aggregator_cls):
    async def main():
        aggregator = stub_aggregator_cls()
        scheduler = RefreshScheduler(aggregator, HeadlineStore(), interval=0.02)
        scheduler.start()
        await asyncio.sleep(0.15)
        scheduler.pause()
        # let a cycle spawned by the last tick settle
        await asyncio.sleep(0.01)
        paused_at = aggregator.cycles
        await asyncio.sleep(0.1)
        after_pause = aggregator.cycles
        await scheduler.stop()
        return paused_at, after_pause

    paused_at, after_pause = asyncio.run(main())
    assert paused_at >= 3
    assert after_pause == paused_at


def test_failed_cycle_keeps_previous_result(make_article):
    class FailingAggregator:
        async def run_cycle(self, sources=None):
            raise RuntimeError("offline")

    async def main():
        old = AggregateResult(articles=(make_article("Old", 0),))
        store = HeadlineStore(old)
        scheduler = RefreshScheduler(FailingAggregator(), store, interval=60)
        await scheduler.start()
        await scheduler.stop()
        return old, store.current

    old, current = asyncio.run(main())
    assert current is old


def test_stop_cancels_every_pending_cycle(make_article):
    async def main():
        aggregator = GatedAggregator(make_article)
        store = HeadlineStore()
        scheduler = RefreshScheduler(aggregator, store, interval=60)

        first = scheduler.start()
        await asyncio.sleep(0.01)
        scheduler.pause()
        second = scheduler.resume()
        await asyncio.sleep(0.01)
        await scheduler.stop()
        return first, second, store.cycles_completed

    first, second, cycles = asyncio.run(main())
    assert first is not second
    assert first.cancelled()
    assert second.cancelled()
    assert cycles == 0
