"""Periodic trigger tests"""

import asyncio

import pytest

from conftest import FakeCollection, FakeFeedSource, InMemoryStore, make_config
from feed_mirror.sync.engine import SyncEngine
from feed_mirror.sync.scheduler import PeriodicTrigger, setup_schedule


class ManualSleep:
    """Sleep replacement resolved by the test"""

    def __init__(self):
        self.calls = []
        self.pending = []

    async def __call__(self, seconds):
        self.calls.append(seconds)
        future = asyncio.get_running_loop().create_future()
        self.pending.append(future)
        await future

    def fire(self):
        self.pending.pop(0).set_result(None)


async def settle():
    for _ in range(5):
        await asyncio.sleep(0)


class TestPeriodicTrigger:
    """Arming, firing and clearing"""

    @pytest.mark.asyncio
    async def test_first_run_after_one_period(self):
        runs = []

        async def callback():
            runs.append(1)

        sleep = ManualSleep()
        trigger = PeriodicTrigger(callback, sleep=sleep)

        assert trigger.arm(5) is True
        await settle()

        assert sleep.calls == [300]
        assert runs == []
        assert trigger.is_armed
        assert trigger.next_run_at is not None

        sleep.fire()
        await settle()

        assert runs == [1]
        assert sleep.calls == [300, 300]
        trigger.clear()

    @pytest.mark.asyncio
    async def test_zero_period_is_not_armed(self):
        async def callback():
            pass

        trigger = PeriodicTrigger(callback, sleep=ManualSleep())

        assert trigger.arm(0) is False
        assert not trigger.is_armed
        assert trigger.stopped.is_set()

    @pytest.mark.asyncio
    async def test_clear_cancels_schedule(self):
        async def callback():
            pass

        sleep = ManualSleep()
        trigger = PeriodicTrigger(callback, sleep=sleep)
        trigger.arm(1)
        await settle()

        trigger.clear()
        await settle()

        assert not trigger.is_armed
        assert trigger.next_run_at is None
        assert trigger.stopped.is_set()

    @pytest.mark.asyncio
    async def test_rearm_replaces_schedule(self):
        async def callback():
            pass

        sleep = ManualSleep()
        trigger = PeriodicTrigger(callback, sleep=sleep)
        trigger.arm(1)
        await settle()
        trigger.arm(2)
        await settle()

        assert trigger.period_minutes == 2
        assert sleep.calls == [60, 120]
        trigger.clear()

    @pytest.mark.asyncio
    async def test_rearm_from_callback_keeps_waiters_blocked(self):
        trigger = None

        async def callback():
            trigger.arm(2)

        sleep = ManualSleep()
        trigger = PeriodicTrigger(callback, sleep=sleep)
        trigger.arm(1)
        waiter = asyncio.create_task(trigger.wait())
        await settle()

        sleep.fire()
        await settle()

        assert not waiter.done()
        assert trigger.is_armed
        assert trigger.period_minutes == 2
        assert sleep.calls == [60, 120]

        trigger.clear()
        await settle()
        assert waiter.done()

    @pytest.mark.asyncio
    async def test_arm_with_zero_period_releases_waiters(self):
        async def callback():
            pass

        trigger = PeriodicTrigger(callback, sleep=ManualSleep())
        trigger.arm(1)
        waiter = asyncio.create_task(trigger.wait())
        await settle()

        assert trigger.arm(0) is False
        await settle()

        assert waiter.done()
        assert not trigger.is_armed

    @pytest.mark.asyncio
    async def test_failing_callback_keeps_schedule(self):
        async def callback():
            raise RuntimeError("boom")

        sleep = ManualSleep()
        trigger = PeriodicTrigger(callback, sleep=sleep)
        trigger.arm(1)
        await settle()

        sleep.fire()
        await settle()

        assert trigger.is_armed
        assert len(sleep.calls) == 2
        trigger.clear()


class TestSetupSchedule:
    """Arming from configuration"""

    @pytest.mark.asyncio
    async def test_enabled(self):
        async def callback():
            pass

        trigger = PeriodicTrigger(callback, sleep=ManualSleep())
        assert setup_schedule(trigger, make_config(period_minutes=30)) is True
        assert trigger.period_minutes == 30
        trigger.clear()

    @pytest.mark.asyncio
    async def test_disabled(self):
        async def callback():
            pass

        trigger = PeriodicTrigger(callback, sleep=ManualSleep())
        assert setup_schedule(trigger, make_config(period_minutes=0)) is False
        assert not trigger.is_armed


class TestScheduledEngine:
    """Trigger driving incremental passes"""

    @pytest.mark.asyncio
    async def test_period_set_to_zero_stops_trigger(self):
        configs = [make_config(period_minutes=0)]
        feed_source = FakeFeedSource()
        sleep = ManualSleep()

        engine = None
        trigger = PeriodicTrigger(lambda: engine.run_incremental(), sleep=sleep)
        engine = SyncEngine(
            feed_source=feed_source,
            collection=FakeCollection(),
            store=InMemoryStore(),
            config_loader=lambda: configs[0],
            trigger=trigger,
            feed_delay=0,
            append_delay=0,
        )

        trigger.arm(60)
        await settle()
        sleep.fire()
        await asyncio.wait_for(trigger.wait(), timeout=1)

        assert not trigger.is_armed
        assert feed_source.calls == []
