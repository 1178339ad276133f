import asyncio

from roomcontrol.core.tasks import DelayedCall, PeriodicTask


def test_periodic_task_runs_until_stopped():
    async def run():
        calls = []

        async def tick():
            calls.append(1)

        task = PeriodicTask("tick", 0.01, tick)
        task.start()
        assert task.running
        await asyncio.sleep(0.08)
        await task.stop()
        assert not task.running

        count = len(calls)
        assert count >= 2
        await asyncio.sleep(0.05)
        assert len(calls) == count

    asyncio.run(run())


def test_periodic_task_survives_callback_errors():
    async def run():
        calls = []

        async def flaky():
            calls.append(1)
            raise RuntimeError("sensor timeout")

        task = PeriodicTask("flaky", 0.01, flaky, run_immediately=True)
        task.start()
        await asyncio.sleep(0.06)
        await task.stop()
        assert len(calls) >= 2

    asyncio.run(run())


def test_periodic_task_waits_before_first_run():
    async def run():
        calls = []

        async def tick():
            calls.append(1)

        task = PeriodicTask("slow", 10, tick)
        task.start()
        await asyncio.sleep(0.02)
        await task.stop()
        assert calls == []

    asyncio.run(run())


def test_delayed_call_fires_once_after_delay():
    async def run():
        calls = []

        async def fire():
            calls.append(1)

        call = DelayedCall("settle", 0.02, fire)
        call.schedule()
        assert call.pending
        await asyncio.sleep(0.08)
        assert calls == [1]
        assert not call.pending

    asyncio.run(run())


def test_rescheduling_replaces_pending_call():
    async def run():
        calls = []

        async def fire():
            calls.append(1)

        call = DelayedCall("settle", 0.03, fire)
        call.schedule()
        await asyncio.sleep(0.01)
        call.schedule()
        await asyncio.sleep(0.1)
        assert calls == [1]

    asyncio.run(run())


def test_cancel_prevents_call():
    async def run():
        calls = []

        async def fire():
            calls.append(1)

        call = DelayedCall("settle", 0.02, fire)
        call.schedule()
        await call.cancel()
        assert not call.pending
        await asyncio.sleep(0.05)
        assert calls == []

    asyncio.run(run())


def test_cancel_stops_every_call_already_running():
    async def run():
        gate = asyncio.Event()
        calls = []

        async def fire():
            await gate.wait()
            calls.append(1)

        call = DelayedCall("settle", 0.01, fire)
        call.schedule()
        await asyncio.sleep(0.03)
        call.schedule()
        await asyncio.sleep(0.03)
        assert call.in_flight == 2

        await call.cancel()
        assert call.in_flight == 0

        gate.set()
        await asyncio.sleep(0.02)
        assert calls == []

    asyncio.run(run())
