import asyncio
import unittest

from twin_client.scheduler import AsyncioScheduler, ManualScheduler


class ManualSchedulerTests(unittest.IsolatedAsyncioTestCase):
    async def test_runs_due_callbacks_in_order_at_their_time(self) -> None:
        scheduler = ManualScheduler()
        seen = []

        def record(label):
            async def _callback():
                seen.append((label, scheduler.now()))

            return _callback

        scheduler.schedule(3.0, record("late"))
        scheduler.schedule(1.0, record("early"))
        self.assertEqual(await scheduler.advance(2.0), 1)
        self.assertEqual(await scheduler.advance(1.0), 1)
        self.assertEqual(seen, [("early", 1.0), ("late", 3.0)])
        self.assertEqual(scheduler.now(), 3.0)

    async def test_cancelled_handle_never_runs(self) -> None:
        scheduler = ManualScheduler()
        ran = []

        async def _callback():
            ran.append(True)

        handle = scheduler.schedule(1.0, _callback)
        scheduler.cancel(handle)
        self.assertEqual(scheduler.pending(), [])
        self.assertEqual(await scheduler.advance(5.0), 0)
        self.assertEqual(ran, [])

    async def test_callback_may_schedule_within_same_advance(self) -> None:
        scheduler = ManualScheduler()
        ticks = []

        async def _tick():
            ticks.append(scheduler.now())
            scheduler.schedule(2.0, _tick)

        scheduler.schedule(2.0, _tick)
        await scheduler.advance(7.0)
        self.assertEqual(ticks, [2.0, 4.0, 6.0])


class AsyncioSchedulerTests(unittest.IsolatedAsyncioTestCase):
    async def test_fires_on_event_loop(self) -> None:
        scheduler = AsyncioScheduler()
        done = asyncio.Event()

        async def _callback():
            done.set()

        handle = scheduler.schedule(0.01, _callback)
        await asyncio.wait_for(done.wait(), timeout=2.0)
        await scheduler.drain()
        self.assertTrue(handle.fired)

    async def test_cancel_prevents_fire(self) -> None:
        scheduler = AsyncioScheduler()
        ran = []

        async def _callback():
            ran.append(True)

        scheduler.cancel(scheduler.schedule(0.01, _callback))
        await asyncio.sleep(0.05)
        self.assertEqual(ran, [])

    async def test_failing_callback_is_logged(self) -> None:
        scheduler = AsyncioScheduler()

        async def _callback():
            raise RuntimeError("render failed")

        with self.assertLogs("twin_client.scheduler", level="ERROR") as logs:
            handle = scheduler.schedule(60.0, _callback)
            scheduler._fire(handle)
            await scheduler.drain()
            await asyncio.sleep(0)
        scheduler.cancel(handle)
        self.assertIn("scheduled callback failed", logs.output[0])
        self.assertIsInstance(logs.records[0].exc_info[1], RuntimeError)


if __name__ == "__main__":
    unittest.main()
