"""Tests for the rate-limited request queue."""

import asyncio
import time

import pytest

from localizer.request_queue import QueueState, RateLimitedQueue


def recorder(clock, starts, value, duration=0.0):
    async def work():
        starts.append(clock())
        clock.now += duration
        return value

    return work


class TestSpacing:

    @pytest.mark.asyncio
    async def test_dispatches_are_spaced_with_a_fake_clock(self, fake_clock):
        queue = RateLimitedQueue(0.1, clock=fake_clock, sleep=fake_clock.sleep)
        starts = []

        futures = [queue.enqueue(recorder(fake_clock, starts, index)) for index in range(3)]
        results = await asyncio.gather(*futures)

        assert results == [0, 1, 2]
        assert starts == pytest.approx([0.0, 0.1, 0.2])
        assert fake_clock.sleeps == pytest.approx([0.1, 0.1])

    @pytest.mark.asyncio
    async def test_slow_tasks_still_cool_down_before_the_next_dispatch(self, fake_clock):
        queue = RateLimitedQueue(0.1, clock=fake_clock, sleep=fake_clock.sleep)
        starts = []

        first = queue.enqueue(recorder(fake_clock, starts, "a", duration=0.5))
        second = queue.enqueue(recorder(fake_clock, starts, "b"))
        await asyncio.gather(first, second)

        assert starts == pytest.approx([0.0, 0.6])

    @pytest.mark.asyncio
    async def test_first_dispatch_never_waits(self, fake_clock):
        queue = RateLimitedQueue(5, clock=fake_clock, sleep=fake_clock.sleep)

        assert queue.delay_before_dispatch(fake_clock()) == 0
        assert await queue.submit(recorder(fake_clock, [], "done")) == "done"
        assert fake_clock.sleeps == []

    @pytest.mark.asyncio
    async def test_delay_accounts_for_time_already_elapsed(self, fake_clock):
        queue = RateLimitedQueue(0.1, clock=fake_clock, sleep=fake_clock.sleep)
        await queue.submit(recorder(fake_clock, [], None))

        assert queue.delay_before_dispatch(0.04) == pytest.approx(0.06)
        assert queue.delay_before_dispatch(1.0) == 0

    @pytest.mark.asyncio
    async def test_real_clock_spacing(self):
        queue = RateLimitedQueue(0.1)
        starts = []

        async def work():
            starts.append(time.monotonic())

        await asyncio.gather(*(queue.enqueue(work) for _ in range(3)))

        gaps = [later - earlier for earlier, later in zip(starts, starts[1:])]
        assert all(gap >= 0.099 for gap in gaps)

    def test_negative_spacing_is_rejected(self):
        with pytest.raises(ValueError):
            RateLimitedQueue(-1)


class TestOrderingAndFailures:

    @pytest.mark.asyncio
    async def test_tasks_run_one_at_a_time_in_fifo_order(self, fake_clock):
        queue = RateLimitedQueue(0, clock=fake_clock, sleep=fake_clock.sleep)
        order = []
        active = 0
        peak = 0

        def make(name):
            async def work():
                nonlocal active, peak
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0)
                order.append(name)
                active -= 1
                return name

            return work

        results = await asyncio.gather(*(queue.enqueue(make(name)) for name in "abcd"))

        assert results == list("abcd")
        assert order == list("abcd")
        assert peak == 1

    @pytest.mark.asyncio
    async def test_failure_only_rejects_its_own_future(self, fake_clock):
        queue = RateLimitedQueue(0, clock=fake_clock, sleep=fake_clock.sleep)

        async def ok():
            return "ok"

        async def broken():
            raise ValueError("boom")

        outcomes = await asyncio.gather(
            queue.enqueue(ok), queue.enqueue(broken), queue.enqueue(ok), return_exceptions=True
        )

        assert outcomes[0] == "ok"
        assert isinstance(outcomes[1], ValueError)
        assert outcomes[2] == "ok"


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_state_follows_the_worker(self, fake_clock):
        queue = RateLimitedQueue(0, clock=fake_clock, sleep=fake_clock.sleep)
        assert queue.state is QueueState.IDLE

        future = queue.enqueue(recorder(fake_clock, [], 1))
        assert queue.state is QueueState.DRAINING

        await future
        await queue.join()
        assert queue.state is QueueState.IDLE

    @pytest.mark.asyncio
    async def test_queue_restarts_after_draining(self, fake_clock):
        queue = RateLimitedQueue(0, clock=fake_clock, sleep=fake_clock.sleep)

        assert await queue.submit(recorder(fake_clock, [], 1)) == 1
        await queue.join()
        assert await queue.submit(recorder(fake_clock, [], 2)) == 2

    @pytest.mark.asyncio
    async def test_clear_cancels_pending_tasks(self, fake_clock):
        queue = RateLimitedQueue(0, clock=fake_clock, sleep=fake_clock.sleep)
        release = asyncio.Event()

        async def blocking():
            await release.wait()
            return "first"

        first = queue.enqueue(blocking)
        second = queue.enqueue(recorder(fake_clock, [], 2))
        third = queue.enqueue(recorder(fake_clock, [], 3))
        await asyncio.sleep(0)

        assert queue.clear() == 2
        assert len(queue) == 0
        assert second.cancelled()
        assert third.cancelled()

        release.set()
        assert await first == "first"
        await queue.join()
        assert queue.state is QueueState.IDLE

    @pytest.mark.asyncio
    async def test_cancelled_work_cancels_waiting_tasks(self, fake_clock):
        queue = RateLimitedQueue(0, clock=fake_clock, sleep=fake_clock.sleep)

        async def cancelled():
            raise asyncio.CancelledError()

        first = queue.enqueue(cancelled)
        second = queue.enqueue(recorder(fake_clock, [], 2))
        await queue.join()

        assert first.cancelled()
        assert second.cancelled()
        assert len(queue) == 0
        assert queue.state is QueueState.IDLE
