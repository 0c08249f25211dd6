"""Pytest configuration and fixtures for SafeGuard tests."""

import asyncio
import heapq
import itertools

import numpy as np
import pytest

from safeguard.gate import ConfirmationGate


class FakeTimer:
    """Cancellable timer handle returned by FakeScheduler.call_later."""

    def __init__(self, when, callback, args):
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """
    Manually advanced scheduler.

    Time only moves on advance(); spawned coroutines run on a private event
    loop whenever the test calls settle() / advance() / run().
    """

    def __init__(self, start=0.0):
        self.loop = asyncio.new_event_loop()
        self._now = start
        self._timers = []
        self._seq = itertools.count()
        self.tasks = []

    def now(self):
        return self._now

    def call_later(self, delay, callback, *args):
        timer = FakeTimer(self._now + max(0.0, delay), callback, args)
        heapq.heappush(self._timers, (timer.when, next(self._seq), timer))
        return timer

    def call_soon_threadsafe(self, callback, *args):
        callback(*args)

    def spawn(self, coro):
        task = self.loop.create_task(coro)
        self.tasks.append(task)
        return task

    @property
    def pending_timers(self):
        return [t for _, _, t in self._timers if not t.cancelled]

    def settle(self):
        """Let spawned tasks run until they block."""
        async def _yield():
            for _ in range(50):
                await asyncio.sleep(0)
        self.loop.run_until_complete(_yield())

    def advance(self, seconds):
        """Move time forward, firing due timers in order."""
        target = self._now + seconds
        while self._timers and self._timers[0][0] <= target:
            when, _, timer = heapq.heappop(self._timers)
            if timer.cancelled:
                continue
            self._now = when
            timer.callback(*timer.args)
            self.settle()
        self._now = target
        self.settle()

    def run(self, coro):
        return self.loop.run_until_complete(coro)

    def close(self):
        for task in self.tasks:
            if not task.done():
                task.cancel()
        self.settle()
        self.loop.close()


class StubPrompt:
    """Confirmation prompt answered by the test through respond()."""

    def __init__(self):
        self.calls = []
        self._future = None

    @property
    def is_pending(self):
        return self._future is not None and not self._future.done()

    async def __call__(self, seconds, alert_type, trigger):
        self.calls.append((seconds, alert_type, trigger))
        self._future = asyncio.get_running_loop().create_future()
        return await self._future

    def respond(self, response):
        assert self.is_pending, "no confirmation is showing"
        self._future.set_result(response)


class RecordingSink:
    """Alert sink that keeps every record in memory."""

    def __init__(self):
        self.records = []

    async def record(self, type, trigger, outcome, extra=None):
        self.records.append((type, trigger, outcome, extra))


@pytest.fixture
def scheduler():
    """Fixture providing a manually advanced scheduler starting at t=0."""
    sched = FakeScheduler()
    yield sched
    sched.close()


@pytest.fixture
def gate(scheduler):
    """Fixture providing a confirmation gate on the fake clock."""
    return ConfirmationGate(cooldown=10.0, clock=scheduler.now)


@pytest.fixture
def sample_audio_data():
    """Fixture providing sample audio data for testing."""
    # Generate 1 second of dummy audio at 16kHz
    sample_rate = 16000
    duration = 1.0
    samples = int(sample_rate * duration)

    # Create a simple sine wave as test audio
    frequency = 440  # A4 note
    t = np.linspace(0, duration, samples, False)
    audio = np.sin(frequency * 2 * np.pi * t).astype(np.float32)

    return audio, sample_rate


@pytest.fixture
def prompt():
    return StubPrompt()


@pytest.fixture
def sink():
    return RecordingSink()
