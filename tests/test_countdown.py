"""Tests for the InactivityCountdown class."""

import pytest

from safeguard.confirmation import ConfirmationFlow
from safeguard.countdown import InactivityCountdown
from safeguard.events import ConfirmationOutcome, MotionSample


@pytest.fixture
def countdown(scheduler, gate, prompt, sink):
    flow = ConfirmationFlow(gate, prompt, scheduler, sink=sink)
    return InactivityCountdown(gate, flow, scheduler, movement_threshold=0.1,
                               inactivity_duration=12.0, confirmation_duration=10)


@pytest.fixture
def completions():
    return []


class TestInactivityCountdown:
    """Test cases for InactivityCountdown."""

    def test_stillness_leads_to_confirmation(self, scheduler, prompt, sink, countdown, completions):
        """Test that staying still hands off to the confirmation flow."""
        assert countdown.start("Fall detected", 0.2, lambda: completions.append(1))
        assert countdown.is_pending

        countdown.handle_magnitude(0.25)
        scheduler.advance(11.9)
        assert prompt.calls == []

        scheduler.advance(0.2)
        assert prompt.calls == [(10, "inactivity", "auto")]
        assert countdown.is_confirming
        assert not countdown.is_pending
        assert completions == []

        prompt.respond("send")
        scheduler.settle()

        assert completions == [1]
        assert not countdown.is_confirming
        assert sink.records == [("inactivity", "auto", "sent", {"reason": "Fall detected"})]

    def test_movement_cancels_countdown(self, scheduler, prompt, countdown, completions):
        countdown.start("Single scream detected", 0.0, lambda: completions.append(1))
        countdown.handle_sample(MotionSample(magnitude=0.5, timestamp=1.0))

        assert not countdown.is_pending
        scheduler.advance(20.0)
        assert prompt.calls == []
        assert completions == [1]

    def test_gate_active_blocks_start(self, gate, countdown):
        gate.start_confirmation()
        assert countdown.start("Fall detected", 0.0) is False
        assert not countdown.is_pending

    def test_second_start_is_ignored(self, scheduler, prompt, countdown):
        assert countdown.start("Fall detected", 0.0)
        assert countdown.start("Single scream detected", 0.0) is False
        assert countdown.reason == "Fall detected"

        scheduler.advance(12.0)
        assert len(prompt.calls) == 1

    def test_gate_activated_during_window(self, scheduler, gate, prompt, countdown, completions):
        """Test expiry under an active gate skips straight to completion."""
        countdown.start("Fall detected", 0.0, lambda: completions.append(1))
        scheduler.advance(5.0)
        gate.start_confirmation()
        scheduler.advance(7.0)

        assert prompt.calls == []
        assert completions == [1]

    def test_disable_cancels_pending(self, scheduler, prompt, countdown):
        countdown.start("Fall detected", 0.0)
        countdown.disable()

        assert not countdown.is_pending
        assert scheduler.pending_timers == []
        assert countdown.start("Fall detected", 0.0) is False

        countdown.enable()
        assert countdown.start("Fall detected", 0.0) is True

    def test_completion_runs_once(self, scheduler, prompt, countdown, completions):
        countdown.start("Fall detected", 0.0, lambda: completions.append(1))
        scheduler.advance(12.0)
        countdown.cancel("late cancel")
        prompt.respond(None)
        scheduler.settle()

        assert completions == [1]

    def test_immediate_confirmation(self, scheduler, prompt, countdown):
        task = scheduler.spawn(countdown.show_immediate_confirmation(
            "Core emergency (fall + scream)", alert_type="fall"))
        scheduler.settle()

        assert prompt.calls == [(10, "fall", "auto")]
        prompt.respond("send")
        scheduler.settle()
        assert task.result() is ConfirmationOutcome.SENT

    def test_immediate_confirmation_suppressed_by_window(self, scheduler, prompt, countdown):
        countdown.start("Fall detected", 0.0)
        result = scheduler.run(countdown.show_immediate_confirmation("Multiple screams detected"))

        assert result is None
        assert prompt.calls == []

    def test_immediate_confirmation_suppressed_when_disabled(self, scheduler, countdown):
        countdown.disable()
        assert scheduler.run(countdown.show_immediate_confirmation("x")) is None
