"""Tests for the ManualTrigger class."""

import pytest

from safeguard.manual_trigger import ManualTrigger

REST = 9.8
SPIKE = 20.0


@pytest.fixture
def triggered():
    return []


@pytest.fixture
def trigger(scheduler, triggered):
    """Fixture providing a listening trigger with a settled baseline."""
    trig = ManualTrigger(triggered.append, scheduler, threshold=2.0, required_peaks=5,
                         window=3.0, buffer_size=50, hold_duration=5.0)
    trig.start_listening()
    for i in range(40):
        trig.handle_event(0.0, 0.0, REST, timestamp=i * 0.01)
    return trig


class TestShakeDetection:
    """Test cases for shake detection."""

    def test_resting_device_never_triggers(self, trigger, triggered):
        for i in range(100):
            trigger.handle_event(0.0, 0.0, REST, timestamp=1.0 + i * 0.02)
        assert triggered == []
        assert trigger.recent_peaks == []

    def test_five_peaks_in_window_trigger_shake(self, trigger, triggered):
        results = []
        for i in range(5):
            results.append(trigger.handle_event(0.0, 0.0, SPIKE, timestamp=1.0 + i * 0.2))
            trigger.handle_event(0.0, 0.0, REST, timestamp=1.1 + i * 0.2)

        assert results == [False, False, False, False, True]
        assert triggered == ["shake"]
        assert trigger.recent_peaks == []

    def test_peaks_outside_window_are_pruned(self, trigger, triggered):
        for i in range(5):
            trigger.handle_event(0.0, 0.0, SPIKE, timestamp=1.0 + i * 1.0)

        assert triggered == []
        assert len(trigger.recent_peaks) == 4

    def test_buffer_is_bounded(self, trigger):
        for i in range(200):
            trigger.handle_event(0.0, 0.0, REST, timestamp=1.0 + i * 0.01)
        assert len(trigger.recent_magnitudes) == 50

    def test_disabled_shake_ignores_samples(self, trigger, triggered):
        trigger.set_shake_enabled(False)
        before = len(trigger.recent_magnitudes)
        for i in range(10):
            assert trigger.handle_event(0.0, 0.0, SPIKE, timestamp=1.0 + i * 0.1) is False

        assert triggered == []
        assert len(trigger.recent_magnitudes) == before

    def test_stop_listening_clears_buffers(self, trigger):
        trigger.stop_listening()
        assert len(trigger.recent_magnitudes) == 0
        assert trigger.handle_event(0.0, 0.0, SPIKE, timestamp=2.0) is False

    def test_shake_fires_even_when_gate_active(self, scheduler, gate, triggered):
        trig = ManualTrigger(triggered.append, scheduler, gate=gate, required_peaks=1)
        trig.start_listening()
        gate.start_confirmation()

        trig.handle_event(0.0, 0.0, REST, timestamp=0.0)
        trig.handle_event(0.0, 0.0, SPIKE, timestamp=0.1)

        assert triggered == ["shake"]

    def test_callback_failure_is_contained(self, scheduler):
        def broken(method):
            raise RuntimeError("handler failed")

        trig = ManualTrigger(broken, scheduler, required_peaks=1)
        trig.start_listening()
        trig.handle_event(0.0, 0.0, REST, timestamp=0.0)
        assert trig.handle_event(0.0, 0.0, SPIKE, timestamp=0.1) is True


class TestLongPress:
    """Test cases for the long-press path."""

    def test_fire_trigger(self, trigger, triggered):
        trigger.fire_trigger()
        assert triggered == ["long_press"]

    def test_hold_fires_after_duration(self, scheduler, trigger, triggered):
        trigger.start_hold()
        assert trigger.is_holding

        scheduler.advance(4.9)
        assert triggered == []

        scheduler.advance(0.2)
        assert triggered == ["long_press"]
        assert not trigger.is_holding

    def test_released_hold_does_not_fire(self, scheduler, trigger, triggered):
        trigger.start_hold()
        scheduler.advance(3.0)
        trigger.cancel_hold()
        scheduler.advance(5.0)

        assert triggered == []

    def test_repeated_start_hold_keeps_first_timer(self, scheduler, trigger, triggered):
        trigger.start_hold()
        scheduler.advance(3.0)
        trigger.start_hold()
        scheduler.advance(2.0)

        assert triggered == ["long_press"]
