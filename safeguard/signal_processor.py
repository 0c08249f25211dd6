"""
Signal processing for accelerometer input.
Turns raw (x, y, z) triples into a gravity-compensated, smoothed magnitude.
"""

import logging
import numpy as np

from .events import Listeners, MotionSample
from .config import (
    STANDARD_GRAVITY, SENSOR_SAMPLE_MS, SENSOR_LOW_PASS_ALPHA,
    SENSOR_CALLBACK_INTERVAL_MS
)

logger = logging.getLogger(__name__)


class SignalProcessor:
    """
    Rate-limited magnitude pipeline feeding the fall detector and countdown

    Samples arriving less than sample_ms after the last processed sample are
    dropped, not queued. Every processed sample reaches the magnitude
    listeners; the optional on_sample observer is throttled separately.
    """

    def __init__(self, scheduler, sample_ms=SENSOR_SAMPLE_MS,
                 low_pass_alpha=SENSOR_LOW_PASS_ALPHA,
                 sample_callback_interval_ms=SENSOR_CALLBACK_INTERVAL_MS,
                 on_sample=None):
        if sample_ms <= 0:
            raise ValueError("sample_ms must be > 0")
        if not 0.0 <= low_pass_alpha <= 1.0:
            raise ValueError("low_pass_alpha must be within [0, 1]")
        if sample_callback_interval_ms < 0:
            raise ValueError("sample_callback_interval_ms must be >= 0")

        self.scheduler = scheduler
        self.sample_ms = sample_ms
        self.low_pass_alpha = low_pass_alpha
        self.sample_callback_interval_ms = sample_callback_interval_ms
        self.on_sample = on_sample

        self.magnitude_listeners = Listeners("magnitude")

        self.is_running = False
        self._last_sample_time = None
        self._smoothed_magnitude = None
        self._last_callback_time = None

    @property
    def last_magnitude(self):
        return self._smoothed_magnitude

    def add_listener(self, callback):
        """
        Register callback(MotionSample) for every processed sample
        """
        return self.magnitude_listeners.add(callback)

    def start(self):
        if self.is_running:
            return
        self._reset()
        self.is_running = True
        logger.info(
            f"Signal processor started (sample_ms={self.sample_ms}, "
            f"alpha={self.low_pass_alpha}, callback_ms={self.sample_callback_interval_ms})"
        )

    def stop(self):
        if not self.is_running:
            return
        self.is_running = False
        self._reset()
        logger.info("Signal processor stopped")

    def dispose(self):
        self.stop()
        self._reset()
        self.magnitude_listeners.clear()
        self.on_sample = None

    def _reset(self):
        self._last_sample_time = None
        self._smoothed_magnitude = None
        self._last_callback_time = None

    def handle_event(self, x, y, z, timestamp=None):
        """
        Process one accelerometer reading (m/s^2).
        Returns the emitted MotionSample, or None if the reading was dropped.
        """
        if not self.is_running:
            return None

        now = self.scheduler.now() if timestamp is None else timestamp

        if self._last_sample_time is not None:
            elapsed_ms = (now - self._last_sample_time) * 1000
            if elapsed_ms < self.sample_ms:
                return None
        self._last_sample_time = now

        raw = float(np.sqrt(x * x + y * y + z * z))
        without_gravity = max(0.0, raw - STANDARD_GRAVITY)

        if self._smoothed_magnitude is None or self.low_pass_alpha >= 1.0:
            smoothed = without_gravity
        else:
            smoothed = (self.low_pass_alpha * self._smoothed_magnitude
                        + (1 - self.low_pass_alpha) * without_gravity)
        self._smoothed_magnitude = smoothed

        sample = MotionSample(magnitude=smoothed, timestamp=now)

        if self.on_sample is not None and self._should_call_observer(now):
            self._last_callback_time = now
            try:
                self.on_sample(sample)
            except Exception as e:
                logger.warning(f"on_sample observer error: {e}")

        self.magnitude_listeners.publish(sample)
        return sample

    def _should_call_observer(self, now):
        if self._last_callback_time is None:
            return True
        elapsed_ms = (now - self._last_callback_time) * 1000
        return elapsed_ms >= self.sample_callback_interval_ms
