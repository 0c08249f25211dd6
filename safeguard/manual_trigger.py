"""
Manual distress triggers: vigorous shake or a completed long press
"""

import logging
from collections import deque

import numpy as np

from .events import AlertKind
from .config import (
    SHAKE_THRESHOLD, SHAKE_REQUIRED_PEAKS, SHAKE_WINDOW_SECONDS,
    SHAKE_BUFFER_SIZE, LONG_PRESS_HOLD_SECONDS
)

logger = logging.getLogger(__name__)


class ManualTrigger:
    """
    Debounces raw accelerometer peaks into a shake, and fires long presses

    on_triggered(method) is called with "shake" or "long_press".
    """

    def __init__(self, on_triggered, scheduler, gate=None,
                 threshold=SHAKE_THRESHOLD, required_peaks=SHAKE_REQUIRED_PEAKS,
                 window=SHAKE_WINDOW_SECONDS, buffer_size=SHAKE_BUFFER_SIZE,
                 hold_duration=LONG_PRESS_HOLD_SECONDS):
        self.on_triggered = on_triggered
        self.scheduler = scheduler
        self.gate = gate
        self.threshold = threshold
        self.required_peaks = required_peaks
        self.window = window
        self.hold_duration = hold_duration

        self.recent_magnitudes = deque(maxlen=buffer_size)
        self.recent_peaks = []

        self.is_listening = False
        self._shake_enabled = True
        self._hold_timer = None

    @property
    def is_shake_enabled(self):
        return self._shake_enabled

    @property
    def is_holding(self):
        return self._hold_timer is not None

    def set_shake_enabled(self, enabled):
        self._shake_enabled = bool(enabled)
        logger.info(f"Shake detection {'ENABLED' if enabled else 'DISABLED'}")

    def start_listening(self):
        self.is_listening = True

    def stop_listening(self):
        self.is_listening = False
        self.recent_magnitudes.clear()
        self.recent_peaks.clear()

    def dispose(self):
        self.stop_listening()
        self.cancel_hold()

    def handle_event(self, x, y, z, timestamp=None):
        """
        Feed one raw accelerometer reading (m/s^2, gravity included).
        Returns True if this reading completed a shake.
        """
        if not self.is_listening or not self._shake_enabled:
            return False

        now = self.scheduler.now() if timestamp is None else timestamp
        magnitude = float(np.sqrt(x * x + y * y + z * z))

        self.recent_magnitudes.append(magnitude)
        baseline = float(np.mean(self.recent_magnitudes))
        delta = abs(magnitude - baseline)

        if delta < self.threshold:
            return False

        self.recent_peaks.append(now)
        self.recent_peaks = [t for t in self.recent_peaks if now - t <= self.window]
        logger.debug(f"Shake peak (delta={delta:.2f}), peaks={len(self.recent_peaks)}")

        if len(self.recent_peaks) < self.required_peaks:
            return False

        logger.info(f"Shake confirmed ({len(self.recent_peaks)} peaks) -> triggering")
        if self.gate is not None and self.gate.is_active():
            logger.info("Shake confirmed while confirmation gate active")
        self.recent_peaks.clear()
        self._notify(AlertKind.SHAKE.value)
        return True

    def fire_trigger(self):
        """
        Fire a long-press trigger unconditionally.
        Gate arbitration is left to the caller.
        """
        self._hold_timer = None
        logger.info("Long press completed -> triggering")
        self._notify(AlertKind.LONG_PRESS.value)

    def start_hold(self):
        """Begin a long press; fires after hold_duration unless cancel_hold() is called."""
        if self._hold_timer is not None:
            return
        logger.info(f"Hold started (fires in {self.hold_duration:.0f}s unless released)")
        self._hold_timer = self.scheduler.call_later(self.hold_duration, self.fire_trigger)

    def cancel_hold(self):
        if self._hold_timer is None:
            return
        self._hold_timer.cancel()
        self._hold_timer = None
        logger.info("Hold released before completion")

    def _notify(self, method):
        try:
            self.on_triggered(method)
        except Exception as e:
            logger.error(f"on_triggered callback error: {e}")
