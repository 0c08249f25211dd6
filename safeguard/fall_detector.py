"""
Fall detection over the smoothed magnitude stream.

A fall is an impact spike (default 2 g) followed by sustained inactivity
(below 0.3 g for 8 s). Confirmed falls are debounced by a minimum spacing.
"""

import time
import logging
import datetime
from typing import Optional

from .events import Listeners, ImpactEvent
from .config import (
    FALL_IMPACT_THRESHOLD, FALL_INACTIVITY_THRESHOLD,
    FALL_INACTIVITY_WINDOW_SECONDS, FALL_MIN_SECONDS_BETWEEN_FALLS,
    FALL_DEBUG_INTERVAL_MS
)

logger = logging.getLogger(__name__)


class FallDetector:
    """
    Two-state machine: idle, or awaiting inactivity after an impact.

    Listeners:
        impact_listeners(ImpactEvent) - every impact spike, including peak updates
        fall_listeners(timestamp)     - confirmed fall, stamped at the first impact
    """

    def __init__(self, scheduler, impact_threshold=FALL_IMPACT_THRESHOLD,
                 inactivity_threshold=FALL_INACTIVITY_THRESHOLD,
                 inactivity_window=FALL_INACTIVITY_WINDOW_SECONDS,
                 min_time_between_falls=FALL_MIN_SECONDS_BETWEEN_FALLS,
                 debug_interval_ms=FALL_DEBUG_INTERVAL_MS):
        if inactivity_threshold >= impact_threshold:
            raise ValueError("inactivity_threshold must be below impact_threshold")

        self.scheduler = scheduler
        self.impact_threshold = impact_threshold
        self.inactivity_threshold = inactivity_threshold
        self.inactivity_window = inactivity_window
        self.min_time_between_falls = min_time_between_falls
        self.debug_interval_ms = debug_interval_ms

        self.impact_listeners = Listeners("impact")
        self.fall_listeners = Listeners("fall")

        self._enabled = False
        self._awaiting_inactivity = False
        self._inactivity_timer = None
        self._impact_started_at: Optional[float] = None
        self._last_impact_time: Optional[float] = None
        self._last_impact_peak = 0.0
        self._last_fall_time: Optional[float] = None
        self._last_debug_time = None

    @property
    def is_enabled(self):
        return self._enabled

    @property
    def is_awaiting_inactivity(self):
        return self._awaiting_inactivity

    @property
    def last_fall_time(self):
        return self._last_fall_time

    def enable(self):
        self._enabled = True
        logger.info("Fall detector enabled")

    def disable(self):
        """
        Stop processing samples and cancel any pending confirmation
        """
        self._enabled = False
        self._cancel_inactivity_wait()
        logger.info("Fall detector disabled")

    def reset(self):
        self._cancel_inactivity_wait()
        self._last_fall_time = None
        logger.info("Fall detector reset")

    def dispose(self):
        self._cancel_inactivity_wait()
        self.impact_listeners.clear()
        self.fall_listeners.clear()

    def handle_sample(self, sample):
        """Listener entry point for SignalProcessor.add_listener."""
        self.add_sample(sample.magnitude, sample.timestamp)

    def add_sample(self, magnitude, timestamp):
        if not self._enabled:
            return

        # Debounce: nothing is processed shortly after a reported fall
        if (self._last_fall_time is not None
                and abs(timestamp - self._last_fall_time) < self.min_time_between_falls):
            self._debug_throttled(
                f"Ignored sample: in cooldown ({timestamp - self._last_fall_time:.1f}s since last fall)"
            )
            return

        if self._awaiting_inactivity:
            if magnitude >= self.impact_threshold:
                # Second strong spike restarts the confirmation clock
                self._register_impact(magnitude, timestamp)
                logger.info(f"Impact update while awaiting inactivity: peak={self._last_impact_peak:.2f}")
                self._start_inactivity_wait()
            elif magnitude > self.inactivity_threshold:
                logger.info(f"Motion resumed (m={magnitude:.2f}), cancelling fall confirmation")
                self._cancel_inactivity_wait()
            else:
                self._debug_throttled(f"Still inactive (m={magnitude:.2f})")
            return

        if magnitude >= self.impact_threshold:
            self._impact_started_at = timestamp
            self._register_impact(magnitude, timestamp)
            logger.info(f"Impact detected: peak={self._last_impact_peak:.2f} m/s^2")
            self._start_inactivity_wait()
        else:
            self._debug_throttled(f"Sample below impact threshold (m={magnitude:.2f})")

    def _register_impact(self, magnitude, timestamp):
        self._last_impact_peak = max(self._last_impact_peak, magnitude)
        self._last_impact_time = timestamp
        self.impact_listeners.publish(
            ImpactEvent(timestamp=timestamp, peak_magnitude=self._last_impact_peak)
        )

    def _start_inactivity_wait(self):
        self._awaiting_inactivity = True
        if self._inactivity_timer is not None:
            self._inactivity_timer.cancel()
        # Relative to arrival on the loop; sample timestamps may use another clock
        self._inactivity_timer = self.scheduler.call_later(self.inactivity_window, self._on_inactivity_elapsed)
        logger.debug(f"Started inactivity timer ({self.inactivity_window:.1f}s)")

    def _cancel_inactivity_wait(self):
        if self._inactivity_timer is not None:
            self._inactivity_timer.cancel()
        self._inactivity_timer = None
        self._awaiting_inactivity = False
        self._last_impact_peak = 0.0
        self._last_impact_time = None
        self._impact_started_at = None

    def _on_inactivity_elapsed(self):
        self._inactivity_timer = None
        if not self._enabled or not self._awaiting_inactivity:
            return
        fall_time = self._impact_started_at
        self._awaiting_inactivity = False
        self._last_impact_peak = 0.0
        self._last_impact_time = None
        self._impact_started_at = None
        self._report_fall(fall_time)

    def _report_fall(self, at):
        self._last_fall_time = at
        friendly = datetime.datetime.now().strftime("%Y-%m-%d %a %I:%M%p")
        logger.warning(f"[confirmed] Confirmed fall at {friendly} (t={at:.2f})")
        self._last_debug_time = time.monotonic()
        self.fall_listeners.publish(at)

    def _debug_throttled(self, message):
        """
        Per-sample chatter, emitted at most once per debug_interval_ms
        """
        if not logger.isEnabledFor(logging.DEBUG):
            return
        now = time.monotonic()
        if (self.debug_interval_ms > 0 and self._last_debug_time is not None
                and (now - self._last_debug_time) * 1000 < self.debug_interval_ms):
            return
        self._last_debug_time = now
        logger.debug(message)
