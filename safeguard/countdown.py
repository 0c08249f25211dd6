"""
Inactivity countdown in front of the confirmation prompt.

After an automatic detection the user gets a grace period: any fresh movement
cancels the pending alert. Only if they stay still does the confirmation
prompt appear.
"""

import logging

from .events import AlertKind, AlertTrigger, TriggerOrigin
from .config import (
    MOVEMENT_THRESHOLD, INACTIVITY_DURATION_SECONDS, CONFIRMATION_SECONDS
)

logger = logging.getLogger(__name__)


class InactivityCountdown:
    """
    Single pending countdown, gated by the global confirmation gate
    """

    def __init__(self, gate, confirmation, scheduler,
                 movement_threshold=MOVEMENT_THRESHOLD,
                 inactivity_duration=INACTIVITY_DURATION_SECONDS,
                 confirmation_duration=CONFIRMATION_SECONDS):
        self.gate = gate
        self.confirmation = confirmation
        self.scheduler = scheduler
        self.movement_threshold = movement_threshold
        self.inactivity_duration = inactivity_duration
        self.confirmation_duration = confirmation_duration

        self.reason = None
        self._enabled = True
        self._timer = None
        self._in_window = False
        self._flow_running = False
        self._baseline = 0.0
        self._on_complete = None

    @property
    def is_enabled(self):
        return self._enabled

    @property
    def is_pending(self):
        return self._in_window

    @property
    def is_confirming(self):
        return self._flow_running

    @property
    def has_active_window_or_confirmation(self):
        return self._in_window or self._flow_running or self.gate.is_active()

    def enable(self):
        self._enabled = True
        logger.info("Inactivity countdown enabled")

    def disable(self):
        self._enabled = False
        self.cancel("countdown disabled")
        logger.info("Inactivity countdown disabled and timers cancelled")

    def dispose(self):
        self.cancel("disposed")

    def start(self, reason, baseline_magnitude, on_complete=None):
        """
        Arm the countdown. Returns False when ignored (disabled, gate active or
        a countdown already pending).

        on_complete runs exactly once when this window ends: after the
        confirmation flow resolves, when the gate suppressed it at expiry,
        or when the window is cancelled.
        """
        if not self._enabled:
            logger.info("Countdown start ignored: countdown disabled")
            return False

        if self.has_active_window_or_confirmation:
            logger.info("Countdown start ignored: window/confirmation/cooldown already active")
            return False

        self._in_window = True
        self.reason = reason
        self._baseline = baseline_magnitude
        self._on_complete = on_complete
        self._timer = self.scheduler.call_later(self.inactivity_duration, self._on_elapsed)
        logger.info(f"Countdown started: reason={reason} baseline={baseline_magnitude:.3f}")
        return True

    def cancel(self, reason):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        was_pending = self._in_window
        self._in_window = False
        if was_pending:
            logger.info(f"Countdown cancelled: {reason}")
        self._complete()

    def handle_sample(self, sample):
        """Listener entry point for SignalProcessor.add_listener."""
        self.handle_magnitude(sample.magnitude)

    def handle_magnitude(self, magnitude):
        if not self._in_window:
            return
        delta = abs(magnitude - self._baseline)
        if delta > self.movement_threshold:
            self.cancel(f"movement detected (delta={delta:.3f})")

    def _on_elapsed(self):
        self._timer = None
        self._in_window = False
        logger.info("Inactivity duration elapsed -> showing confirmation")

        if self.gate.is_active():
            logger.info("Confirmation suppressed: global gate active")
            self._complete()
            return

        self._flow_running = True
        self.scheduler.spawn(self._run_confirmation())

    async def _run_confirmation(self):
        alert = AlertTrigger.auto(AlertKind.INACTIVITY)
        try:
            await self.confirmation.show(
                seconds=self.confirmation_duration,
                alert_type=alert.kind.value,
                trigger=alert.origin.value,
                extra={"reason": self.reason},
            )
        except Exception as e:
            logger.error(f"Error running confirmation flow: {e}")
        finally:
            self._flow_running = False
            self._complete()

    def _complete(self):
        callback, self._on_complete = self._on_complete, None
        if callback is None:
            return
        try:
            callback()
        except Exception as e:
            logger.warning(f"Countdown on_complete callback error: {e}")

    async def show_immediate_confirmation(self, title, alert_type=AlertKind.INACTIVITY.value,
                                          trigger=TriggerOrigin.AUTO.value):
        """
        Skip the countdown (escalated emergencies, manual triggers).
        Returns the outcome, or None when suppressed. Prompt errors propagate.
        """
        if not self._enabled:
            logger.info("Immediate confirmation ignored: countdown disabled")
            return None

        if self.has_active_window_or_confirmation:
            logger.info("Immediate confirmation suppressed: active window/confirmation present")
            return None

        logger.info(f"Immediate confirmation: {title}")
        return await self.confirmation.show(
            seconds=self.confirmation_duration,
            alert_type=alert_type,
            trigger=trigger,
            extra={"reason": title},
        )
