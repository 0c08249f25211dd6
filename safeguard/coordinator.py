"""
Correlation and escalation of fall and scream detections.

Fixed rules:
- fall + scream within the correlation window -> core emergency, immediate confirmation
- two or more screams within the window         -> immediate confirmation
- a single fall or scream                       -> inactivity countdown first
Manual triggers skip the countdown but still respect the gate.
"""

import logging
from enum import Enum
from typing import Optional

from .events import AlertKind, AlertTrigger
from .config import CORRELATION_WINDOW_SECONDS

logger = logging.getLogger(__name__)


class Escalation(str, Enum):
    """What the coordinator decided for one detection."""
    IGNORED = "ignored"
    COUNTDOWN = "countdown"
    CORE_EMERGENCY = "core_emergency"
    MULTIPLE_SCREAMS = "multiple_screams"
    IMMEDIATE = "immediate"


class CorrelationCoordinator:
    """
    Owns the correlation state and decides which detection may start a flow

    Args:
        countdown: InactivityCountdown
        confirmation: ConfirmationFlow (manual triggers)
        gate: ConfirmationGate
        scheduler: LoopScheduler
        on_send_alert: called when an immediate confirmation cannot be shown
    """

    def __init__(self, countdown, confirmation, gate, scheduler,
                 on_send_alert=None, correlation_window=CORRELATION_WINDOW_SECONDS):
        self.countdown = countdown
        self.confirmation = confirmation
        self.gate = gate
        self.scheduler = scheduler
        self.on_send_alert = on_send_alert
        self.correlation_window = correlation_window

        self.last_fall_time: Optional[float] = None
        self._scream_times = []
        self.has_scheduled_window = False
        self._escalation_pending = False

    @property
    def recent_scream_times(self):
        self._prune_screams(self.scheduler.now())
        return list(self._scream_times)

    def _confirming(self):
        return self._escalation_pending or self.gate.is_active() or self.countdown.is_confirming

    def _window_scheduled(self):
        return self.has_scheduled_window or self.countdown.has_active_window_or_confirmation

    def _prune_screams(self, now):
        self._scream_times = [t for t in self._scream_times if now - t <= self.correlation_window]

    def on_fall_detected(self, baseline_magnitude=0.0, timestamp=None):
        now = self.scheduler.now() if timestamp is None else timestamp
        logger.info(f"Fall reported to coordinator (t={now:.2f})")
        self.last_fall_time = now

        if self._confirming():
            logger.info("Fall ignored: confirmation/cooldown already active")
            return Escalation.IGNORED

        self._prune_screams(now)
        if self._scream_times and abs(now - self._scream_times[-1]) <= self.correlation_window:
            logger.warning("Core emergency: fall + recent scream")
            return self._escalate("Core emergency (fall + scream)", AlertKind.FALL,
                                  Escalation.CORE_EMERGENCY)

        if self._window_scheduled():
            logger.info("Fall ignored: countdown already scheduled")
            return Escalation.IGNORED

        return self._start_countdown("Fall detected", baseline_magnitude, AlertKind.FALL)

    def on_scream_detected(self, baseline_magnitude=0.0, timestamp=None):
        now = self.scheduler.now() if timestamp is None else timestamp
        logger.info(f"Scream reported to coordinator (t={now:.2f})")
        self._scream_times.append(now)
        self._prune_screams(now)

        if self._confirming():
            logger.info("Scream ignored: confirmation/cooldown already active")
            return Escalation.IGNORED

        if self.last_fall_time is not None and abs(now - self.last_fall_time) <= self.correlation_window:
            logger.warning("Core emergency: scream + recent fall")
            return self._escalate("Core emergency (fall + scream)", AlertKind.SCREAM,
                                  Escalation.CORE_EMERGENCY)

        if len(self._scream_times) >= 2:
            logger.warning("Multiple screams within correlation window")
            return self._escalate("Multiple screams detected", AlertKind.SCREAM,
                                  Escalation.MULTIPLE_SCREAMS)

        if self._window_scheduled():
            logger.info("Scream ignored: countdown already scheduled")
            return Escalation.IGNORED

        return self._start_countdown("Single scream detected", baseline_magnitude, AlertKind.SCREAM)

    def _escalate(self, title, kind, escalation):
        # An escalation supersedes a countdown started by the first signal
        if self._window_scheduled():
            self.cancel_all()
        self._schedule_immediate_confirmation(title, kind)
        return escalation

    def on_manual_trigger(self, method):
        """
        Manual triggers ("shake", "long_press") go straight to confirmation
        """
        if self.gate.is_active():
            logger.info(f"Manual trigger ({method}) ignored: confirmation already active")
            return Escalation.IGNORED
        self.scheduler.spawn(self._show_manual(method))
        return Escalation.IMMEDIATE

    async def _show_manual(self, method):
        try:
            alert = AlertTrigger.manual(method)
            await self.confirmation.show(alert_type=alert.kind.value, trigger=alert.origin.value)
        except Exception as e:
            logger.error(f"Error showing manual confirmation: {e}")

    def _start_countdown(self, reason, baseline_magnitude, kind):
        self.has_scheduled_window = True
        try:
            started = self.countdown.start(
                reason=reason,
                baseline_magnitude=baseline_magnitude,
                on_complete=self._on_window_complete,
            )
        except Exception as e:
            logger.error(f"Failed to start countdown for {kind.value}: {e}; scheduling immediate confirmation")
            self.has_scheduled_window = False
            self._schedule_immediate_confirmation("Possible Danger Detected...", kind)
            return Escalation.IMMEDIATE

        if not started:
            self.has_scheduled_window = False
            return Escalation.IGNORED

        logger.info(f"Countdown scheduled for {kind.value}")
        return Escalation.COUNTDOWN

    def _on_window_complete(self):
        self.has_scheduled_window = False
        logger.debug("Countdown window completed, scheduling flag cleared")

    def _schedule_immediate_confirmation(self, title, kind):
        self._escalation_pending = True
        self.scheduler.spawn(self._immediate_confirmation(title, kind))

    async def _immediate_confirmation(self, title, kind):
        try:
            return await self._show_immediate(title, kind)
        finally:
            self._escalation_pending = False

    async def _show_immediate(self, title, kind):
        if self.gate.is_active() or self.countdown.has_active_window_or_confirmation:
            logger.info("Immediate confirmation suppressed: gate/window active")
            return None
        alert = AlertTrigger.auto(kind)
        try:
            return await self.countdown.show_immediate_confirmation(
                title, alert_type=alert.kind.value, trigger=alert.origin.value
            )
        except Exception as e:
            logger.error(f"Error showing immediate confirmation: {e}")
            if self.on_send_alert is not None:
                try:
                    self.on_send_alert()
                except Exception as e2:
                    logger.error(f"on_send_alert fallback failed: {e2}")
            return None

    def cancel_all(self):
        """
        Cancel the pending countdown and clear the scheduling flag.
        The gate keeps its own lifecycle.
        """
        logger.info("Cancelling pending countdown and clearing scheduled flag")
        try:
            self.countdown.cancel("cancel_all called")
        except Exception as e:
            logger.error(f"Error cancelling countdown: {e}")
        self.has_scheduled_window = False

    def notify_confirmation_hidden(self):
        self.has_scheduled_window = False
