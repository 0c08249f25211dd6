"""
Human confirmation flow shared by every alert path.

The flow owns the gate transitions: it marks the gate visible, awaits the
prompt, and always ends with a cooldown. The outcome is logged to the alert
sink in the background so a slow or failing sink never delays the decision.
"""

import asyncio
import logging
from typing import Optional

from .events import ConfirmationOutcome, Listeners
from .config import CONFIRMATION_SECONDS

logger = logging.getLogger(__name__)


class ConfirmationFlow:
    """
    Runs one time-boxed confirmation at a time

    Args:
        gate: ConfirmationGate shared with every detector
        prompt: async prompt(seconds, alert_type, trigger) -> "send" | "cancelled" | None
        scheduler: LoopScheduler used for the background sink write
        sink: object with async record(type, trigger, outcome, extra), or None
    """

    def __init__(self, gate, prompt, scheduler, sink=None, seconds=CONFIRMATION_SECONDS):
        self.gate = gate
        self.prompt = prompt
        self.scheduler = scheduler
        self.sink = sink
        self.seconds = seconds
        self.outcome_listeners = Listeners("confirmation outcome")

    async def show(self, seconds=None, alert_type="manual", trigger="manual",
                   extra=None) -> Optional[ConfirmationOutcome]:
        """
        Present the confirmation prompt.
        Returns the outcome, or None when suppressed by the gate.
        Prompt failures propagate after the gate has been released.
        """
        if self.gate.is_active():
            logger.info(f"Confirmation for {alert_type} suppressed: gate/cooldown active")
            return None

        seconds = self.seconds if seconds is None else seconds
        self.gate.start_confirmation()
        try:
            response = await self.prompt(seconds, alert_type, trigger)
        finally:
            self.gate.end_confirmation_and_start_cooldown()

        outcome = ConfirmationOutcome.from_response(response)
        logger.warning(f"Confirmation finished: {alert_type} ({trigger}) -> {outcome.value}")

        if self.sink is not None:
            self.scheduler.spawn(self._record(alert_type, trigger, outcome, extra))

        self.outcome_listeners.publish(alert_type, trigger, outcome)
        return outcome

    async def _record(self, alert_type, trigger, outcome, extra):
        try:
            await self.sink.record(alert_type, trigger, outcome.value, extra or {})
        except Exception as e:
            logger.error(f"Alert record write failed: {e}")


class ConsolePrompt:
    """
    Headless confirmation prompt.

    Logs the countdown and waits for respond("send" | "cancelled"); returns
    None when nobody answers in time.
    """

    def __init__(self):
        self._pending = None

    @property
    def is_pending(self):
        return self._pending is not None and not self._pending.done()

    async def __call__(self, seconds, alert_type, trigger):
        loop = asyncio.get_running_loop()
        self._pending = loop.create_future()
        print(f"\n*** POSSIBLE DANGER DETECTED: {alert_type.upper()} ({trigger}) ***")
        print(f"    Sending in {seconds}s unless cancelled\n")
        try:
            return await asyncio.wait_for(self._pending, timeout=seconds)
        except asyncio.TimeoutError:
            logger.info("Confirmation prompt timed out")
            return None
        finally:
            self._pending = None

    def respond(self, response):
        if self.is_pending:
            self._pending.set_result(response)
            return True
        return False
