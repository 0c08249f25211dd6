"""
Global confirmation gate: at most one confirmation flow at a time, followed by
a cooldown during which no new flow may start.
"""

import time
import logging
from typing import Optional

from .config import GATE_COOLDOWN_SECONDS

logger = logging.getLogger(__name__)


class ConfirmationGate:
    """
    Advisory lock consulted before starting any countdown or confirmation.

    One instance is created by the application and shared by reference; only
    the confirmation flow calls start/end. Everyone else reads is_active().
    The cooldown is a time predicate, not a live timer, so nothing needs to be
    cancelled.
    """

    def __init__(self, cooldown: float = GATE_COOLDOWN_SECONDS, clock=time.monotonic):
        self._clock = clock
        self._visible = False
        self._cooldown_until: Optional[float] = None
        self._cooldown_duration = cooldown

    @property
    def visible(self) -> bool:
        return self._visible

    @property
    def cooldown_until(self) -> Optional[float]:
        return self._cooldown_until

    @property
    def cooldown_duration(self) -> float:
        return self._cooldown_duration

    def is_active(self) -> bool:
        if self._visible:
            return True
        if self._cooldown_until is None:
            return False
        return self._clock() < self._cooldown_until

    def start_confirmation(self):
        self._visible = True
        self._cooldown_until = None
        logger.info("Global confirmation: START (visible=true)")

    def end_confirmation_and_start_cooldown(self, cooldown: Optional[float] = None):
        self._visible = False
        duration = self._cooldown_duration if cooldown is None else cooldown
        self._cooldown_until = self._clock() + duration
        logger.info(f"Global confirmation: END -> cooldown for {duration:.1f}s")

    def set_cooldown_duration(self, cooldown: float):
        if cooldown < 0:
            raise ValueError("cooldown must be >= 0")
        self._cooldown_duration = cooldown
        logger.info(f"Global confirmation: cooldown duration set to {cooldown:.1f}s")
