"""
Event types exchanged between detectors, the coordinator and the alert sink
"""

import logging
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MotionSample:
    """Smoothed, gravity-compensated acceleration magnitude (m/s^2)."""
    magnitude: float
    timestamp: float


@dataclass(frozen=True)
class ImpactEvent:
    """Impact spike seen by the fall detector, before inactivity confirms it."""
    timestamp: float
    peak_magnitude: float


@dataclass(frozen=True)
class ScreamCandidate:
    """Loudness prefilter hit, emitted before any model confirmation."""
    timestamp: float
    decibel: float


@dataclass(frozen=True)
class ScreamEvent:
    """
    Confirmed scream.

    ``score`` has two meanings depending on how the scream was confirmed:
    a model confidence in [0, 1] when the scorer confirmed it, or the raw
    loudness in dB when the detector fell back to the prefilter alone
    (no scorer configured, empty capture, or a scorer failure).
    ``model_confirmed`` tells the two apart.
    """
    timestamp: float
    score: float
    model_confirmed: bool = False


class AlertKind(str, Enum):
    FALL = "fall"
    SCREAM = "scream"
    INACTIVITY = "inactivity"
    LONG_PRESS = "long_press"
    SHAKE = "shake"


class TriggerOrigin(str, Enum):
    AUTO = "auto"
    MANUAL = "manual"


@dataclass(frozen=True)
class AlertTrigger:
    kind: AlertKind
    origin: TriggerOrigin

    @classmethod
    def auto(cls, kind):
        return cls(AlertKind(kind), TriggerOrigin.AUTO)

    @classmethod
    def manual(cls, kind):
        return cls(AlertKind(kind), TriggerOrigin.MANUAL)


class ConfirmationOutcome(str, Enum):
    SENT = "sent"
    CANCELLED = "cancelled"
    TIMEOUT = "timeout"

    @classmethod
    def from_response(cls, response):
        """
        Map a prompt response ("send", "cancelled", anything else) to an outcome
        """
        if response == "send":
            return cls.SENT
        if response == "cancelled":
            return cls.CANCELLED
        return cls.TIMEOUT


class Listeners:
    """
    Observer registry. Each callback is invoked on its own, so one failing
    listener never aborts the publisher or the remaining listeners.
    """

    def __init__(self, name):
        self.name = name
        self._callbacks = []

    def add(self, callback):
        self._callbacks.append(callback)
        return callback

    def remove(self, callback):
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def clear(self):
        self._callbacks.clear()

    def __len__(self):
        return len(self._callbacks)

    def publish(self, *args):
        for callback in list(self._callbacks):
            try:
                callback(*args)
            except Exception as e:
                logger.error(f"{self.name} listener error: {e}")
