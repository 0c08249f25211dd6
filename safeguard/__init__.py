"""
SafeGuard personal-safety alerting engine

Turns accelerometer and microphone streams into at most one human
confirmation at a time, and records the outcome.

Components:
- Signal processing of 3-axis acceleration (gravity removed, smoothed)
- Fall detection (impact spike followed by stillness)
- Scream detection (loudness prefilter with optional TFLite confirmation)
- Manual triggers (shake, long press)
- Inactivity countdown, correlation coordinator and confirmation gate
"""

from .config import *
from .gate import ConfirmationGate
from .signal_processor import SignalProcessor
from .fall_detector import FallDetector
from .scream_detector import ScreamDetector
from .manual_trigger import ManualTrigger
from .countdown import InactivityCountdown
from .coordinator import CorrelationCoordinator, Escalation
from .confirmation import ConfirmationFlow, ConsolePrompt
from .main import SafeguardApp

__version__ = "1.0.0"
