"""
Scream detection: loudness prefilter with optional model confirmation.

Stage 1 compares every loudness reading against a dB threshold.
Stage 2, when a scorer and a PCM capture are configured, scores a captured
buffer and requires consecutive confirmations. If the model path fails the
detector falls back to the prefilter result so the alert is never lost.
"""

import asyncio
import logging
from collections import deque

from .events import Listeners, ScreamCandidate, ScreamEvent
from .config import (
    SCREAM_TRIGGER_DB, SCREAM_SAMPLE_PERIOD_MS, SCREAM_MODEL_THRESHOLD,
    SCREAM_CONSECUTIVE_REQUIRED, SCREAM_COOLDOWN_MS, SCREAM_HISTORY_SIZE
)

logger = logging.getLogger(__name__)


class ScreamDetector:
    """
    Two-stage scream pipeline driven by a loudness meter

    Args:
        scheduler: LoopScheduler (time + background tasks)
        level_meter: object with listen(callback) / cancel(); callback(db, timestamp)
        scorer: object with async score(pcm) -> float in [0, 1], or None
        capture_pcm: coroutine function returning int16 PCM or None
    """

    def __init__(self, scheduler, level_meter=None, scorer=None, capture_pcm=None,
                 trigger_db=SCREAM_TRIGGER_DB,
                 sample_period_ms=SCREAM_SAMPLE_PERIOD_MS,
                 model_threshold=SCREAM_MODEL_THRESHOLD,
                 consecutive_required=SCREAM_CONSECUTIVE_REQUIRED,
                 cooldown_ms=SCREAM_COOLDOWN_MS):
        if consecutive_required < 1:
            raise ValueError("consecutive_required must be >= 1")

        self.scheduler = scheduler
        self.level_meter = level_meter
        self.scorer = scorer
        self.capture_pcm = capture_pcm

        self.trigger_db = trigger_db
        self.sample_period_ms = sample_period_ms
        self.model_threshold = model_threshold
        self.consecutive_required = consecutive_required
        self.cooldown_ms = cooldown_ms

        self.scream_listeners = Listeners("scream")
        self.candidate_listeners = Listeners("scream candidate")

        self.recent_readings = deque(maxlen=SCREAM_HISTORY_SIZE)
        self.consecutive_count = 0
        self.is_running = False

        self._enabled = False
        self._confirming = False
        self._confirm_task = None
        self._last_confirmed_at = None

    @property
    def is_enabled(self):
        return self._enabled

    @property
    def is_confirming(self):
        return self._confirming

    @property
    def uses_model(self):
        return self.scorer is not None and self.capture_pcm is not None

    def enable(self):
        if self._enabled:
            return
        self.start()

    def disable(self):
        if not self._enabled:
            return
        self._enabled = False
        self.stop()

    def start(self):
        """
        Start listening to loudness readings. Meter failures propagate.
        """
        self._enabled = True
        if self.is_running:
            return
        if self.level_meter is not None:
            try:
                self.level_meter.listen(self.handle_reading)
            except Exception:
                self._enabled = False
                raise
        self.is_running = True
        logger.info(f"Scream detector started (trigger_db={self.trigger_db}, model={self.uses_model})")

    def stop(self):
        if self.level_meter is not None and self.is_running:
            try:
                self.level_meter.cancel()
            except Exception as e:
                logger.warning(f"Error stopping level meter: {e}")
        if self._confirm_task is not None and not self._confirm_task.done():
            self._confirm_task.cancel()
        self._confirm_task = None
        self.is_running = False
        self._confirming = False
        self.consecutive_count = 0
        logger.info("Scream detector stopped")

    def dispose(self):
        self._enabled = False
        self.stop()
        self.recent_readings.clear()
        self.scream_listeners.clear()
        self.candidate_listeners.clear()

    def handle_reading(self, decibel, timestamp=None):
        """
        Process one loudness reading (dB).
        Returns True when the reading passed the prefilter.
        """
        if not self._enabled:
            return False

        ts = self.scheduler.now() if timestamp is None else timestamp

        if self.recent_readings:
            last_ts, _ = self.recent_readings[-1]
            if (ts - last_ts) * 1000 < self.sample_period_ms:
                return False
        self.recent_readings.append((ts, decibel))

        if decibel < self.trigger_db:
            return False

        logger.info(f"Prefilter hit: {decibel:.1f} dB")
        self.candidate_listeners.publish(ScreamCandidate(timestamp=ts, decibel=decibel))

        if self._last_confirmed_at is not None:
            since_ms = (ts - self._last_confirmed_at) * 1000
            if since_ms < self.cooldown_ms:
                logger.debug(f"In cooldown ({since_ms:.0f} ms since last confirmed), skipping confirmation")
                return True

        if not self.uses_model:
            self._emit(ScreamEvent(timestamp=ts, score=decibel))
            return True

        if self._confirming:
            logger.debug("Already confirming a candidate, dropping this prefilter hit")
            return True

        self._confirming = True
        self._confirm_task = self.scheduler.spawn(self._confirm(ts, decibel))
        return True

    async def _confirm(self, ts, decibel):
        try:
            pcm = await self.capture_pcm()
            if pcm is None or len(pcm) == 0:
                logger.warning("PCM capture returned no data, falling back to dB-only detection")
                self._emit(ScreamEvent(timestamp=ts, score=decibel))
                return

            score = float(await self.scorer.score(pcm))
            logger.info(f"Model score: {score:.3f} (threshold {self.model_threshold:.2f})")

            if score >= self.model_threshold:
                self.consecutive_count += 1
                logger.debug(f"Consecutive confirmed count: {self.consecutive_count}/{self.consecutive_required}")
                if self.consecutive_count >= self.consecutive_required:
                    self._last_confirmed_at = ts
                    self.consecutive_count = 0
                    self._emit(ScreamEvent(timestamp=ts, score=score, model_confirmed=True))
            else:
                logger.debug("Model rejected candidate, resetting consecutive count")
                self.consecutive_count = 0

        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error during model confirmation: {e}. Falling back to dB-only detection")
            self.consecutive_count = 0
            self._emit(ScreamEvent(timestamp=ts, score=decibel))
        finally:
            # A cancelled task must not clear state owned by a newer confirmation
            if self._confirm_task is asyncio.current_task():
                self._confirming = False
                self._confirm_task = None

    def _emit(self, event):
        if not self._enabled:
            return
        logger.warning(f"Scream detected (score={event.score:.3f}, model={event.model_confirmed})")
        self.scream_listeners.publish(event)
