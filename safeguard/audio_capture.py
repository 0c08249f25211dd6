"""
Audio capture for the scream detector.
Streams microphone blocks, reports per-block loudness, and keeps a rolling
buffer from which the scorer's PCM window is taken on demand.
"""

import asyncio
import logging
import threading
from collections import deque

import numpy as np
import sounddevice as sd

from .features.loudness import block_decibels, to_int16
from .config import (
    SAMPLE_RATE, CHANNELS, FRAME_DURATION_MS, CAPTURE_SECONDS,
    CAPTURE_POST_MS, BUFFER_SECONDS
)

logger = logging.getLogger(__name__)


class AudioCapture:
    """
    Microphone level meter and PCM capture

    Implements the level meter interface used by ScreamDetector
    (listen(callback) / cancel()) and the capture coroutine (capture_pcm()).
    The PortAudio callback runs on its own thread; readings are handed to
    the event loop with call_soon_threadsafe.
    """

    def __init__(self, scheduler, sample_rate=SAMPLE_RATE, channels=CHANNELS,
                 capture_seconds=CAPTURE_SECONDS, capture_post_ms=CAPTURE_POST_MS):
        self.scheduler = scheduler
        self.sample_rate = sample_rate
        self.channels = channels
        self.frame_samples = int(self.sample_rate * FRAME_DURATION_MS / 1000)
        self.capture_samples = int(self.sample_rate * capture_seconds)
        self.capture_post_ms = capture_post_ms

        self.sliding_buffer = deque(maxlen=int(self.sample_rate * BUFFER_SECONDS))
        self._lock = threading.Lock()

        self.stream = None
        self.is_running = False
        self._listener = None

    def audio_callback(self, indata, frames, time_info, status):
        """
        Callback function for audio stream - runs in the PortAudio thread
        """
        if status:
            logger.debug(f"Audio status: {status}")

        if self.channels == 1:
            audio_data = indata.flatten()
        else:
            audio_data = np.mean(indata, axis=1)

        with self._lock:
            self.sliding_buffer.extend(audio_data)

        listener = self._listener
        if listener is not None:
            db = block_decibels(audio_data)
            try:
                self.scheduler.call_soon_threadsafe(listener, db, None)
            except RuntimeError:
                # Event loop already closed during shutdown
                pass

    def listen(self, callback):
        """
        Start the microphone stream and push (db, timestamp) readings to callback.
        Stream failures propagate to the caller.
        """
        self._listener = callback
        try:
            self.start()
        except Exception:
            self._listener = None
            raise

    def cancel(self):
        self._listener = None
        self.stop()

    def start(self):
        if self.is_running:
            logger.warning("Audio capture already running")
            return

        self.stream = sd.InputStream(
            samplerate=self.sample_rate,
            channels=self.channels,
            dtype=np.float32,
            callback=self.audio_callback,
            blocksize=self.frame_samples
        )
        self.stream.start()
        self.is_running = True
        logger.info("Audio capture started successfully")

    def stop(self):
        if not self.is_running:
            return

        self.is_running = False
        if self.stream is not None:
            self.stream.stop()
            self.stream.close()
            self.stream = None

        logger.info("Audio capture stopped")

    async def capture_pcm(self):
        """
        Wait briefly so the loud event is inside the window, then return the
        latest capture_seconds of audio as int16 PCM (None if not enough data).
        """
        await asyncio.sleep(self.capture_post_ms / 1000)
        with self._lock:
            if len(self.sliding_buffer) < self.capture_samples:
                return None
            window = np.array(list(self.sliding_buffer)[-self.capture_samples:], dtype=np.float32)
        return to_int16(window)

    def get_buffer_fill_percentage(self):
        return (len(self.sliding_buffer) / self.sliding_buffer.maxlen) * 100

    def clear_buffer(self):
        with self._lock:
            self.sliding_buffer.clear()
