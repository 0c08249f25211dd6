"""Tests for loudness features and audio capture."""

from unittest.mock import patch, MagicMock

import numpy as np
import pytest

from safeguard.audio_capture import AudioCapture
from safeguard.features.loudness import block_decibels, to_int16


class TestLoudness:
    """Test cases for block_decibels and to_int16."""

    def test_silence_is_zero(self):
        assert block_decibels(np.zeros(800, dtype=np.float32)) == 0.0

    def test_empty_block(self):
        assert block_decibels(np.array([], dtype=np.float32)) == 0.0

    def test_full_scale_sine(self, sample_audio_data):
        audio, _ = sample_audio_data
        assert block_decibels(audio[:800]) == pytest.approx(87.3, abs=0.5)

    def test_louder_block_reads_higher(self, sample_audio_data):
        audio, _ = sample_audio_data
        assert block_decibels(audio[:800]) > block_decibels(audio[:800] * 0.01)

    def test_to_int16_clips(self):
        pcm = to_int16(np.array([-2.0, 0.0, 0.5, 2.0]))
        assert pcm.dtype == np.int16
        assert pcm.tolist() == [-32767, 0, 16383, 32767]


class TestAudioCapture:
    """Test cases for AudioCapture with the stream mocked out."""

    def test_callback_buffers_and_reports_levels(self, scheduler, sample_audio_data):
        audio, _ = sample_audio_data
        readings = []
        capture = AudioCapture(scheduler, capture_seconds=0.1, capture_post_ms=0)
        capture._listener = lambda db, ts: readings.append(db)

        capture.audio_callback(audio[:800].reshape(-1, 1), 800, None, None)

        assert len(capture.sliding_buffer) == 800
        assert readings[0] > 80.0

    def test_capture_pcm_needs_enough_audio(self, scheduler, sample_audio_data):
        audio, _ = sample_audio_data
        capture = AudioCapture(scheduler, capture_seconds=0.1, capture_post_ms=0)

        capture.audio_callback(audio[:800].reshape(-1, 1), 800, None, None)
        assert scheduler.run(capture.capture_pcm()) is None

        capture.audio_callback(audio[800:1600].reshape(-1, 1), 800, None, None)
        pcm = scheduler.run(capture.capture_pcm())
        assert pcm.dtype == np.int16
        assert len(pcm) == 1600

    @patch('sounddevice.InputStream')
    def test_listen_and_cancel(self, mock_stream_cls, scheduler):
        stream = MagicMock()
        mock_stream_cls.return_value = stream
        capture = AudioCapture(scheduler)

        capture.listen(lambda db, ts: None)
        assert capture.is_running
        stream.start.assert_called_once()

        capture.cancel()
        assert not capture.is_running
        stream.close.assert_called_once()

    @patch('sounddevice.InputStream', side_effect=OSError("no input device"))
    def test_stream_failure_propagates(self, mock_stream_cls, scheduler):
        capture = AudioCapture(scheduler)
        with pytest.raises(OSError):
            capture.listen(lambda db, ts: None)
        assert not capture.is_running
        assert capture._listener is None
