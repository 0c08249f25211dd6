"""
Loudness features for the scream prefilter
"""

import numpy as np
import librosa

# Full-scale int16 amplitude; readings land roughly on a 0-90 dB scale
PCM_FULL_SCALE = 32768.0


def block_decibels(audio):
    """
    Loudness of one audio block in dB (0 for silence).

    Args:
        audio: float samples in [-1, 1]
    """
    audio = np.asarray(audio, dtype=np.float32).reshape(-1)
    if audio.size == 0:
        return 0.0

    rms = librosa.feature.rms(y=audio, frame_length=audio.size, hop_length=audio.size, center=False)
    level = float(np.mean(rms)) * PCM_FULL_SCALE
    db = librosa.amplitude_to_db(np.array([level]), ref=1.0, amin=1e-5, top_db=None)
    return max(0.0, float(db[0]))


def to_int16(audio):
    """
    Convert float samples in [-1, 1] to int16 PCM
    """
    audio = np.clip(np.asarray(audio, dtype=np.float32), -1.0, 1.0)
    return (audio * 32767).astype(np.int16)
