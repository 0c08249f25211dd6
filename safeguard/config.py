"""
Configuration constants for the SafeGuard personal-safety alerting engine
"""

# Physics
STANDARD_GRAVITY = 9.80665  # m/s^2

# Signal Processing (accelerometer)
SENSOR_SAMPLE_MS = 40  # Minimum spacing between processed samples (20-100ms typical)
SENSOR_LOW_PASS_ALPHA = 0.90  # EMA factor, closer to 1 = slower baseline
SENSOR_CALLBACK_INTERVAL_MS = 1000  # Observer callback throttle

# Fall Detection
# Walking ~0.1-0.5 g, swinging phone ~1.2-1.5 g, real fall ~2.5-6 g
FALL_IMPACT_THRESHOLD = 2.0 * STANDARD_GRAVITY  # 2.0 g
FALL_INACTIVITY_THRESHOLD = 0.3 * STANDARD_GRAVITY  # 0.3 g
FALL_INACTIVITY_WINDOW_SECONDS = 8.0
FALL_MIN_SECONDS_BETWEEN_FALLS = 10.0
FALL_DEBUG_INTERVAL_MS = 1000  # Throttle for per-sample debug lines

# Scream Detection
SCREAM_TRIGGER_DB = 70.0  # Loudness prefilter threshold
SCREAM_SAMPLE_PERIOD_MS = 50
SCREAM_MODEL_THRESHOLD = 0.20  # Minimum model score for confirmation
SCREAM_CONSECUTIVE_REQUIRED = 1  # Consecutive model-confirmed windows needed
SCREAM_COOLDOWN_MS = 5000  # Quiet period after a model-confirmed scream
SCREAM_HISTORY_SIZE = 2000  # Recent loudness readings kept

# Scream Model (TFLite, raw PCM input)
SCREAM_MODEL_PATH = "models/scream_raw_input_quant.tflite"
MODEL_INPUT_SAMPLES = 16000  # 1 second at 16 kHz when the shape is unknown
MAX_LATENCY_MS = 100  # Scorer latency target

# Audio Configuration
SAMPLE_RATE = 16000  # 16 kHz mono, matches the scorer input
CHANNELS = 1
FRAME_DURATION_MS = 50  # One loudness reading per block
CAPTURE_SECONDS = 1.0  # PCM handed to the scorer
CAPTURE_POST_MS = 500  # Wait after a prefilter hit before taking the buffer
BUFFER_SECONDS = 2.0  # Rolling buffer kept for capture

# Manual Trigger
SHAKE_THRESHOLD = 2.0  # Deviation from local baseline, m/s^2
SHAKE_REQUIRED_PEAKS = 5
SHAKE_WINDOW_SECONDS = 3.0
SHAKE_BUFFER_SIZE = 50
LONG_PRESS_HOLD_SECONDS = 5.0

# Inactivity Countdown
MOVEMENT_THRESHOLD = 0.1
INACTIVITY_DURATION_SECONDS = 12.0
CONFIRMATION_SECONDS = 10

# Global Confirmation Gate
GATE_COOLDOWN_SECONDS = 10.0

# Correlation
CORRELATION_WINDOW_SECONDS = 5.0

# Logging
LOG_FILE = "alert_log.jsonl"
