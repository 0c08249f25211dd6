"""
Replay recorded sensor data through the live pipeline.

CSV columns (header required): t, x, y, z and optionally db.
t is seconds from the start of the recording; rows are paced in real time
(divided by speed). Rows with an empty db only feed the accelerometer.
"""

import asyncio
import logging

import numpy as np

logger = logging.getLogger(__name__)


def load_recording(path):
    """
    Load a recording as a structured array sorted by t
    """
    data = np.genfromtxt(path, delimiter=",", names=True, dtype=float, encoding="utf-8")
    data = np.atleast_1d(data)
    missing = {"t", "x", "y", "z"} - set(data.dtype.names or ())
    if missing:
        raise ValueError(f"Recording {path} is missing columns: {sorted(missing)}")
    return np.sort(data, order="t")


async def replay_recording(app, path, speed=1.0):
    """
    Feed a recording into app.handle_accelerometer / app.handle_loudness
    """
    if speed <= 0:
        raise ValueError("speed must be > 0")

    data = load_recording(path)
    has_db = "db" in data.dtype.names
    logger.info(f"Replaying {len(data)} rows from {path} at {speed}x")

    previous_t = None
    for row in data:
        if previous_t is not None:
            await asyncio.sleep(max(0.0, (row["t"] - previous_t) / speed))
        previous_t = row["t"]

        app.handle_accelerometer(row["x"], row["y"], row["z"])
        if has_db and not np.isnan(row["db"]):
            app.handle_loudness(row["db"])

    logger.info("Replay finished")
