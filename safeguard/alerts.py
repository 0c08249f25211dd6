"""
Alert record sink.
Best effort: one JSON line per confirmation outcome plus an in-memory history.
"""

import json
import logging
import datetime

from .config import LOG_FILE

logger = logging.getLogger(__name__)


class AlertLog:
    """
    Records confirmation outcomes to the emergency log file
    """

    def __init__(self, log_file=LOG_FILE):
        self.log_file = log_file
        self.action_log = []

    async def record(self, type, trigger, outcome, extra=None):
        """
        Append one alert record.

        Args:
            type: "fall" | "scream" | "inactivity" | "long_press" | "shake"
            trigger: "auto" | "manual"
            outcome: "sent" | "cancelled" | "timeout"
            extra: optional additional fields
        """
        now = datetime.datetime.now()
        record = {
            "type": type,
            "trigger": trigger,
            "outcome": outcome,
            "humanTimestamp": now.strftime("%Y-%m-%d %a %I:%M%p"),
            "createdAt": now.isoformat(timespec="seconds"),
        }
        if extra:
            record.update(extra)

        self.action_log.append(record)

        if self.log_file:
            with open(self.log_file, "a", encoding="utf-8") as f:
                f.write(json.dumps(record) + "\n")

        logger.info(f"Alert recorded: {type} ({trigger}) -> {outcome}")
        return record

    def get_action_history(self):
        return self.action_log.copy()
