"""
Calibration log sink.

The client posts each result back together with the request fields that
produced it.  Events are logged under ``[CALIBRATION]`` and, when a path is
configured, appended as one JSON object per line for offline tuning.
Write failures are logged and swallowed; losing a calibration event must
never fail the request.
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)


class CalibrationLog:
    """Append-only JSON-lines sink for client calibration events."""

    def __init__(self, path: Optional[str] = None):
        self.path = path or None
        self._lock = threading.Lock()

    def record(self, event: Mapping[str, Any]) -> bool:
        """Log ``event``; returns True when it was also written to disk."""
        entry: Dict[str, Any] = {
            "received_at": datetime.now(timezone.utc).isoformat(),
            **dict(event or {}),
        }
        logger.info("[CALIBRATION] %s", json.dumps(entry, default=str))
        if not self.path:
            return False
        try:
            line = json.dumps(entry, default=str)
            with self._lock, open(self.path, "a", encoding="utf-8") as fh:
                fh.write(line + "\n")
        except (OSError, TypeError, ValueError) as e:
            logger.warning("Could not write calibration event to %s: %s", self.path, e)
            return False
        return True
