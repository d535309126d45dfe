"""
Process-local request and sync metrics.

A ``MetricsRegistry`` is created per application and handed to whoever records
into it; there is no module-level state. Counters start from zero on every
process start.
"""

import logging
import threading
from collections import defaultdict
from typing import Any

logger = logging.getLogger(__name__)

STATUS_CLASSES = ("2xx", "3xx", "4xx", "5xx", "other")


def status_class(status: int) -> str:
    if 200 <= status < 300:
        return "2xx"
    if 300 <= status < 400:
        return "3xx"
    if 400 <= status < 500:
        return "4xx"
    if 500 <= status < 600:
        return "5xx"
    return "other"


class MetricsRegistry:
    """
    Collects request counters and named sync counters.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.reset()

    def reset(self) -> None:
        """Zero every counter."""
        with self._lock:
            self._requests_total = 0
            self._by_status_class = {name: 0 for name in STATUS_CLASSES}
            self._duration_total_ms = 0.0
            self._duration_max_ms = 0.0
            self._counters: dict[str, int] = defaultdict(int)

    def record_request(self, status: int, duration_ms: float) -> None:
        """
        Record one finished HTTP request.

        Args:
            status: Response status code
            duration_ms: Wall-clock handling time
        """
        with self._lock:
            self._requests_total += 1
            self._by_status_class[status_class(status)] += 1
            self._duration_total_ms += duration_ms
            if duration_ms > self._duration_max_ms:
                self._duration_max_ms = duration_ms

    def increment(self, name: str, value: int = 1) -> None:
        """Bump a named counter such as ``jobs_completed``."""
        with self._lock:
            self._counters[name] += value

    def get(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            avg = (
                0.0
                if self._requests_total == 0
                else self._duration_total_ms / self._requests_total
            )
            return {
                "requests_total": self._requests_total,
                "requests_by_status_class": dict(self._by_status_class),
                "request_duration_ms_avg": round(avg, 3),
                "request_duration_ms_max": round(self._duration_max_ms, 3),
                "counters": dict(self._counters),
            }
