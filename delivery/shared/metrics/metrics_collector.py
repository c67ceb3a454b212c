import threading
from collections import Counter
from typing import Dict, Optional

from delivery.shared.logger import JohnWickLogger


class MetricsCollector:
    """
    Per-component counters (cache hits, produced messages, relayed events...).

    The lock keeps a collector safe to share with worker threads. ``report``
    logs the counters that moved since the previous report alongside the
    running totals.
    """

    def __init__(self, logger: JohnWickLogger, namespace: Optional[str] = None):
        self.logger = logger
        self.namespace = namespace
        self._counters: Counter = Counter()
        self._reported: Counter = Counter()
        self._lock = threading.Lock()

    def increment(self, key: str, amount: int = 1):
        with self._lock:
            self._counters[key] += amount

    def reset(self, key: str):
        with self._lock:
            self._counters.pop(key, None)
            self._reported.pop(key, None)

    def get(self, key: str) -> int:
        with self._lock:
            return self._counters[key]

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counters)

    def report(self):
        """Log totals plus the change since the last report; silent when nothing moved."""
        with self._lock:
            delta = self._counters - self._reported
            if not delta:
                return
            totals = dict(self._counters)
            self._reported = Counter(self._counters)

        self.logger.info(
            "Metrics update",
            extra={"namespace": self.namespace, "totals": totals, "delta": dict(delta)},
        )
