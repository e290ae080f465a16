import threading
from typing import Dict


class MetricsCollector:
    """
    In-process counters shared by clients, buses and the order services.
    Increments are thread-safe; `report()` logs a snapshot through the injected logger.
    """

    def __init__(self, logger):
        self.logger = logger
        self._counters: Dict[str, int] = {}
        self._lock = threading.Lock()

    def increment(self, key: str, amount: int = 1):
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + amount

    def get(self, key: str) -> int:
        with self._lock:
            return self._counters.get(key, 0)

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counters)

    def report(self):
        """Emit structured log of current metrics"""
        counters = self.snapshot()
        if counters:
            self.logger.info("Metrics update", extra=counters)
