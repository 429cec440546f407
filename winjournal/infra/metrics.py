"""Counters and gauges for sync outcomes and store size."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from threading import Lock
from typing import DefaultDict, Dict

from .logging import get_logger

logger = get_logger(__name__)

REMOTE_SYNC_PREFIX = "remote_sync_"


class MetricsClient:  # pragma: no cover - simple helper
    """Counter/gauge sink; ``snapshot`` is empty for sinks that keep no values."""

    def increment(self, metric: str, value: int = 1) -> None:
        raise NotImplementedError

    def gauge(self, metric: str, value: int) -> None:
        raise NotImplementedError

    def snapshot(self, prefix: str = "") -> Dict[str, int]:
        return {}


@dataclass
class InMemoryMetricsClient(MetricsClient):
    """Process-local sink shared by request threads and the sync worker."""

    counters: DefaultDict[str, int] = field(default_factory=lambda: defaultdict(int))
    gauges: Dict[str, int] = field(default_factory=dict)
    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    def increment(self, metric: str, value: int = 1) -> None:
        with self._lock:
            self.counters[metric] += value
        logger.debug("metrics_increment", extra={"metric": metric, "value": value})

    def gauge(self, metric: str, value: int) -> None:
        with self._lock:
            self.gauges[metric] = value

    def snapshot(self, prefix: str = "") -> Dict[str, int]:
        """Counters and gauges whose name starts with ``prefix``."""

        with self._lock:
            merged = {**self.counters, **self.gauges}
        return {
            name: value
            for name, value in sorted(merged.items())
            if name.startswith(prefix)
        }


_metrics_singleton: InMemoryMetricsClient | None = None


def get_metrics_client() -> MetricsClient:
    """Return the shared metrics client."""

    global _metrics_singleton
    if _metrics_singleton is None:
        _metrics_singleton = InMemoryMetricsClient()
    return _metrics_singleton
