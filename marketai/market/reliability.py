"""Per-source fetch statistics and price confidence scoring."""

import math
import threading
from typing import Optional

from pydantic import BaseModel, Field


def compute_confidence(success_rate: float, avg_ms: int, price_variance: float = 0.0) -> float:
    """Score a price snapshot from 5 to 99.9.

    ``50 + 40 * success_rate``, minus up to 10 points for responses
    slower than 1500 ms and up to 10 points for cross-source variance.

    Args:
        success_rate: Fraction of successful fetches, clamped to [0, 1].
        avg_ms: Average successful response time in milliseconds.
        price_variance: Cross-source price variance (TL^2), 0 for a single source.

    Returns:
        Confidence score.
    """
    success_rate = min(max(success_rate, 0.0), 1.0)
    base = 50.0 + 40.0 * success_rate

    response_penalty = 0.0
    if avg_ms > 1500:
        response_penalty = min((avg_ms - 1500) / 150.0, 10.0)

    variance_penalty = min(10.0, math.sqrt(abs(price_variance)))

    return min(max(base - response_penalty - variance_penalty, 5.0), 99.9)


class SourceStats(BaseModel):
    """Fetch counters for one data source."""

    total: int = Field(default=0, ge=0, description="Fetch attempts")
    success: int = Field(default=0, ge=0, description="Successful fetches")
    total_duration: float = Field(default=0.0, ge=0, description="Seconds spent in successful fetches")

    model_config = {"frozen": True}

    @property
    def success_rate(self) -> float:
        return self.success / self.total if self.total else 0.0

    @property
    def avg_ms(self) -> int:
        """Average successful fetch time in milliseconds."""
        if not self.success:
            return 0
        return int(self.total_duration / self.success * 1000)


class SourceReliability:
    """In-memory reliability registry shared by the market sources.

    Safe to use from the worker threads context gathering runs in.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._stats: dict[str, SourceStats] = {}

    def record(self, source: str, duration: float, success: bool) -> None:
        """Record one fetch.

        Args:
            source: Source name.
            duration: Fetch time in seconds.
            success: Whether the fetch returned usable data. Only
                successful fetches count towards the average duration.
        """
        with self._lock:
            current = self._stats.get(source, SourceStats())
            self._stats[source] = SourceStats(
                total=current.total + 1,
                success=current.success + (1 if success else 0),
                total_duration=current.total_duration + (duration if success else 0.0),
            )

    def stats(self, source: str) -> SourceStats:
        with self._lock:
            return self._stats.get(source, SourceStats())

    def sources(self) -> dict[str, SourceStats]:
        with self._lock:
            return dict(self._stats)

    def confidence(self, source: str, price_variance: float = 0.0) -> Optional[float]:
        """Confidence for prices from ``source``, or None before its first fetch."""
        stats = self.stats(source)
        if stats.total == 0:
            return None
        return compute_confidence(stats.success_rate, stats.avg_ms, price_variance)
