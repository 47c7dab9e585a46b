"""In-process send metrics, served as JSON on ``/metrics``."""

from __future__ import annotations

import time
from collections import Counter, deque
from dataclasses import dataclass, field

LATENCY_WINDOW = 500


@dataclass
class MetricsCollector:
    send_count: int = 0
    message_type_counts: Counter = field(default_factory=Counter)
    failure_counts: Counter = field(default_factory=Counter)
    partial_batches: int = 0
    records_committed_before_failure: int = 0
    latencies: deque = field(default_factory=lambda: deque(maxlen=LATENCY_WINDOW))
    _start_time: float = field(default_factory=time.time)

    def record_send(self, message_types: list[str], latency_ms: int = 0) -> None:
        self.send_count += 1
        self.message_type_counts.update(message_types)
        if latency_ms:
            self.latencies.append(latency_ms)

    def record_failure(self, error: str, committed: int = 0) -> None:
        """Count a failed send; ``committed`` > 0 marks a partially persisted batch."""
        self.failure_counts[error] += 1
        if committed:
            self.partial_batches += 1
            self.records_committed_before_failure += committed

    def _percentile(self, pct: float) -> int:
        if not self.latencies:
            return 0
        ordered = sorted(self.latencies)
        return ordered[min(len(ordered) - 1, int(len(ordered) * pct))]

    def summary(self) -> dict:
        avg_latency = sum(self.latencies) / len(self.latencies) if self.latencies else 0
        return {
            "uptime_seconds": int(time.time() - self._start_time),
            "total_sends": self.send_count,
            "message_types": dict(self.message_type_counts),
            "failures": dict(self.failure_counts),
            "partial_batches": self.partial_batches,
            "avg_latency_ms": int(avg_latency),
            "p95_latency_ms": self._percentile(0.95),
        }
