"""
Observability metrics for the order service.

Tracks:
- Latency percentiles (p50, p95, p99) per endpoint
- Order outcomes (committed, rejected, not_found, conflict, error)
- Transaction retries
- Post-commit side-effect results per task kind
"""

from typing import Dict, Optional
from collections import defaultdict, deque
from datetime import datetime, timezone
import statistics


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MetricsCollector:
    """
    In-memory metrics collector for observability.

    Counters live for the process lifetime; latencies keep a sliding window.
    """

    def __init__(self, window_size: int = 1000):
        """
        Initialize metrics collector.

        Args:
            window_size: Number of recent samples to keep for percentiles
        """
        self.window_size = window_size

        # Latency tracking (sliding window)
        self.latencies: Dict[str, deque] = defaultdict(lambda: deque(maxlen=window_size))

        # Request counters
        self.request_counts: Dict[str, int] = defaultdict(int)
        self.error_counts: Dict[str, int] = defaultdict(int)

        # Order pipeline
        self.order_outcomes: Dict[str, int] = defaultdict(int)
        self.transaction_retries = 0

        # Side effects: {kind: {status: count}}
        self.side_effects: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))

        self.start_time = _utcnow()
        self.last_reset = _utcnow()

    def record_latency(self, endpoint: str, latency_ms: float):
        """Record a latency sample for an endpoint."""
        self.latencies[endpoint].append(latency_ms)
        self.request_counts[endpoint] += 1

    def record_error(self, endpoint: str):
        """Record an error for an endpoint."""
        self.error_counts[endpoint] += 1

    def record_order_outcome(self, outcome: str):
        """outcome: committed | rejected | not_found | conflict | error"""
        self.order_outcomes[outcome] += 1

    def record_retry(self):
        self.transaction_retries += 1

    def record_side_effect(self, kind: str, status: str):
        self.side_effects[kind][status] += 1

    def get_percentile(self, endpoint: str, percentile: float) -> Optional[float]:
        """
        Get a latency percentile for an endpoint.

        Args:
            endpoint: Endpoint name
            percentile: Percentile (0-100)

        Returns:
            Latency in ms, or None if insufficient data
        """
        if endpoint not in self.latencies or len(self.latencies[endpoint]) == 0:
            return None

        values = sorted(self.latencies[endpoint])
        if len(values) < 10:  # Need at least 10 samples for meaningful percentiles
            return None

        index = int(len(values) * (percentile / 100.0))
        index = min(index, len(values) - 1)
        return values[index]

    def get_error_rate(self, endpoint: str) -> float:
        """Get the error rate for an endpoint as a percentage."""
        total_requests = self.request_counts[endpoint]
        if total_requests == 0:
            return 0.0
        return (self.error_counts[endpoint] / total_requests) * 100.0

    def get_summary(self) -> Dict:
        """
        Get a summary of all metrics.

        Returns:
            Dict with order, side-effect and per-endpoint metrics
        """
        uptime_seconds = (_utcnow() - self.start_time).total_seconds()

        summary = {
            "uptime_seconds": uptime_seconds,
            "orders": {
                "outcomes": dict(self.order_outcomes),
                "transaction_retries": self.transaction_retries,
            },
            "side_effects": {kind: dict(counts) for kind, counts in self.side_effects.items()},
            "endpoints": {},
        }

        for endpoint in self.request_counts.keys():
            p50 = self.get_percentile(endpoint, 50)
            p95 = self.get_percentile(endpoint, 95)
            p99 = self.get_percentile(endpoint, 99)

            endpoint_metrics = {
                "total_requests": self.request_counts[endpoint],
                "total_errors": self.error_counts[endpoint],
                "error_rate_pct": round(self.get_error_rate(endpoint), 2),
            }

            if p50 is not None:
                endpoint_metrics["latency_p50_ms"] = round(p50, 2)
            if p95 is not None:
                endpoint_metrics["latency_p95_ms"] = round(p95, 2)
            if p99 is not None:
                endpoint_metrics["latency_p99_ms"] = round(p99, 2)

            if len(self.latencies[endpoint]) > 0:
                endpoint_metrics["latency_avg_ms"] = round(
                    statistics.mean(self.latencies[endpoint]), 2
                )

            summary["endpoints"][endpoint] = endpoint_metrics

        return summary

    def reset(self):
        """Reset all metrics (useful for testing)."""
        self.latencies.clear()
        self.request_counts.clear()
        self.error_counts.clear()
        self.order_outcomes.clear()
        self.transaction_retries = 0
        self.side_effects.clear()
        self.last_reset = _utcnow()


# Global metrics collector instance
metrics_collector = MetricsCollector()


def record_request_metrics(endpoint: str, latency_ms: float, is_error: bool = False):
    """
    Convenience function to record request metrics at once.

    Args:
        endpoint: Endpoint name (e.g. "create_order")
        latency_ms: Total request latency in milliseconds
        is_error: Whether this request resulted in a server error
    """
    metrics_collector.record_latency(endpoint, latency_ms)
    if is_error:
        metrics_collector.record_error(endpoint)
