"""Performance monitoring for the descriptor parser and the HTTP API.

The monitoring layer aggregates runtime telemetry so other components (REST
endpoints, the parse orchestrator) can record lightweight events without
embedding metric aggregation logic. Everything stays in-process; no external
backend is required.

Collected domains:
        * Parse statistics (parses, failures, documents fetched, operations
          produced, duration)
        * Endpoint latency & error rates (rolling sample window + aggregates)
        * Recent activity (fixed-size deques for debugging / introspection)

Design principles:
        1. Thread safety via a shared re-entrant lock (`RLock`).
        2. Summary outputs are primitive-only dictionaries for JSON encoding
           without custom encoders.

Example (recording a parse)::

        from soap_workbench.monitoring import get_monitor
        monitor = get_monitor()
        monitor.record_parse(duration=0.41, documents=3, operations=12)
        print(monitor.get_performance_summary()["parser"]["total_parses"])  # -> 1

Example (recording API request)::

        monitor.record_endpoint_request("POST /describe", response_time=0.5, status_code=200)

Lifecycle integration:
        * Initialization is lazy via :func:`get_monitor` or explicit via
            :func:`initialize_monitor`.
        * Export with :meth:`PerformanceMonitor.export_metrics` for offline
            diagnostics.
        * Reset with :meth:`PerformanceMonitor.reset_metrics` during tests to
            guarantee clean baselines.
"""

from __future__ import annotations

import json
import threading
from collections import defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional


@dataclass
class ParseMetrics:
    """Aggregate descriptor parse statistics.

    Attributes:
        total_parses: Number of parse attempts (successful or not).
        failed_parses: Attempts that raised.
        empty_results: Successful parses that discovered no operations.
        documents_fetched: Documents loaded across all successful parses.
        operations_produced: Descriptors returned across all successful parses.
        total_duration: Cumulative parse wall time (seconds).
        average_duration: Mean parse wall time (seconds).
        last_source: Primary source of the most recent parse.
    """

    total_parses: int = 0
    failed_parses: int = 0
    empty_results: int = 0
    documents_fetched: int = 0
    operations_produced: int = 0
    total_duration: float = 0.0
    average_duration: float = 0.0
    last_source: Optional[str] = None


@dataclass
class EndpointMetrics:
    """Aggregated metrics for a single logical endpoint.

    Attributes:
        total_requests: Count of invocations.
        total_response_time: Cumulative latency (seconds).
        average_response_time: Mean latency (seconds).
        error_count: Number of requests resulting in error (HTTP >= 400).
        error_rate: error_count / total_requests (0..1).
        last_accessed: Datetime of most recent invocation.
        response_times: Rolling window (deque) of recent latencies.
    """

    total_requests: int = 0
    total_response_time: float = 0.0
    average_response_time: float = 0.0
    error_count: int = 0
    error_rate: float = 0.0
    last_accessed: Optional[datetime] = None
    response_times: deque = field(default_factory=lambda: deque(maxlen=100))


class PerformanceMonitor:
    """Central coordinator for recording and querying metrics.

    Thread-safe methods mutate internal counters while summary access methods
    consolidate data into JSON-ready dictionaries. Intended to be shared as a
    singleton within a process.
    """

    def __init__(self, enable_detailed_tracking: bool = True):
        """Initialize performance monitor.

        Args:
            enable_detailed_tracking: If False, skips per-request latency deque
                population to minimize overhead.
        """
        self.enable_detailed_tracking = enable_detailed_tracking
        self.start_time = datetime.now()

        self._lock = threading.RLock()

        self.parse_metrics = ParseMetrics()
        self.endpoint_metrics: Dict[str, EndpointMetrics] = defaultdict(EndpointMetrics)
        self.total_requests = 0

        # Recent activity tracking
        self.recent_requests: deque = deque(maxlen=1000)
        self.recent_errors: deque = deque(maxlen=100)

    def record_parse(
        self,
        duration: float,
        documents: int = 0,
        operations: int = 0,
        succeeded: bool = True,
        source: Optional[str] = None,
    ) -> None:
        """Record one descriptor parse.

        Args:
            duration: Wall time in seconds.
            documents: Number of documents loaded (successful parses only).
            operations: Number of descriptors produced (successful parses only).
            succeeded: False when the parse raised.
            source: Primary source of the request, for diagnostics.
        """
        with self._lock:
            metrics = self.parse_metrics
            metrics.total_parses += 1
            metrics.total_duration += duration
            metrics.average_duration = metrics.total_duration / metrics.total_parses
            metrics.last_source = source

            if not succeeded:
                metrics.failed_parses += 1
                self.recent_errors.append(
                    {
                        "endpoint": "parse",
                        "source": source,
                        "timestamp": datetime.now().isoformat(),
                        "response_time": duration,
                    }
                )
                return

            metrics.documents_fetched += documents
            metrics.operations_produced += operations
            if operations == 0:
                metrics.empty_results += 1

    def record_endpoint_request(
        self, endpoint: str, response_time: float, status_code: int = 200
    ) -> None:
        """Record an API endpoint invocation.

        Args:
            endpoint: Logical endpoint name or path.
            response_time: Time in seconds for handling the request.
            status_code: HTTP status used to compute error rate (>=400 counts as error).
        """
        with self._lock:
            metrics = self.endpoint_metrics[endpoint]
            metrics.total_requests += 1
            metrics.total_response_time += response_time
            metrics.average_response_time = (
                metrics.total_response_time / metrics.total_requests
            )
            metrics.last_accessed = datetime.now()

            if self.enable_detailed_tracking:
                metrics.response_times.append(response_time)

            if status_code >= 400:
                metrics.error_count += 1
                self.recent_errors.append(
                    {
                        "endpoint": endpoint,
                        "status_code": status_code,
                        "timestamp": datetime.now().isoformat(),
                        "response_time": response_time,
                    }
                )

            metrics.error_rate = metrics.error_count / metrics.total_requests

            self.recent_requests.append(
                {
                    "endpoint": endpoint,
                    "timestamp": datetime.now().isoformat(),
                    "response_time": response_time,
                    "status_code": status_code,
                }
            )
            self.total_requests += 1

    def get_parse_statistics(self) -> Dict[str, Any]:
        with self._lock:
            metrics = self.parse_metrics
            successful = metrics.total_parses - metrics.failed_parses
            return {
                "total_parses": metrics.total_parses,
                "failed_parses": metrics.failed_parses,
                "empty_results": metrics.empty_results,
                "documents_fetched": metrics.documents_fetched,
                "operations_produced": metrics.operations_produced,
                "average_duration_ms": round(metrics.average_duration * 1000, 2),
                "success_rate": (
                    round(successful / metrics.total_parses * 100, 2)
                    if metrics.total_parses
                    else 0.0
                ),
                "last_source": metrics.last_source,
            }

    def get_performance_summary(self) -> Dict[str, Any]:
        """Return consolidated performance snapshot.

        Returns:
            Dict[str, Any]: Nested structure containing parser, api and error
            sections.
        """
        with self._lock:
            top_endpoints = sorted(
                self.endpoint_metrics.items(),
                key=lambda x: x[1].total_requests,
                reverse=True,
            )[:10]

            slowest_endpoints = sorted(
                [
                    (k, v)
                    for k, v in self.endpoint_metrics.items()
                    if v.total_requests > 0
                ],
                key=lambda x: x[1].average_response_time,
                reverse=True,
            )[:5]

            recent_errors_summary: Dict[str, int] = {}
            for error in list(self.recent_errors)[-20:]:  # Last 20 errors
                status = str(error.get("status_code", "parse"))
                recent_errors_summary[status] = recent_errors_summary.get(status, 0) + 1

            uptime = (datetime.now() - self.start_time).total_seconds()
            return {
                "timestamp": datetime.now().isoformat(),
                "uptime_hours": round(uptime / 3600, 2),
                "parser": self.get_parse_statistics(),
                "api": {
                    "total_requests": self.total_requests,
                    "top_endpoints": [
                        {
                            "endpoint": endpoint,
                            "requests": metrics.total_requests,
                            "avg_response_time_ms": round(
                                metrics.average_response_time * 1000, 2
                            ),
                            "error_rate": round(metrics.error_rate * 100, 2),
                        }
                        for endpoint, metrics in top_endpoints
                    ],
                    "slowest_endpoints": [
                        {
                            "endpoint": endpoint,
                            "avg_response_time_ms": round(
                                metrics.average_response_time * 1000, 2
                            ),
                            "total_requests": metrics.total_requests,
                        }
                        for endpoint, metrics in slowest_endpoints
                    ],
                },
                "errors": {
                    "recent_errors_by_status": recent_errors_summary,
                    "total_recent_errors": len(self.recent_errors),
                },
            }

    def export_metrics(self, file_path: Path) -> None:
        """Persist a structured metrics dump to disk.

        Args:
            file_path: Destination path for JSON output.
        """
        metrics_data = {
            "export_time": datetime.now().isoformat(),
            "summary": self.get_performance_summary(),
            "detailed_endpoints": {
                endpoint: {
                    "total_requests": metrics.total_requests,
                    "average_response_time": metrics.average_response_time,
                    "error_count": metrics.error_count,
                    "error_rate": metrics.error_rate,
                    "last_accessed": (
                        metrics.last_accessed.isoformat()
                        if metrics.last_accessed
                        else None
                    ),
                }
                for endpoint, metrics in self.endpoint_metrics.items()
            },
        }

        with open(file_path, "w") as f:
            json.dump(metrics_data, f, indent=2, default=str)

    def reset_metrics(self) -> None:
        """Reset all counters/state (primarily for tests or manual re-baselining)."""
        with self._lock:
            self.parse_metrics = ParseMetrics()
            self.endpoint_metrics.clear()
            self.total_requests = 0
            self.recent_requests.clear()
            self.recent_errors.clear()
            self.start_time = datetime.now()


# Global performance monitor instance
_monitor: Optional[PerformanceMonitor] = None


def get_monitor() -> PerformanceMonitor:
    """Return (and lazily initialize) process-wide performance monitor singleton."""
    global _monitor
    if _monitor is None:
        _monitor = PerformanceMonitor()
    return _monitor


def initialize_monitor(enable_detailed_tracking: bool = True) -> PerformanceMonitor:
    """Force initialization / re-initialization of the global monitor.

    Args:
        enable_detailed_tracking: Whether to maintain the rolling latency deque.
    """
    global _monitor
    _monitor = PerformanceMonitor(enable_detailed_tracking)
    return _monitor
