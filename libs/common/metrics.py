"""Metrics collection for the search service.

Provides a thin convenience wrapper around ``prometheus_client`` so the
service can consistently record HTTP, search, branch and cache metrics.

Design notes
- Metrics and labels are predeclared to avoid cardinality explosions
- A single registry is kept per service (can be injected if needed)
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest


class MetricsCollector:
    """Centralized metrics collection for the search service.

    Parameters
    - service_name: Logical name used for scoping/labels if desired
    - registry: Optional custom ``CollectorRegistry`` (e.g. for testing)
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry or CollectorRegistry()

        self.request_count = Counter(
            'http_requests_total',
            'Total HTTP requests',
            ['method', 'endpoint', 'status'],
            registry=self.registry
        )

        self.request_duration = Histogram(
            'http_request_duration_seconds',
            'HTTP request duration',
            ['method', 'endpoint'],
            registry=self.registry
        )

        self.search_requests = Counter(
            'rag_search_requests_total',
            'Total hybrid search requests',
            ['mode', 'status'],
            registry=self.registry
        )

        self.search_duration = Histogram(
            'rag_search_duration_seconds',
            'Hybrid search duration',
            ['mode'],
            registry=self.registry
        )

        self.search_results = Histogram(
            'rag_search_results_count',
            'Number of results returned per search',
            buckets=(0, 1, 2, 5, 10, 20, 50),
            registry=self.registry
        )

        self.branch_failures = Counter(
            'rag_search_branch_failures_total',
            'Retrieval branch failures absorbed or surfaced',
            ['branch', 'reason'],
            registry=self.registry
        )

        self.cache_hits = Counter(
            'rag_cache_hits_total',
            'Total cache hits',
            ['cache_type'],
            registry=self.registry
        )

        self.cache_misses = Counter(
            'rag_cache_misses_total',
            'Total cache misses',
            ['cache_type'],
            registry=self.registry
        )

    def record_http_request(
        self,
        method: str,
        endpoint: str,
        status: int,
        duration: float
    ) -> None:
        """Record HTTP request metrics.

        duration is expected in seconds to match Prometheus histogram units.
        """
        self.request_count.labels(method=method, endpoint=endpoint, status=status).inc()
        self.request_duration.labels(method=method, endpoint=endpoint).observe(duration)

    def record_search(
        self,
        mode: str,
        status: str,
        duration: float,
        result_count: int = 0
    ) -> None:
        """Record a completed (or failed) search."""
        self.search_requests.labels(mode=mode, status=status).inc()
        self.search_duration.labels(mode=mode).observe(duration)
        if status == "ok":
            self.search_results.observe(result_count)

    def record_branch_failure(self, branch: str, reason: str) -> None:
        """Record a failed or timed-out retrieval branch."""
        self.branch_failures.labels(branch=branch, reason=reason).inc()

    def record_cache_hit(self, cache_type: str) -> None:
        """Record cache hit."""
        self.cache_hits.labels(cache_type=cache_type).inc()

    def record_cache_miss(self, cache_type: str) -> None:
        """Record cache miss."""
        self.cache_misses.labels(cache_type=cache_type).inc()

    def get_metrics(self) -> str:
        """Get metrics in Prometheus exposition format for scraping."""
        return generate_latest(self.registry).decode('utf-8')


# Global metrics collector instance
_metrics_collector: Optional[MetricsCollector] = None


def get_metrics_collector(service_name: str) -> MetricsCollector:
    """Get or create metrics collector for a service.

    Returns a process‑wide singleton to avoid duplicate collectors/labels.
    """
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector(service_name)
    return _metrics_collector
