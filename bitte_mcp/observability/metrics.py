"""
Bitte MCP Proxy - Metrics
Prometheus metrics for searches, source health and executions.
"""

import logging
from typing import Optional

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, Info, generate_latest
from prometheus_client.registry import CollectorRegistry

from bitte_mcp import __version__

logger = logging.getLogger(__name__)


class ProxyMetrics:
    """
    Metrics collection for the proxy.

    Every instance owns its own ``CollectorRegistry`` so tests and embedded
    servers never collide on metric names.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()

        self.info = Info('bitte_proxy', 'Bitte MCP proxy information', registry=self.registry)

        self.searches_total = Counter(
            'bitte_proxy_searches_total',
            'Total number of federated searches',
            ['kind'],
            registry=self.registry
        )

        self.source_failures_total = Counter(
            'bitte_proxy_source_failures_total',
            'Capability source listings that failed',
            ['source'],
            registry=self.registry
        )

        self.executions_total = Counter(
            'bitte_proxy_executions_total',
            'Total tool and agent executions',
            ['target_type', 'source', 'status'],
            registry=self.registry
        )

        self.execution_duration = Histogram(
            'bitte_proxy_execution_duration_seconds',
            'Execution duration in seconds',
            ['target_type', 'source'],
            buckets=[.005, .01, .025, .05, .1, .25, .5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, float('inf')],
            registry=self.registry
        )

        self.errors_total = Counter(
            'bitte_proxy_errors_total',
            'Total errors',
            ['error_code'],
            registry=self.registry
        )

        self.info.info({'version': __version__})

    def record_search(self, kind: str):
        """Record a search-agents or search-tools call"""
        self.searches_total.labels(kind=kind).inc()

    def record_source_failure(self, source: str):
        self.source_failures_total.labels(source=source).inc()

    def record_execution(self, target_type: str, source: str, duration: float, success: bool):
        """Record a completed tool or agent execution"""
        status = "success" if success else "failure"
        self.executions_total.labels(target_type=target_type, source=source, status=status).inc()
        self.execution_duration.labels(target_type=target_type, source=source).observe(duration)

    def record_error(self, error_code: str):
        self.errors_total.labels(error_code=error_code).inc()

    def get_prometheus_metrics(self) -> bytes:
        """Get Prometheus-formatted metrics"""
        return generate_latest(self.registry)

    def get_content_type(self) -> str:
        """Get Prometheus content type"""
        return CONTENT_TYPE_LATEST


# Singleton instance
_metrics: Optional[ProxyMetrics] = None


def get_metrics() -> ProxyMetrics:
    """Get or create metrics singleton"""
    global _metrics
    if _metrics is None:
        _metrics = ProxyMetrics()
    return _metrics


def reset_metrics():
    """Reset metrics (useful for testing)"""
    global _metrics
    _metrics = None
