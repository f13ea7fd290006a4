"""
Bitte MCP Proxy - Observability Module
"""

from bitte_mcp.observability.metrics import (
    ProxyMetrics,
    get_metrics,
    reset_metrics,
)

__all__ = [
    'ProxyMetrics',
    'get_metrics',
    'reset_metrics',
]
