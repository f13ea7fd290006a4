"""
Bitte MCP Proxy

Federated search and dispatch over the Bitte agent registry, the Bitte
runtime and on-chain capability sources, exposed as MCP tools.

Example:
    from bitte_mcp.config import load_config
    from bitte_mcp.server import build_server

    server = build_server(load_config())
    result = await server.handle_tool_call("search-tools", {"query": "transfer"})
"""

__version__ = "0.1.0"

from bitte_mcp.exceptions import (
    HttpError,
    InvalidInputError,
    MissingParameterError,
    NotFoundError,
    ProxyError,
    SourceUnavailableError,
    UpstreamConnectionError,
    UpstreamTimeoutError,
)
from bitte_mcp.fuzzy import SearchOptions, SearchResult, search

__all__ = [
    "HttpError",
    "InvalidInputError",
    "MissingParameterError",
    "NotFoundError",
    "ProxyError",
    "SearchOptions",
    "SearchResult",
    "SourceUnavailableError",
    "UpstreamConnectionError",
    "UpstreamTimeoutError",
    "search",
]
