"""
Tool variants, result envelope and the declarative HTTP tool executor.
"""

from bitte_mcp.tools.base import (
    ContentBlock,
    ExecutionResult,
    ExecutionSpec,
    HttpTool,
    InvocableItem,
    NativeTool,
    schema_from,
    to_text,
    tool_from_registry,
)
from bitte_mcp.tools.http import HttpToolExecutor

__all__ = [
    "ContentBlock",
    "ExecutionResult",
    "ExecutionSpec",
    "HttpTool",
    "HttpToolExecutor",
    "InvocableItem",
    "NativeTool",
    "schema_from",
    "to_text",
    "tool_from_registry",
]
