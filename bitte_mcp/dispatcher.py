"""
Bitte MCP Proxy - Dispatcher

Resolves a tool or agent name to something callable and runs it. All
execution failures are folded into an error ``ExecutionResult``; callers
never see exceptions from ``execute_tool`` or ``execute_agent``.
"""

import json
import logging
import time
from typing import Any, Dict, Optional, Union
from urllib.parse import quote

from bitte_mcp.client import BitteClient
from bitte_mcp.exceptions import InvalidInputError, NotFoundError, ProxyError
from bitte_mcp.fuzzy import WILDCARD
from bitte_mcp.models import SearchAgentsParams, SearchToolsParams
from bitte_mcp.observability.metrics import ProxyMetrics
from bitte_mcp.search import REGISTRY_SOURCE, FederatedSearch
from bitte_mcp.tools.base import ExecutionResult, HttpTool, InvocableItem, NativeTool
from bitte_mcp.tools.http import HttpToolExecutor

logger = logging.getLogger(__name__)

# Lookups by name want near-exact matches only
RESOLVE_THRESHOLD = 0.1


def parse_params(params: Union[str, Dict[str, Any], None]) -> Dict[str, Any]:
    """Accept tool parameters as a mapping or a JSON object string"""
    if params is None:
        return {}
    if isinstance(params, str):
        if not params.strip():
            return {}
        try:
            params = json.loads(params)
        except json.JSONDecodeError as e:
            raise InvalidInputError(f"params is not valid JSON: {e.msg}", field="params")
    if not isinstance(params, dict):
        raise InvalidInputError("params must be a JSON object", field="params")
    return params


class Dispatcher:
    """Resolves and executes tools and agents"""

    def __init__(
        self,
        search: FederatedSearch,
        executor: HttpToolExecutor,
        client: BitteClient,
        metrics: Optional[ProxyMetrics] = None
    ):
        self.search = search
        self.executor = executor
        self.client = client
        self.metrics = metrics

    async def resolve_tool(self, name: str, source_hint: Optional[str] = None) -> InvocableItem:
        """
        Find the tool called ``name``. Registry tools also answer to their
        ``tool_id``.

        With ``source_hint`` only that source is listed and the name or id
        must match exactly. Without it, the best fuzzy match across the registry
        and all sources wins; equal scores go to the earlier position
        (registry first, then sources in registration order).

        Raises:
            InvalidInputError: for a blank or wildcard name.
            NotFoundError: when nothing matches or the hinted source is unknown.
        """
        if not isinstance(name, str) or not name.strip() or name.strip() == WILDCARD:
            raise InvalidInputError(f"Invalid tool name: {name!r}", field="tool")

        if source_hint:
            if source_hint == REGISTRY_SOURCE:
                tools = await self.search.registry_tools()
            else:
                source = self.search.sources.get(source_hint)
                if source is None:
                    raise NotFoundError(f"Source '{source_hint}' not found", name=source_hint)
                tools = await source.list_tools()
            for tool in tools:
                if tool.name == name or getattr(tool, "tool_id", None) == name:
                    return tool
            raise NotFoundError(f"Tool '{name}' not found in {source_hint}", name=name)

        result = await self.search.search_tools(SearchToolsParams(query=name, threshold=RESOLVE_THRESHOLD))
        combined = result.combined
        if not combined:
            raise NotFoundError(f"Tool '{name}' not found", name=name)

        position, best = min(enumerate(combined), key=lambda pair: (pair[1].score, pair[0]))
        logger.debug(f"Resolved tool {name} to {best.item.source}/{best.item.name} "
                     f"(score={best.score}, position={position})")
        return best.item

    async def execute_tool(
        self,
        name: str,
        params: Union[str, Dict[str, Any], None] = None,
        source_hint: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> ExecutionResult:
        """Resolve ``name`` and run it with ``params``"""
        logger.info(f"Executing tool {name}")
        start = time.time()
        source = source_hint or "unresolved"
        try:
            arguments = parse_params(params)
            tool = await self.resolve_tool(name, source_hint)
            source = tool.source
            result = await self._invoke(tool, arguments, metadata)
        except Exception as e:
            logger.error(f"Error executing tool {name}: {e}")
            self._record_error(e)
            result = ExecutionResult.failure(f"Error executing tool: {e}")

        if self.metrics:
            self.metrics.record_execution("tool", source, time.time() - start, not result.is_error)
        return result

    async def _invoke(
        self,
        tool: InvocableItem,
        params: Dict[str, Any],
        metadata: Optional[Dict[str, Any]]
    ) -> ExecutionResult:
        if isinstance(tool, NativeTool):
            payload = await tool.invoke(params)
            return ExecutionResult.success(payload)
        if isinstance(tool, HttpTool):
            outcome = await self.executor.invoke(tool, params, metadata)
            if "error" in outcome:
                if self.metrics:
                    self.metrics.record_error("HTTP_TOOL_ERROR")
                return ExecutionResult.failure(f"Error executing tool: {outcome['error']}")
            return ExecutionResult.success(outcome.get("data"))
        raise TypeError(f"Unsupported tool variant: {type(tool).__name__}")

    async def execute_agent(
        self,
        agent_id: str,
        input: str,
        session_id: Optional[str] = None,
        account_id: Optional[str] = None
    ) -> ExecutionResult:
        """Confirm the agent exists in the registry and send it one user message"""
        logger.info(f"Executing agent with ID: {agent_id}")
        start = time.time()
        try:
            found = await self.search.search_agents(
                SearchAgentsParams(query=agent_id, threshold=RESOLVE_THRESHOLD)
            )
            if not found.primary_results:
                raise NotFoundError(f"Agent with ID '{agent_id}' not found", name=agent_id)
            agent = found.primary_results[0].item

            body = {
                "id": session_id,
                "agentId": agent.id,
                "accountId": account_id or "",
                "messages": [{"role": "user", "content": input}]
            }
            data = await self.client.call("/chat", "POST", body)
            result = ExecutionResult.success(data)
        except Exception as e:
            logger.error(f"Error executing agent: {e}")
            self._record_error(e)
            result = ExecutionResult.failure(f"Error executing agent: {e}")

        if self.metrics:
            self.metrics.record_execution("agent", REGISTRY_SOURCE, time.time() - start, not result.is_error)
        return result

    async def get_agent(self, agent_id: str) -> Any:
        """
        Fetch one agent record from the registry.

        Raises:
            InvalidInputError: for a blank agent id.
            HttpError: when the registry rejects the request.
        """
        if not agent_id or not agent_id.strip():
            raise InvalidInputError("agentId must not be empty", field="agentId")
        logger.info(f"Getting agent with ID: {agent_id}")
        return await self.client.call(f"/api/agents/{quote(agent_id, safe='')}")

    def _record_error(self, error: Exception):
        if self.metrics:
            code = error.code if isinstance(error, ProxyError) else type(error).__name__
            self.metrics.record_error(code)
