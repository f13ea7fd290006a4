"""
Bitte MCP Proxy - Federated Search

Fans a query out to the Bitte registry and every included capability
source, fuzzy-ranks each result set independently and merges them into one
``AggregatedSearchResult``. A failing source contributes an empty result
list and a recorded failure; it never fails the whole search.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urlencode

from pydantic import ValidationError

from bitte_mcp import fuzzy
from bitte_mcp.client import BitteClient
from bitte_mcp.exceptions import SourceUnavailableError
from bitte_mcp.fuzzy import SearchOptions, SearchResult
from bitte_mcp.models import Agent, SearchAgentsParams, SearchToolsParams
from bitte_mcp.observability.metrics import ProxyMetrics
from bitte_mcp.sources.base import CapabilitySource, SourceRegistry
from bitte_mcp.tools.base import InvocableItem, tool_from_registry

logger = logging.getLogger(__name__)

REGISTRY_SOURCE = "bitte-registry"

AGENT_SEARCH_KEYS = ("id", "name", "description", "instructions", "generated_description", "category")
TOOL_SEARCH_KEYS = ("name", "tool_id", "description")


@dataclass
class SourceOutcome:
    """Result of searching one capability source"""
    source: str
    results: List[SearchResult] = field(default_factory=list)
    error: Optional[SourceUnavailableError] = None


@dataclass
class AggregatedSearchResult:
    """Merged search results from the registry and capability sources"""
    primary_results: List[SearchResult] = field(default_factory=list)
    by_source: Dict[str, List[SearchResult]] = field(default_factory=dict)
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def combined(self) -> List[SearchResult]:
        """Registry results followed by each source's results in registration order"""
        combined = list(self.primary_results)
        for results in self.by_source.values():
            combined.extend(results)
        return combined

    @property
    def total_results(self) -> int:
        return len(self.primary_results) + sum(len(results) for results in self.by_source.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primaryResults": [result.to_dict() for result in self.primary_results],
            "bySource": {
                source: [result.to_dict() for result in results]
                for source, results in self.by_source.items()
            },
            "combined": [result.to_dict() for result in self.combined],
            "totalResults": self.total_results,
            "failures": dict(self.failures)
        }


def _bool_param(value: bool) -> str:
    return "true" if value else "false"


def _derive_agent(tool: InvocableItem) -> Optional[Agent]:
    """Treat a source tool as an agent when it looks like one"""
    properties = tool.parameters.get("properties") if isinstance(tool.parameters, dict) else None
    has_agent_id = isinstance(properties, dict) and "agentId" in properties
    if not has_agent_id and "agent" not in tool.name.lower():
        return None
    return Agent(
        id=tool.name,
        name=tool.name,
        accountId="",
        description=tool.description,
        verified=True
    )


class FederatedSearch:
    """Searches the registry and capability sources concurrently"""

    def __init__(
        self,
        client: BitteClient,
        sources: SourceRegistry,
        metrics: Optional[ProxyMetrics] = None
    ):
        self.client = client
        self.sources = sources
        self.metrics = metrics

    # ========================================================================
    # Agents
    # ========================================================================

    async def search_agents(self, params: SearchAgentsParams) -> AggregatedSearchResult:
        """
        Search registry agents and agents derived from source tools.

        Raises:
            InvalidInputError: if the limit or query is invalid.
        """
        options = SearchOptions(keys=AGENT_SEARCH_KEYS, limit=params.limit, threshold=params.threshold)
        logger.info(f"Searching for agents with query: {params.query}")
        if self.metrics:
            self.metrics.record_search("agents")

        result = AggregatedSearchResult()
        agents = await self._fetch_registry_agents(params, result)
        result.primary_results = fuzzy.search(agents, params.query, options)

        selected = self._select_sources(params.include_services)
        outcomes = await asyncio.gather(*[
            self._search_source(source, params.query, options, agents_only=True)
            for source in selected
        ])
        self._merge(result, outcomes)
        return result

    async def _fetch_registry_agents(
        self,
        params: SearchAgentsParams,
        result: AggregatedSearchResult
    ) -> List[Agent]:
        query: Dict[str, Any] = {
            "verifiedOnly": _bool_param(params.verified_only),
            "limit": params.limit,
            "offset": params.offset
        }
        if params.chain_ids:
            query["chainIds"] = params.chain_ids
        if params.category:
            query["category"] = params.category

        try:
            response = await self.client.call(f"/api/agents?{urlencode(query)}")
        except Exception as e:
            self._record_failure(result, REGISTRY_SOURCE, f"Error searching Bitte API: {e}")
            return []

        if not isinstance(response, list):
            logger.warning("Bitte API did not return an array of agents")
            return []

        agents = []
        for entry in response:
            try:
                agents.append(Agent.model_validate(entry))
            except ValidationError as e:
                logger.warning(f"Skipping malformed registry agent: {e.error_count()} validation error(s)")
        return agents

    # ========================================================================
    # Tools
    # ========================================================================

    async def search_tools(self, params: SearchToolsParams) -> AggregatedSearchResult:
        """
        Search registry tools and capability source tools.

        Built-in sources are always searched, whatever ``include_services``
        names.

        Raises:
            InvalidInputError: if the limit or query is invalid.
        """
        options = SearchOptions(keys=TOOL_SEARCH_KEYS, limit=params.limit, threshold=params.threshold)
        logger.info(f"Searching for tools with query: {params.query}")
        if self.metrics:
            self.metrics.record_search("tools")

        result = AggregatedSearchResult()
        tools = await self.registry_tools(result)
        result.primary_results = fuzzy.search(tools, params.query, options)

        requested = self.sources.names() if params.include_services is None else list(params.include_services)
        requested.extend(name for name in self.sources.builtin_names() if name not in requested)

        selected = self._select_sources(requested)
        outcomes = await asyncio.gather(*[
            self._search_source(source, params.query, options)
            for source in selected
        ])
        self._merge(result, outcomes)
        return result

    async def registry_tools(self, result: Optional[AggregatedSearchResult] = None) -> List[InvocableItem]:
        """
        List the registry's executable tools as HttpTools.

        Failures are logged and recorded on ``result`` when given; the
        registry then contributes no tools.
        """
        try:
            response = await self.client.call("/api/tools")
        except Exception as e:
            if result is None:
                raise
            self._record_failure(result, REGISTRY_SOURCE, f"Error searching Bitte API tools: {e}")
            return []

        if not isinstance(response, list):
            logger.warning("Bitte API did not return an array of tools")
            return []

        tools: List[InvocableItem] = []
        for entry in response:
            tool = tool_from_registry(entry, REGISTRY_SOURCE)
            if tool is not None:
                tools.append(tool)
        return tools

    # ========================================================================
    # Fan-out
    # ========================================================================

    def _select_sources(self, names: Optional[Sequence[str]]) -> List[CapabilitySource]:
        """Resolve requested names to sources, in registration order"""
        if names is None:
            return list(self.sources)
        for name in names:
            if name not in self.sources:
                logger.warning(f"Service not found: {name}")
        wanted = set(names)
        return [source for source in self.sources if source.name in wanted]

    async def _search_source(
        self,
        source: CapabilitySource,
        query: str,
        options: SearchOptions,
        agents_only: bool = False
    ) -> SourceOutcome:
        try:
            tools = await source.list_tools()
        except Exception as e:
            logger.error(f"Error searching service {source.name}: {e}")
            if isinstance(e, SourceUnavailableError):
                error = e
            else:
                error = SourceUnavailableError(source.name, str(e))
            return SourceOutcome(source=source.name, error=error)

        if agents_only:
            records: List[Any] = [agent for agent in map(_derive_agent, tools) if agent is not None]
        else:
            records = tools
        return SourceOutcome(source=source.name, results=fuzzy.search(records, query, options))

    def _merge(self, result: AggregatedSearchResult, outcomes: Sequence[SourceOutcome]):
        for outcome in outcomes:
            result.by_source[outcome.source] = outcome.results
            if outcome.error is not None:
                self._record_failure(result, outcome.source, outcome.error.message, log=False)

    def _record_failure(self, result: AggregatedSearchResult, source: str, message: str, log: bool = True):
        if log:
            logger.error(message)
        result.failures[source] = message
        if self.metrics:
            self.metrics.record_source_failure(source)
