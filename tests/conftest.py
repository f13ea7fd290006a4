"""Shared test fixtures for bitte-mcp-proxy."""

import asyncio
from typing import Any, Dict, List, Optional

import httpx
import pytest

from bitte_mcp.client import BitteClient
from bitte_mcp.dispatcher import Dispatcher
from bitte_mcp.observability.metrics import ProxyMetrics
from bitte_mcp.search import FederatedSearch
from bitte_mcp.sources.base import CallableSource, SourceRegistry
from bitte_mcp.tools.base import NativeTool
from bitte_mcp.tools.http import HttpToolExecutor

REGISTRY_URL = "https://registry.test"
RUNTIME_URL = "https://runtime.test"


# ---------------------------------------------------------------------------
# Registry records
# ---------------------------------------------------------------------------

AGENTS = [
    {
        "id": "coingecko-ai.vercel.app",
        "name": "CoinGecko Agent",
        "accountId": "coingecko.near",
        "description": "Token prices and market data",
        "instructions": "Answer questions about crypto prices",
        "tools": [],
        "verified": True,
        "pings": 12,
    },
    {
        "id": "near-cow-agent",
        "name": "CoW Swap",
        "accountId": "cow.near",
        "description": "Swap tokens on CoW protocol",
        "instructions": "Build swap transactions",
        "tools": [],
        "verified": True,
    },
    {"name": "missing id"},
]

REGISTRY_TOOLS = [
    {
        "id": "tool-price",
        "function": {
            "name": "get-token-price",
            "description": "Get the USD price of a token",
            "parameters": {"type": "object", "properties": {"symbol": {"type": "string"}}},
        },
        "execution": {"baseUrl": "api.prices.test", "path": "/price/{symbol}", "httpMethod": "GET"},
    },
    {
        "id": "tool-order",
        "function": {"name": "create-order", "description": "Create a limit order"},
        "execution": {"baseUrl": "https://api.orders.test", "path": "/orders", "httpMethod": "POST"},
    },
    {"id": "tool-no-exec", "function": {"name": "render-chart", "description": "Client side chart"}},
    {"garbage": True},
]


class FakeUpstream:
    """Registry, runtime and tool endpoints behind one httpx.MockTransport"""

    def __init__(self, agents: Optional[List[Dict[str, Any]]] = None,
                 tools: Optional[List[Dict[str, Any]]] = None,
                 chat_reply: str = "hello from agent"):
        self.agents = AGENTS if agents is None else agents
        self.tools = REGISTRY_TOOLS if tools is None else tools
        self.chat_reply = chat_reply
        self.fail: set = set()
        self.requests: List[httpx.Request] = []
        self.transport = httpx.MockTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path in self.fail:
            return httpx.Response(500)

        host = request.url.host
        if host == "registry.test":
            if path == "/api/agents":
                return httpx.Response(200, json=self.agents)
            if path.startswith("/api/agents/"):
                agent_id = path[len("/api/agents/"):]
                for agent in self.agents:
                    if agent.get("id") == agent_id:
                        return httpx.Response(200, json=agent)
                return httpx.Response(404)
            if path == "/api/tools":
                return httpx.Response(200, json=self.tools)
        if host == "runtime.test" and path == "/chat":
            return httpx.Response(200, text=self.chat_reply)
        if host == "api.prices.test" and path.startswith("/price/"):
            return httpx.Response(200, json={"symbol": path.rsplit("/", 1)[1], "price": 3000})
        if host == "api.orders.test" and path == "/orders":
            return httpx.Response(201, json={"status": "created"})
        return httpx.Response(404)

    def client(self, api_key: Optional[str] = "secret") -> BitteClient:
        return BitteClient(REGISTRY_URL, RUNTIME_URL, api_key=api_key, transport=self.transport)

    def executor(self) -> HttpToolExecutor:
        return HttpToolExecutor(transport=self.transport)

    def paths(self) -> List[str]:
        return [request.url.path for request in self.requests]


# ---------------------------------------------------------------------------
# Tool and source factories
# ---------------------------------------------------------------------------

def native_tool(name: str, source: str, description: str = "", result: Any = None,
                parameters: Optional[Dict[str, Any]] = None, error: Optional[Exception] = None) -> NativeTool:
    async def handler(params: Dict[str, Any]) -> Any:
        if error is not None:
            raise error
        if result is not None:
            return result
        return {"tool": name, "source": source, "params": params}

    kwargs: Dict[str, Any] = {"name": name, "handler": handler, "description": description, "source": source}
    if parameters is not None:
        kwargs["parameters"] = parameters
    return NativeTool(**kwargs)


def static_source(name: str, tools: List[NativeTool], builtin: bool = True,
                  delay: float = 0.0, error: Optional[Exception] = None) -> CallableSource:
    async def fetch():
        if delay:
            await asyncio.sleep(delay)
        if error is not None:
            raise error
        return tools

    return CallableSource(name, fetch, builtin=builtin)


@pytest.fixture()
def make_tool():
    return native_tool


@pytest.fixture()
def make_source():
    return static_source


@pytest.fixture()
def metrics() -> ProxyMetrics:
    return ProxyMetrics()


@pytest.fixture()
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture()
def sources() -> SourceRegistry:
    return SourceRegistry([
        static_source("goat", [
            native_tool("transfer", "goat", "Transfer ERC-20 tokens"),
            native_tool("get-balance", "goat", "Get the token balance of a wallet"),
            native_tool("agent-launcher", "goat", "Launch a trading agent"),
        ]),
        static_source("agentkit", [
            native_tool("transfer", "agentkit", "Transfer native assets"),
            native_tool("wrap-eth", "agentkit", "Wrap ETH into WETH"),
        ]),
    ])


@pytest.fixture()
def search(upstream, sources, metrics) -> FederatedSearch:
    return FederatedSearch(upstream.client(), sources, metrics=metrics)


@pytest.fixture()
def dispatcher(upstream, search, metrics) -> Dispatcher:
    return Dispatcher(search, upstream.executor(), search.client, metrics=metrics)
