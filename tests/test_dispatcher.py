"""Tests for tool and agent dispatch."""

import asyncio
import json

import pytest

from bitte_mcp.dispatcher import Dispatcher, parse_params
from bitte_mcp.exceptions import HttpError, InvalidInputError, NotFoundError
from bitte_mcp.search import REGISTRY_SOURCE, FederatedSearch
from bitte_mcp.sources.base import SourceRegistry
from bitte_mcp.tools.base import HttpTool, NativeTool


def resolve(dispatcher, name, source_hint=None):
    return asyncio.run(dispatcher.resolve_tool(name, source_hint))


def execute(dispatcher, name, params=None, source_hint=None, metadata=None):
    return asyncio.run(dispatcher.execute_tool(name, params, source_hint=source_hint, metadata=metadata))


class TestResolveTool:
    def test_name_collision_resolves_to_first_registered_source(self, dispatcher):
        for _ in range(3):
            tool = resolve(dispatcher, "transfer")
            assert isinstance(tool, NativeTool)
            assert tool.source == "goat"

    def test_registry_wins_ties(self, dispatcher, upstream):
        upstream.tools = [{
            "function": {"name": "transfer", "description": "Transfer via API"},
            "execution": {"baseUrl": "api.orders.test", "path": "/transfer", "httpMethod": "POST"},
        }]

        tool = resolve(dispatcher, "transfer")
        assert isinstance(tool, HttpTool)
        assert tool.source == REGISTRY_SOURCE

    def test_source_hint_selects_source(self, dispatcher):
        assert resolve(dispatcher, "transfer", "agentkit").source == "agentkit"

    def test_registry_hint(self, dispatcher):
        tool = resolve(dispatcher, "get-token-price", REGISTRY_SOURCE)
        assert isinstance(tool, HttpTool)
        assert tool.execution.path == "/price/{symbol}"

    def test_registry_tool_by_id(self, dispatcher):
        tool = resolve(dispatcher, "tool-price")
        assert tool.name == "get-token-price"
        assert tool.source == REGISTRY_SOURCE

    def test_registry_hint_accepts_tool_id(self, dispatcher):
        assert resolve(dispatcher, "tool-price", REGISTRY_SOURCE).name == "get-token-price"

    def test_hint_requires_exact_name(self, dispatcher):
        with pytest.raises(NotFoundError):
            resolve(dispatcher, "wrap-eth", "goat")

    def test_unknown_hint(self, dispatcher):
        with pytest.raises(NotFoundError) as exc_info:
            resolve(dispatcher, "transfer", "nope")
        assert exc_info.value.code == "NOT_FOUND"

    def test_not_found(self, dispatcher):
        with pytest.raises(NotFoundError):
            resolve(dispatcher, "nonexistent-zzz")

    @pytest.mark.parametrize("name", ["*", "", "   "])
    def test_wildcard_and_blank_names_rejected(self, dispatcher, name):
        with pytest.raises(InvalidInputError):
            resolve(dispatcher, name)


class TestExecuteTool:
    def test_native_tool_with_json_string_params(self, dispatcher):
        result = execute(dispatcher, "transfer", '{"to": "0xabc", "amount": "5"}')

        assert result.is_error is False
        assert json.loads(result.text) == {
            "tool": "transfer",
            "source": "goat",
            "params": {"to": "0xabc", "amount": "5"},
        }

    def test_string_payload_is_passed_through(self, upstream, make_tool, make_source):
        sources = SourceRegistry([make_source("goat", [make_tool("sign", "goat", result="0xsigned")])])
        search = FederatedSearch(upstream.client(), sources)
        dispatcher = Dispatcher(search, upstream.executor(), search.client)

        result = execute(dispatcher, "sign", {})
        assert result.to_dict() == {"content": [{"type": "text", "text": "0xsigned"}]}

    def test_bytes_payload_is_base64(self, upstream, make_tool, make_source):
        sources = SourceRegistry([make_source("goat", [make_tool("blob", "goat", result=b"hi")])])
        search = FederatedSearch(upstream.client(), sources)
        dispatcher = Dispatcher(search, upstream.executor(), search.client)

        assert execute(dispatcher, "blob").text == '"aGk="'

    def test_http_tool_get(self, dispatcher, upstream):
        result = execute(dispatcher, "get-token-price", {"symbol": "ETH"})

        assert result.is_error is False
        assert json.loads(result.text) == {"symbol": "ETH", "price": 3000}
        assert str(upstream.requests[-1].url) == "https://api.prices.test/price/ETH"

    @pytest.mark.parametrize("source_hint", [None, REGISTRY_SOURCE])
    def test_http_tool_by_id(self, dispatcher, upstream, source_hint):
        result = execute(dispatcher, "tool-price", {"symbol": "ETH"}, source_hint=source_hint)

        assert result.is_error is False
        assert json.loads(result.text) == {"symbol": "ETH", "price": 3000}
        assert str(upstream.requests[-1].url) == "https://api.prices.test/price/ETH"

    def test_http_tool_post_with_metadata(self, dispatcher, upstream):
        metadata = {"accountId": "alice.near"}
        result = execute(dispatcher, "create-order", '{"price": 10}', metadata=metadata)

        request = upstream.requests[-1]
        assert json.loads(result.text) == {"status": "created"}
        assert request.method == "POST"
        assert json.loads(request.content) == {"price": 10}
        assert json.loads(request.headers["mb-metadata"]) == metadata

    def test_http_tool_error_outcome(self, dispatcher, upstream):
        upstream.fail.add("/price/ETH")
        result = execute(dispatcher, "get-token-price", {"symbol": "ETH"})

        assert result.is_error is True
        assert result.text.startswith("Error executing tool: get-token-price: HTTP error 500")
        assert result.to_dict()["isError"] is True

    def test_http_tool_missing_path_parameter(self, dispatcher):
        result = execute(dispatcher, "get-token-price", {})

        assert result.is_error is True
        assert result.text == "Error executing tool: get-token-price: Missing required path parameter: symbol"

    def test_handler_exception_becomes_error_result(self, upstream, make_tool, make_source):
        sources = SourceRegistry([make_source("goat", [make_tool("explode", "goat", error=RuntimeError("boom"))])])
        search = FederatedSearch(upstream.client(), sources)
        dispatcher = Dispatcher(search, upstream.executor(), search.client)

        result = execute(dispatcher, "explode")
        assert result.is_error is True
        assert result.text == "Error executing tool: boom"

    def test_unknown_tool(self, dispatcher):
        result = execute(dispatcher, "nonexistent-zzz")
        assert result.is_error is True
        assert result.text == "Error executing tool: Tool 'nonexistent-zzz' not found"

    def test_invalid_json_params(self, dispatcher):
        result = execute(dispatcher, "transfer", "{not json")
        assert result.is_error is True
        assert result.text.startswith("Error executing tool: params is not valid JSON")

    def test_records_metrics(self, dispatcher, metrics):
        execute(dispatcher, "transfer", {})
        execute(dispatcher, "nonexistent-zzz")

        sample = metrics.registry.get_sample_value
        assert sample("bitte_proxy_executions_total",
                      {"target_type": "tool", "source": "goat", "status": "success"}) == 1.0
        assert sample("bitte_proxy_executions_total",
                      {"target_type": "tool", "source": "unresolved", "status": "failure"}) == 1.0
        assert sample("bitte_proxy_errors_total", {"error_code": "NOT_FOUND"}) == 1.0

    def test_unsupported_variant(self, dispatcher):
        with pytest.raises(TypeError):
            asyncio.run(dispatcher._invoke(object(), {}, None))


class TestExecuteAgent:
    def test_posts_chat_message(self, dispatcher, upstream):
        result = asyncio.run(dispatcher.execute_agent(
            "coingecko-ai.vercel.app", "price of ETH?", session_id="s-1", account_id="alice.near"
        ))

        assert result.is_error is False
        assert result.text == "hello from agent"

        chat = [request for request in upstream.requests if request.url.path == "/chat"]
        assert len(chat) == 1
        assert chat[0].headers["authorization"] == "Bearer secret"
        assert json.loads(chat[0].content) == {
            "id": "s-1",
            "agentId": "coingecko-ai.vercel.app",
            "accountId": "alice.near",
            "messages": [{"role": "user", "content": "price of ETH?"}],
        }

    def test_account_defaults_to_empty(self, dispatcher, upstream):
        asyncio.run(dispatcher.execute_agent("near-cow-agent", "swap 1 ETH"))

        chat = [request for request in upstream.requests if request.url.path == "/chat"][0]
        body = json.loads(chat.content)
        assert body["accountId"] == ""
        assert body["id"] is None

    def test_unknown_agent(self, dispatcher, upstream):
        result = asyncio.run(dispatcher.execute_agent("missing", "hi"))

        assert result.is_error is True
        assert result.text == "Error executing agent: Agent with ID 'missing' not found"
        assert "/chat" not in upstream.paths()

    def test_runtime_failure(self, dispatcher, upstream):
        upstream.fail.add("/chat")
        result = asyncio.run(dispatcher.execute_agent("near-cow-agent", "hi"))

        assert result.is_error is True
        assert result.text.startswith("Error executing agent: HTTP error 500")


class TestGetAgent:
    def test_fetches_agent(self, dispatcher):
        agent = asyncio.run(dispatcher.get_agent("near-cow-agent"))
        assert agent["name"] == "CoW Swap"

    def test_agent_id_is_quoted(self, dispatcher, upstream):
        with pytest.raises(HttpError):
            asyncio.run(dispatcher.get_agent("near/agent"))
        assert upstream.requests[-1].url.raw_path == b"/api/agents/near%2Fagent"

    def test_blank_id_rejected(self, dispatcher):
        with pytest.raises(InvalidInputError):
            asyncio.run(dispatcher.get_agent(" "))


class TestParseParams:
    def test_accepts_mapping_and_json(self):
        assert parse_params({"a": 1}) == {"a": 1}
        assert parse_params('{"a": 1}') == {"a": 1}
        assert parse_params(None) == {}
        assert parse_params("") == {}

    @pytest.mark.parametrize("params", ["{bad", "[1, 2]", "3"])
    def test_rejects_non_objects(self, params):
        with pytest.raises(InvalidInputError):
            parse_params(params)
